"""Tests for context gathering."""

from conftest import msg

from chatdiary.models.diary import AIBriefing, DiaryEntry
from chatdiary.services.context_service import (
    day_offset,
    format_briefing,
    latest_briefings,
    previous_day,
    recent_briefings,
    recent_summaries,
    with_previous_day,
)


def diary(id: str, date: str, **kwargs) -> DiaryEntry:
    return DiaryEntry(id=id, date=date, title=f"T{id}", content="c" * 120, **kwargs)


class TestRecentBriefings:
    def test_only_earlier_diaries_newest_first(self) -> None:
        diaries = [
            diary("1", "2024-05-01"),
            diary("2", "2024-05-03"),
            diary("3", "2024-05-05"),
            diary("4", "2024-05-02"),
        ]
        text = recent_briefings(diaries, "2024-05-03")
        assert "2024-05-03" not in text
        assert "2024-05-05" not in text
        assert text.index("2024-05-02") < text.index("2024-05-01")

    def test_limit_seven(self) -> None:
        diaries = [diary(str(i), f"2024-04-{i:02d}") for i in range(1, 11)]
        text = recent_briefings(diaries, "2024-05-01")
        assert text.count("- [2024-04-") == 7
        assert "2024-04-03" not in text

    def test_empty(self) -> None:
        assert recent_briefings([], "2024-05-01") == ""

    def test_briefing_format(self) -> None:
        entry = diary("1", "2024-05-01", ai_briefing=AIBriefing(
            events="Moved flat", atmosphere_or_emotion="Tired", unfinished_topics="Unpacking",
        ))
        text = format_briefing(entry)
        assert "### [2024-05-01] Briefing" in text
        assert "- Events: Moved flat" in text
        assert "- Unfinished Topics: Unpacking" in text

    def test_fallback_uses_summary(self) -> None:
        entry = diary("1", "2024-05-01", summary="Quiet day")
        assert format_briefing(entry) == "- [2024-05-01] T1: Quiet day..."


class TestRecentSummaries:
    def test_limit_three(self) -> None:
        diaries = [diary(str(i), f"2024-04-{i:02d}", summary=f"s{i}") for i in range(1, 6)]
        text = recent_summaries(diaries, "2024-05-01")
        assert "s5" in text and "s3" in text
        assert "s2" not in text


class TestLatestBriefings:
    def test_excludes_current_diary(self) -> None:
        diaries = [diary("1", "2024-05-01"), diary("2", "2024-05-09")]
        text = latest_briefings(diaries, "1")
        assert "2024-05-09" in text
        assert "2024-05-01" not in text


class TestPreviousDay:
    def test_prepends_last_twenty(self) -> None:
        previous = [msg(i, "user", f"p{i}") for i in range(30)]
        history = [msg(100, "ai", "today")]
        combined = with_previous_day(history, previous)
        assert len(combined) == 21
        assert combined[0].text == "p10"
        assert combined[-1].text == "today"

    def test_no_previous_chat(self) -> None:
        history = [msg(1, "ai", "today")]
        assert with_previous_day(history, []) == history

    def test_previous_day_crosses_month(self) -> None:
        assert previous_day("2024-03-01") == "2024-02-29"

    def test_day_offset(self) -> None:
        assert day_offset("2024-05-01", "2024-05-04") == 3
        assert day_offset("2024-05-01", "2024-05-01") == 0
