"""Tests for prompt composition."""

from datetime import datetime

from conftest import msg

from chatdiary.models.chat import Attachment, ChatMessage
from chatdiary.models.diary import DiaryEntry
from chatdiary.models.persona import Persona, default_personas
from chatdiary.models.profile import UserProfile
from chatdiary.services.prompt_service import (
    DIARY_PROMPTS,
    chinese_date,
    compose_briefing_messages,
    compose_chat_messages,
    compose_comment_messages,
    compose_diary_messages,
    compose_polish_messages,
    english_date,
    message_content,
    split_trailing_user_run,
)

RULES_MARKER = "# UNIVERSAL BEHAVIOR GUIDELINES"


def persona() -> Persona:
    return default_personas()[0]


def rules_index(messages) -> int:
    return next(
        i for i, m in enumerate(messages)
        if m["role"] == "system" and RULES_MARKER in m["content"]
    )


class TestChatComposer:
    """Rules placement around the trailing run of user messages."""

    def test_single_trailing_user_message(self) -> None:
        history = [msg(1, "ai", "Hi"), msg(2, "user", "I'm tired")]
        messages = compose_chat_messages(persona(), UserProfile(), "2024-05-10", "", history)

        assert [m["role"] for m in messages] == ["system", "assistant", "system", "user"]
        assert rules_index(messages) == len(messages) - 2
        assert messages[-1]["content"] == "I'm tired"

    def test_multiple_trailing_user_messages_follow_rules(self) -> None:
        history = [
            msg(1, "ai", "Hi"),
            msg(2, "user", "a"),
            msg(3, "ai", "b"),
            msg(4, "user", "first"),
            msg(5, "user", "second"),
            msg(6, "user", "third"),
        ]
        messages = compose_chat_messages(persona(), UserProfile(), "2024-05-10", "", history)

        idx = rules_index(messages)
        assert idx == len(messages) - 4
        assert [m["content"] for m in messages[idx + 1:]] == ["first", "second", "third"]
        assert [m["role"] for m in messages[1:idx]] == ["assistant", "user", "assistant"]

    def test_no_trailing_user_message_puts_rules_last(self) -> None:
        history = [msg(1, "user", "hey"), msg(2, "ai", "hello")]
        messages = compose_chat_messages(persona(), UserProfile(), "2024-05-10", "", history)
        assert rules_index(messages) == len(messages) - 1

    def test_context_contains_date_profile_and_briefings(self) -> None:
        profile = UserProfile(username="Lin", interests=["climbing", "tea"])
        messages = compose_chat_messages(
            persona(), profile, "2024-05-03", "### [2024-05-02] Briefing", [msg(1, "user", "x")]
        )
        context = messages[0]["content"]
        assert "2024年5月3日星期五" in context
        assert "- Name: Lin" in context
        assert "- Interests: climbing, tea" in context
        assert "### [2024-05-02] Briefing" in context

    def test_missing_briefings_placeholder(self) -> None:
        messages = compose_chat_messages(persona(), UserProfile(), "2024-05-03", "", [msg(1, "user", "x")])
        assert "[System: No previous diaries available]" in messages[0]["content"]
        assert "- Name: Not set" in messages[0]["content"]

    def test_split_trailing_user_run(self) -> None:
        history = [msg(1, "ai", "a"), msg(2, "user", "b"), msg(3, "user", "c")]
        previous, run = split_trailing_user_run(history)
        assert [m.id for m in previous] == [1]
        assert [m.id for m in run] == [2, 3]


class TestMessageContent:
    def test_image_attachment_becomes_multimodal(self) -> None:
        message = ChatMessage(
            id=1, sender="user", text="look",
            attachment=Attachment(type="image", url="data:image/png;base64,AAAA"),
        )
        content = message_content(message)
        assert content[0] == {"type": "text", "text": "look"}
        assert content[1]["image_url"]["url"] == "data:image/png;base64,AAAA"

    def test_plain_text(self) -> None:
        assert message_content(msg(1, "user", "hi")) == "hi"


class TestDiaryComposer:
    def test_known_style(self) -> None:
        messages = compose_diary_messages("with_ai_trace", UserProfile(), "2024-05-03", "", [msg(1, "user", "x")])
        assert messages[0]["content"].startswith(DIARY_PROMPTS["with_ai_trace"])

    def test_unknown_style_falls_back(self) -> None:
        messages = compose_diary_messages("bogus", UserProfile(), "2024-05-03", "", [msg(1, "user", "x")])
        assert messages[0]["content"].startswith(DIARY_PROMPTS["no_ai_trace"])

    def test_includes_date_summaries_and_chat(self) -> None:
        messages = compose_diary_messages(
            "no_ai_trace", UserProfile(), "2024-05-03", "- Date: 2024-05-01", [msg(1, "user", "went hiking")],
            persona=persona(),
        )
        assert "Friday, May 3, 2024" in messages[0]["content"]
        assert "- Date: 2024-05-01" in messages[0]["content"]
        assert "Target length: about 300" in messages[0]["content"]
        assert "user: went hiking" in messages[1]["content"]

    def test_no_summaries_placeholder(self) -> None:
        messages = compose_diary_messages("no_ai_trace", UserProfile(), "2024-05-03", "", [])
        assert "No recent diaries found." in messages[0]["content"]


class TestPolishComposer:
    def test_history_follows_system_prompt(self) -> None:
        history = [{"role": "user", "content": "make it sadder"}]
        messages = compose_polish_messages(
            persona(), UserProfile(), "2024-05-03", "", [], history, now=datetime(2024, 5, 4, 8, 0, 0)
        )
        assert messages[1:] == history
        assert "2024-05-04 08:00:00" in messages[0]["content"]
        assert "No recorded chat logs for this date." in messages[0]["content"]

    def test_day_chat_transcript(self) -> None:
        messages = compose_polish_messages(
            persona(), UserProfile(), "2024-05-03", "", [msg(1, "user", "rainy day")], []
        )
        assert "User: rainy day" in messages[0]["content"]


class TestCommentComposer:
    def diary(self) -> DiaryEntry:
        return DiaryEntry(id="1", date="2024-05-01", content="Exam tomorrow")

    def test_same_day_has_no_present_block(self) -> None:
        messages = compose_comment_messages(
            persona(), self.diary(), "", [], [msg(1, "user", "now")], "2024-05-01"
        )
        assert "[The Reality of NOW (" not in messages[1]["content"]
        assert "(0 days after the diary)" in messages[0]["content"]

    def test_later_day_includes_present_block(self) -> None:
        messages = compose_comment_messages(
            persona(), self.diary(), "", [], [msg(1, "user", "passed the exam")], "2024-05-04"
        )
        content = messages[1]["content"]
        assert "[The Reality of NOW (2024-05-04)]" in content
        assert "3 days later" in content
        assert "user: passed the exam" in content


class TestBriefingComposer:
    def test_contains_title_and_content(self) -> None:
        messages = compose_briefing_messages("Rain", "It rained all day")
        assert "Title: Rain" in messages[1]["content"]
        assert 'Content: "It rained all day"' in messages[1]["content"]


class TestDates:
    def test_chinese_date(self) -> None:
        assert chinese_date("2024-05-03") == "2024年5月3日星期五"

    def test_english_date(self) -> None:
        assert english_date("2024-05-03") == "Friday, May 3, 2024"
