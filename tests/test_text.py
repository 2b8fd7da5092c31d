"""Tests for reply splitting and typing delays."""

from chatdiary.utils.text import split_response, strip_code_fence, typing_delay_ms


class TestSplitResponse:
    """Tests for split_response."""

    def test_splits_on_newlines_and_drops_blank_lines(self) -> None:
        assert split_response("Hello!\n\nHow was work?\n") == ["Hello!", "How was work?"]

    def test_long_single_line_is_split_into_sentences(self) -> None:
        first = "I had a wonderful time hearing about your day at the lake."
        second = "Tell me more about what you saw there and how it felt!"
        result = split_response(f"{first} {second}")
        assert result == [first, second]

    def test_short_single_line_is_kept(self) -> None:
        text = "Nice. Tell me more!"
        assert split_response(text) == [text]

    def test_long_line_without_sentence_breaks_is_kept(self) -> None:
        text = "a" * 150
        assert split_response(text) == [text]

    def test_chinese_sentence_endings(self) -> None:
        text = "今天听起来真的很累。" * 6 + " " + "要不要早点休息？" * 6
        assert len(text) > 100
        assert len(split_response(text)) == 2

    def test_blank_reply_returned_as_is(self) -> None:
        assert split_response("   ") == ["   "]

    def test_never_returns_empty_list(self) -> None:
        assert split_response("") == [""]


class TestTypingDelay:
    """Tests for typing_delay_ms."""

    def test_minimum(self) -> None:
        assert typing_delay_ms("hi") == 800

    def test_proportional(self) -> None:
        assert typing_delay_ms("x" * 50) == 1500

    def test_maximum(self) -> None:
        assert typing_delay_ms("x" * 100) == 2000


class TestStripCodeFence:
    def test_json_fence(self) -> None:
        assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_text_untouched(self) -> None:
        assert strip_code_fence('{"a": 1}') == '{"a": 1}'
