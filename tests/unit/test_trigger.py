"""Tests for trigger detection and text normalization."""

import pytest

from kaibot.core.text import contains_keyword, keyword_pattern, normalize_text
from kaibot.core.trigger import detect_trigger, is_triggered, strip_trigger


BOT = "KAI bot"


@pytest.mark.unit
class TestIsTriggered:
    """Mentions trigger anywhere, wake words only at the head."""

    @pytest.mark.parametrize(
        "text",
        [
            "@KAI bot タスク一覧",
            "@kai bot タスク一覧",
            "＠KAI bot タスク一覧",
            "議事録作成を追加 @KAI bot",
            "@KAIbot 一覧",
            "ボット タスク一覧",
            "ボット、タスク一覧",
            "ぼっと 一覧",
            "おーい！一覧",
            "ボット",
        ],
    )
    def test_triggered(self, text):
        assert is_triggered(text, BOT) is True

    @pytest.mark.parametrize(
        "text",
        [
            "よろしくボット",
            "ボットに伝えて",
            "ロボットを作る",
            "今日の会議は何時から？",
            "",
        ],
    )
    def test_not_triggered(self, text):
        assert is_triggered(text, BOT) is False


@pytest.mark.unit
class TestStripTrigger:
    """Trigger removal leaves the command text."""

    def test_strips_mention(self):
        assert strip_trigger("@KAI bot 議事録作成を明日18時までに追加", BOT) == "議事録作成を明日18時までに追加"

    def test_strips_every_mention(self):
        assert strip_trigger("@KAI bot 一覧 @KAI bot", BOT) == "一覧"

    def test_strips_single_head_wake_word(self):
        assert strip_trigger("ボット、タスク一覧", BOT) == "タスク一覧"

    def test_keeps_wake_word_inside_text(self):
        assert strip_trigger("@KAI bot ボットに伝えて", BOT) == "ボットに伝えて"

    def test_detect_trigger_returns_both(self):
        result = detect_trigger("@KAI bot   タスク   一覧", BOT)
        assert result.triggered is True
        assert result.text == "タスク 一覧"

    def test_custom_bot_name(self):
        assert is_triggered("@Helper 一覧", "Helper") is True
        assert is_triggered("@KAI bot 一覧", "Helper") is False


@pytest.mark.unit
class TestNormalizeText:
    """NFKC folding and whitespace collapse."""

    def test_full_width_folded(self):
        assert normalize_text("＠ＫＡＩ　bot　タスク一覧") == "@KAI bot タスク一覧"

    def test_full_width_digits_and_colon(self):
        assert normalize_text("期限：１２／２５") == "期限:12/25"

    def test_none_and_empty(self):
        assert normalize_text(None) == ""
        assert normalize_text("   ") == ""

    def test_idempotent(self):
        once = normalize_text("  ＠KAI bot　 一覧  ")
        assert normalize_text(once) == once

    def test_japanese_punctuation_kept(self):
        assert normalize_text("「議事録」、完了。") == "「議事録」、完了。"


@pytest.mark.unit
class TestKeywordPattern:
    """Keyword alternation shared by the parsers."""

    def test_latin_words_match_whole_words_only(self):
        assert contains_keyword("add milk", ("add",)) is True
        assert contains_keyword("address", ("add",)) is False
        assert contains_keyword("議事録をaddして", ("add",)) is True

    def test_japanese_words_match_anywhere(self):
        assert contains_keyword("議事録作成を追加して", ("追加",)) is True

    def test_case_insensitive(self):
        assert contains_keyword("DONE", ("done",)) is True

    def test_empty_keyword_list_never_matches(self):
        assert contains_keyword("anything", ()) is False
        assert keyword_pattern(()).sub(" ", "anything") == "anything"
