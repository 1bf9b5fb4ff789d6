"""Tests for title shaping."""

import pytest

from copywriting.shaping import (
    KEEP_MARK,
    break_lines,
    char_width,
    clip_to_width,
    remove_noise,
    score_break,
    shape_title,
    string_width,
    summarize,
)

LONG_TITLE = (
    "北欧デザインの木製ダイニングテーブル、天然オーク材使用・"
    "4人掛け・組立簡単で長く使える定番モデル"
)


class TestWidth:

    def test_cjk_counts_one(self):
        assert char_width("あ") == 1.0
        assert char_width("テ") == 1.0
        assert char_width("漢") == 1.0
        assert char_width("、") == 1.0

    def test_ascii_counts_half(self):
        assert char_width("A") == 0.5
        assert string_width("SALE") == 2.0

    def test_keep_mark_is_free(self):
        assert char_width(KEEP_MARK) == 0.0
        assert string_width(f"{KEEP_MARK}北欧{KEEP_MARK}") == 2.0

    def test_clip(self):
        assert clip_to_width("あいうえお", 3) == "あいう"
        assert clip_to_width("abcdef", 1.5) == "abc"
        assert clip_to_width("あい", 10) == "あい"


class TestNoise:

    def test_strips_brackets_and_model_numbers(self):
        assert remove_noise("【送料無料】 ABC123 ハンディファン [新作]") == "ハンディファン"

    def test_strips_promo_words(self):
        assert remove_noise("激安 保冷ボトル") == "保冷ボトル"

    def test_keeps_short_parentheticals(self):
        assert remove_noise("ボトル(白)") == "ボトル(白)"


class TestSummarize:

    def test_fits_unchanged(self):
        assert summarize("春の大感謝セール", 48) == "春の大感謝セール"

    def test_skips_numbers_and_stops_at_budget(self):
        assert summarize("テーブル 2024 北欧 木製 ダイニング", 8) == "テーブル 北欧"


class TestBreaks:

    def test_prefers_punctuation_break(self):
        shaped = break_lines("春夏秋冬コレクション、新作バッグ入荷しました", 12, 2)
        assert shaped == "春夏秋冬コレクション、\n新作バッグ入荷しました"

    def test_avoids_line_starting_with_prohibited_char(self):
        text = "ab。c"
        assert score_break(text, 1, ()) < score_break(text, 2, ())

    def test_single_line_is_clipped(self):
        assert break_lines("あいうえおかきくけこ", 4, 1) == "あいうえ"

    def test_forced_cut_drops_trailing_space(self):
        shaped = break_lines("xx あ北製 、あえ", 2, 4)
        assert shaped.split("\n")[0] == "xx"
        assert not any(line.endswith(" ") for line in shaped.split("\n"))


class TestShapeTitle:

    def test_short_title_unchanged(self):
        assert shape_title("春の大感謝セール") == "春の大感謝セール"

    def test_empty(self):
        assert shape_title("") == ""
        assert shape_title("   ") == ""

    def test_respects_limits(self):
        shaped = shape_title(LONG_TITLE, max_chars=12, max_lines=2)
        lines = shaped.split("\n")
        assert 1 <= len(lines) <= 2
        assert all(string_width(line) <= 12 for line in lines)

    @pytest.mark.parametrize("raw, max_chars, max_lines", [
        (LONG_TITLE, 12, 2),
        ("xx あ北製 、あえ", 2, 4),
        ("Sale 50% OFF 春の 新作 バッグ", 6, 3),
        ("ab cd ef gh ij kl", 2, 3),
        ("夏 ハンディファン mini 静音 USB", 3, 2),
    ])
    def test_idempotent(self, raw, max_chars, max_lines):
        once = shape_title(raw, max_chars=max_chars, max_lines=max_lines)
        assert shape_title(once, max_chars=max_chars, max_lines=max_lines) == once
        assert all(line == line.strip() for line in once.split("\n"))

    def test_one_line_budget(self):
        shaped = shape_title("あいうえおかきくけこ", max_chars=4, max_lines=1)
        assert "\n" not in shaped
        assert string_width(shaped) <= 4

    def test_keep_word_survives(self):
        raw = f"{KEEP_MARK}北欧{KEEP_MARK} テーブル 2024"
        shaped = shape_title(raw, max_chars=4, max_lines=1)
        assert "北欧" in shaped
