"""
Title shaping for banner copy: noise removal, width-aware summarising
and line breaking tuned for Japanese product titles.

Display width: CJK / kana / full-width glyphs count 1, everything else
0.5.  The keep marker ``§`` (see ``copywriting.terms``) counts 0.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from config.settings import TextShapingConfig, cfg
from utils.log_config import get_logger

log = get_logger(__name__)

KEEP_MARK = "§"

NOISE_PATTERNS = [
    re.compile(r"\b[A-Z]{2,}\d{2,}\b"),                       # model numbers
    re.compile(r"\bJAN[:：]?\s*\d{8,13}\b", re.IGNORECASE),
    re.compile(r"【[^】]+】"),
    re.compile(r"\[[^\]]+\]"),
    re.compile(r"\([^)]{6,}\)"),                              # long parentheticals
    re.compile(r"(?:送料無料|最安|激安|訳あり|SALE中|SALE)", re.IGNORECASE),
]

PROHIBIT_START = set("、。，．・：；!?！？））」』】]％%")
PROHIBIT_END = set("（「『［【(")

_WORD_SPLIT = re.compile(r"[\s、。・]+")
_WIDE_RANGES = (
    (0x3000, 0x303F),   # CJK punctuation
    (0x3040, 0x309F),   # hiragana
    (0x30A0, 0x30FF),   # katakana
    (0x3400, 0x4DBF),   # CJK ext. A
    (0x4E00, 0x9FFF),   # CJK unified
    (0xF900, 0xFAFF),   # CJK compatibility
    (0xFF01, 0xFF60),   # full-width forms
    (0xFFE0, 0xFFE6),
)


def char_width(ch: str) -> float:
    if ch == KEEP_MARK:
        return 0.0
    code = ord(ch)
    for lo, hi in _WIDE_RANGES:
        if lo <= code <= hi:
            return 1.0
    return 0.5


def string_width(text: str) -> float:
    return sum(char_width(c) for c in text)


def clip_to_width(text: str, max_width: float) -> str:
    """Longest prefix of *text* whose display width fits *max_width*."""
    acc = 0.0
    for i, ch in enumerate(text):
        acc += char_width(ch)
        if acc > max_width:
            return text[:i]
    return text


def remove_noise(text: str) -> str:
    clean = text
    for pattern in NOISE_PATTERNS:
        clean = pattern.sub("", clean)
    return re.sub(r"\s+", " ", clean).strip()


def _is_content_word(word: str, conf: TextShapingConfig) -> bool:
    if KEEP_MARK in word:
        return True
    if len(word) < conf.min_word_len or len(word) > conf.max_word_len:
        return False
    return not word.isdigit()


def summarize(text: str, budget: float, conf: Optional[TextShapingConfig] = None) -> str:
    """
    Return the noise-free text if it fits *budget* display units,
    otherwise greedily join content words until the budget is used.
    """
    conf = conf or cfg.text
    clean = remove_noise(text)
    if string_width(clean) <= budget:
        return clean

    words = [w for w in _WORD_SPLIT.split(clean) if w]
    result = ""
    for word in words:
        if not _is_content_word(word, conf):
            continue
        candidate = f"{result} {word}" if result else word
        if string_width(candidate) > budget:
            break
        result = candidate

    if result:
        return result
    return clip_to_width(clean, budget / 2)


def score_break(
    text: str,
    i: int,
    prefer_break: Sequence[str],
    conf: Optional[TextShapingConfig] = None,
) -> float:
    """Score a break placed after ``text[i]``."""
    conf = conf or cfg.text
    ch = text[i]
    nxt = text[i + 1] if i + 1 < len(text) else ""

    score = 0.0
    if ch in prefer_break:
        score += conf.prefer_break_score
    if nxt not in PROHIBIT_START:
        score += conf.clean_start_score
    if ch not in PROHIBIT_END:
        score += conf.clean_end_score

    lo, hi = conf.middle_window
    position = i / len(text)
    if lo <= position <= hi:
        score += conf.middle_score
    return score


def break_lines(
    text: str,
    max_chars: float,
    max_lines: int,
    prefer_break: Optional[Sequence[str]] = None,
    conf: Optional[TextShapingConfig] = None,
) -> str:
    conf = conf or cfg.text
    prefer = tuple(prefer_break) if prefer_break is not None else conf.prefer_break

    text = text.strip()
    if max_lines <= 1:
        return clip_to_width(text, max_chars).rstrip()

    lines: List[str] = []
    remaining = text

    for line_no in range(max_lines):
        if not remaining:
            break
        if string_width(remaining) <= max_chars:
            lines.append(remaining)
            break
        if line_no == max_lines - 1:
            lines.append(clip_to_width(remaining, max_chars).rstrip())
            break

        best, best_score = -1, 0.0
        for i in range(int(len(remaining) * conf.scan_start_ratio), len(remaining)):
            if string_width(remaining[: i + 1]) > max_chars:
                break
            score = score_break(remaining, i, prefer, conf)
            if score > best_score:
                best, best_score = i, score

        if best >= 0:
            line = remaining[: best + 1].strip()
            remaining = remaining[best + 1:].strip()
        else:
            # forced cut, at least one glyph so the loop always advances
            cut = clip_to_width(remaining, max_chars) or remaining[0]
            remaining = remaining[len(cut):].lstrip()
            line = cut.rstrip()

        if line:
            lines.append(line)

    return "\n".join(lines)


def shape_title(
    raw: str,
    max_chars: Optional[int] = None,
    max_lines: Optional[int] = None,
    prefer_break: Optional[Sequence[str]] = None,
    conf: Optional[TextShapingConfig] = None,
) -> str:
    """Clean, summarise and line-break *raw* into at most *max_lines* lines."""
    conf = conf or cfg.text
    max_chars = conf.max_chars if max_chars is None else max_chars
    max_lines = conf.max_lines if max_lines is None else max_lines

    if not raw or not raw.strip():
        return ""
    if max_chars <= 0 or max_lines <= 0:
        return ""

    # already shaped text passes through
    parts = [remove_noise(p) for p in raw.splitlines()]
    parts = [p for p in parts if p]
    if 1 < len(parts) <= max_lines and all(string_width(p) <= max_chars for p in parts):
        return "\n".join(parts)

    summary = summarize(raw, max_chars * max_lines, conf)
    shaped = break_lines(summary, max_chars, max_lines, prefer_break, conf)
    log.debug("Shaped title %r → %r", raw[:40], shaped)
    return shaped
