"""
Colour arithmetic on ``#rrggbb`` strings.

HSL adjustments take percentage points (``lighten(c, 10)`` adds 10 % to
lightness), contrast follows the WCAG relative-luminance formula.
"""

from __future__ import annotations

import colorsys
import re
from typing import List, Tuple

RGB = Tuple[int, int, int]

HEX_RE = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

BLACK = "#000000"
WHITE = "#ffffff"


def is_hex(value: str) -> bool:
    return bool(value) and bool(HEX_RE.match(value))


def hex_to_rgb(value: str) -> RGB:
    if not is_hex(value):
        raise ValueError(f"Not a hex colour: {value!r}")
    h = value[1:]
    if len(h) == 3:
        h = "".join(ch * 2 for ch in h)
    return int(h[0:2], 16), int(h[2:4], 16), int(h[4:6], 16)


def rgb_to_hex(rgb) -> str:
    r, g, b = (max(0, min(255, int(round(c)))) for c in rgb[:3])
    return f"#{r:02x}{g:02x}{b:02x}"


def normalize(value: str) -> str:
    return rgb_to_hex(hex_to_rgb(value))


def rgba(value: str, alpha: int = 255) -> Tuple[int, int, int, int]:
    r, g, b = hex_to_rgb(value)
    return r, g, b, alpha


# ── perception ──────────────────────────────────────────────
def brightness(value: str) -> float:
    """Perceived brightness, 0–255."""
    r, g, b = hex_to_rgb(value)
    return (r * 299 + g * 587 + b * 114) / 1000


def luminance(rgb) -> float:
    def chan(c: float) -> float:
        c = c / 255
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    r, g, b = rgb[:3]
    return 0.2126 * chan(r) + 0.7152 * chan(g) + 0.0722 * chan(b)


def contrast_ratio(a, b) -> float:
    """WCAG contrast between two colours (hex strings or RGB tuples)."""
    la = luminance(hex_to_rgb(a) if isinstance(a, str) else a)
    lb = luminance(hex_to_rgb(b) if isinstance(b, str) else b)
    hi, lo = max(la, lb), min(la, lb)
    return (hi + 0.05) / (lo + 0.05)


def best_text_on(background) -> str:
    """Black or white, whichever reads better on *background*."""
    if contrast_ratio(background, BLACK) >= contrast_ratio(background, WHITE):
        return BLACK
    return WHITE


def ensure_contrast(fg: str, background, minimum: float = 4.5) -> str:
    if contrast_ratio(fg, background) >= minimum:
        return fg
    return best_text_on(background)


# ── HSL adjustments ─────────────────────────────────────────
def to_hsl(value: str) -> Tuple[float, float, float]:
    """Return ``(hue°, saturation 0–1, lightness 0–1)``."""
    r, g, b = (c / 255 for c in hex_to_rgb(value))
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    return h * 360.0, s, l


def from_hsl(h: float, s: float, l: float) -> str:
    s = max(0.0, min(1.0, s))
    l = max(0.0, min(1.0, l))
    r, g, b = colorsys.hls_to_rgb((h % 360.0) / 360.0, l, s)
    return rgb_to_hex((r * 255, g * 255, b * 255))


def lighten(value: str, amount: float = 10) -> str:
    h, s, l = to_hsl(value)
    return from_hsl(h, s, l + amount / 100)


def saturate(value: str, amount: float = 10) -> str:
    h, s, l = to_hsl(value)
    return from_hsl(h, s + amount / 100, l)


def desaturate(value: str, amount: float = 10) -> str:
    return saturate(value, -amount)


def spin(value: str, degrees: float) -> str:
    h, s, l = to_hsl(value)
    return from_hsl(h + degrees, s, l)


def complement(value: str) -> str:
    return spin(value, 180)


def analogous(value: str, results: int = 6, slices: int = 30) -> List[str]:
    """The colour itself followed by neighbours spread around its hue."""
    h, s, l = to_hsl(value)
    part = 360 / slices
    out = [normalize(value)]
    hue = (h - part * (results >> 1) + 720) % 360
    for _ in range(results - 1):
        hue = (hue + part) % 360
        out.append(from_hsl(hue, s, l))
    return out


def mix(a: str, b: str, amount: float = 50) -> str:
    """Move *amount* percent from *a* toward *b*."""
    p = amount / 100
    ra, ga, ba = hex_to_rgb(a)
    rb, gb, bb = hex_to_rgb(b)
    return rgb_to_hex((
        (rb - ra) * p + ra,
        (gb - ga) * p + ga,
        (bb - ba) * p + ba,
    ))
