"""
Font manager: resolve a family + weight to a FreeType font.

Lookup order: explicit path, then the family and its configured
fallbacks by file name (bold variant for weight >= 700) in the local
fonts dir and then the system font directories, then any other font in
the local fonts dir, a platform default, and finally PIL's built-in font.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import ImageFont

from config.settings import FontConfig, cfg
from utils.log_config import get_logger

log = get_logger(__name__)

FONT_SUFFIXES = (".ttf", ".otf", ".ttc")

# family → (regular files, bold files)
FAMILY_FILES: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "noto sans cjk jp": (
        ("NotoSansCJKjp-Regular.otf", "NotoSansCJK-Regular.ttc"),
        ("NotoSansCJKjp-Bold.otf", "NotoSansCJK-Bold.ttc"),
    ),
    "noto sans jp": (
        ("NotoSansJP-Regular.ttf", "NotoSansJP-Regular.otf", "NotoSansJP-VariableFont_wght.ttf"),
        ("NotoSansJP-Bold.ttf", "NotoSansJP-Bold.otf", "NotoSansJP-VariableFont_wght.ttf"),
    ),
    "hiragino sans": (
        ("ヒラギノ角ゴシック W3.ttc", "HiraginoSans-W3.ttc"),
        ("ヒラギノ角ゴシック W6.ttc", "HiraginoSans-W6.ttc"),
    ),
    "yu gothic":        (("YuGothR.ttc", "yugothic.ttf"), ("YuGothB.ttc", "yugothib.ttf")),
    "meiryo":           (("meiryo.ttc",), ("meiryob.ttc",)),
    "ms gothic":        (("msgothic.ttc",), ("msgothic.ttc",)),
    "arial unicode ms": (("Arial Unicode.ttf", "ARIALUNI.TTF"), ("Arial Unicode.ttf", "ARIALUNI.TTF")),
    "dejavu sans":      (("DejaVuSans.ttf",), ("DejaVuSans-Bold.ttf",)),
}

SYSTEM_FONT_DIRS = (
    Path("C:/Windows/Fonts"),
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path("/Library/Fonts"),
    Path("/System/Library/Fonts"),
    Path.home() / ".fonts",
    Path.home() / ".local" / "share" / "fonts",
)


def _platform_default(bold: bool) -> str:
    if sys.platform.startswith("win"):
        return "arialbd.ttf" if bold else "arial.ttf"
    if sys.platform == "darwin":
        return "Helvetica.ttc"
    return "DejaVuSans-Bold.ttf" if bold else "DejaVuSans.ttf"


class FontManager:
    """Caches one font object per (family, weight, size, path)."""

    def __init__(self, fonts_dir: Optional[Path] = None, conf: Optional[FontConfig] = None) -> None:
        self.fonts_dir = fonts_dir or cfg.paths.fonts_dir
        self.cfg = conf or cfg.fonts
        self._cache: Dict[tuple, ImageFont.ImageFont] = {}
        self._index: Optional[Dict[str, Path]] = None

    def get(
        self,
        size: int,
        weight: int = 400,
        family: Optional[str] = None,
        path: Optional[str] = None,
    ) -> ImageFont.ImageFont:
        size = max(1, int(size))
        family = family or self.cfg.family
        key = (family, weight >= 700, size, path)
        if key not in self._cache:
            self._cache[key] = self._load(size, weight >= 700, family, path)
        return self._cache[key]

    # ── internals ───────────────────────────────────────────
    def _candidates(self, family: str, bold: bool) -> List[str]:
        names: List[str] = []
        for fam in (family, *self.cfg.fallbacks):
            regular, heavy = FAMILY_FILES.get(fam.lower(), ((), ()))
            names.extend(heavy if bold else regular)
            if bold:
                names.extend(regular)
        return list(dict.fromkeys(names))

    def _system_index(self) -> Dict[str, Path]:
        if self._index is None:
            self._index = {}
            for root in SYSTEM_FONT_DIRS:
                if not root.is_dir():
                    continue
                for p in root.rglob("*"):
                    if p.suffix.lower() in FONT_SUFFIXES:
                        self._index.setdefault(p.name.lower(), p)
            log.debug("Indexed %d system fonts", len(self._index))
        return self._index

    def _try(self, target, size: int) -> Optional[ImageFont.FreeTypeFont]:
        try:
            return ImageFont.truetype(str(target), size)
        except OSError:
            return None

    def _local_family_files(self, family: str, bold: bool) -> List[Path]:
        """Files in the fonts dir named after *family* (``Brand Sans`` → ``BrandSans-*.ttf``)."""
        if not self.fonts_dir.is_dir():
            return []
        stem = family.lower().replace(" ", "")
        hits = [p for p in sorted(self.fonts_dir.iterdir())
                if p.suffix.lower() in FONT_SUFFIXES and p.stem.lower().replace(" ", "").startswith(stem)]
        # bold files first for heavy weights, last otherwise
        return sorted(hits, key=lambda p: ("bold" in p.stem.lower()) != bold)

    def _load(self, size: int, bold: bool, family: str, path: Optional[str]) -> ImageFont.ImageFont:
        if path:
            font = self._try(path, size)
            if font:
                return font
            log.warning("Font path %s unusable, falling back", path)

        names = self._candidates(family, bold)

        local = [self.fonts_dir / name for name in names]
        local += self._local_family_files(family, bold)
        for target in dict.fromkeys(local):
            if target.exists():
                font = self._try(target, size)
                if font:
                    log.debug("Font %s → %s", family, target)
                    return font

        index = self._system_index()
        for name in names:
            hit = index.get(name.lower())
            if hit:
                font = self._try(hit, size)
                if font:
                    log.debug("Font %s → %s", family, hit)
                    return font

        if self.fonts_dir.is_dir():
            for target in sorted(self.fonts_dir.iterdir()):
                if target.suffix.lower() in FONT_SUFFIXES:
                    font = self._try(target, size)
                    if font:
                        log.debug("No %s font found, using local font %s", family, target.name)
                        return font

        default = _platform_default(bold)
        font = self._try(default, size)
        if font:
            log.debug("No %s font found, using platform default %s", family, default)
            return font

        log.warning("No TrueType font found for %s, using PIL default", family)
        return ImageFont.load_default(size=size)
