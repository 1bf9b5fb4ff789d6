"""
Background removal behind a pluggable strategy, plus alpha-edge
refinement and an optional glow outline for cut-outs.

Every strategy reports a ``BGRemovalResult`` instead of raising; the
remover falls back to the original image whenever removal fails.
"""

from __future__ import annotations

import gc
import subprocess
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import requests
from PIL import Image, ImageFilter

from config.settings import BackgroundRemovalConfig, cfg
from imaging import colors as C
from utils.log_config import get_logger

log = get_logger(__name__)


@dataclass
class BGRemovalResult:
    success:      bool
    use_original: bool
    output_path:  Optional[Path]  = None
    stats:        Dict[str, Any]  = field(default_factory=dict)


def _fallback(**stats) -> BGRemovalResult:
    return BGRemovalResult(False, True, stats=stats)


class RemovalStrategy(ABC):
    name = "base"

    @abstractmethod
    def run(self, src: Path, dst: Path) -> BGRemovalResult:
        """Write a cut-out PNG of *src* to *dst*."""


class NoopStrategy(RemovalStrategy):
    name = "none"

    def run(self, src: Path, dst: Path) -> BGRemovalResult:
        return _fallback(mode=self.name)


class SubprocessStrategy(RemovalStrategy):
    """``rembg i <src> <dst>`` (or any CLI with the same contract)."""

    name = "cli"

    def __init__(self, command: str = "rembg", timeout: float = 60.0) -> None:
        self.command = command
        self.timeout = timeout

    def run(self, src: Path, dst: Path) -> BGRemovalResult:
        try:
            subprocess.run(
                [self.command, "i", str(src), str(dst)],
                check=True,
                capture_output=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            log.warning("BG removal CLI failed: %s", exc)
            return _fallback(mode=self.name, error=str(exc))

        if not dst.exists():
            return _fallback(mode=self.name, error="no output written")
        return BGRemovalResult(True, False, dst, {"mode": self.name})


class HttpStrategy(RemovalStrategy):
    """Multipart POST of the image; the response body is the cut-out PNG."""

    name = "http"

    def __init__(self, url: str, timeout: float = 60.0, session: Optional[requests.Session] = None) -> None:
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def run(self, src: Path, dst: Path) -> BGRemovalResult:
        if not self.url:
            return _fallback(mode=self.name, error="no endpoint configured")
        try:
            with open(src, "rb") as fh:
                resp = self.session.post(
                    self.url,
                    files={"file": (src.name, fh, "application/octet-stream")},
                    timeout=self.timeout,
                )
            resp.raise_for_status()
            with Image.open(BytesIO(resp.content)) as im:
                im.convert("RGBA").save(dst, "PNG")
        except (requests.RequestException, OSError, ValueError) as exc:
            log.warning("BG removal HTTP failed: %s", exc)
            return _fallback(mode=self.name, error=str(exc))
        return BGRemovalResult(True, False, dst, {"mode": self.name, "bytes": len(resp.content)})


class RembgStrategy(RemovalStrategy):
    """
    In-process ``rembg``.  Calls are serialised through a lock (the model
    is not guaranteed thread-safe); install with the ``rembg`` extra.
    """

    name = "rembg"
    _lock = threading.Lock()

    def run(self, src: Path, dst: Path) -> BGRemovalResult:
        try:
            from rembg import remove as rembg_remove

            raw = src.read_bytes()
            with self._lock:
                out_data = rembg_remove(raw)
            result = Image.open(BytesIO(out_data)).convert("RGBA")
        except Exception as exc:
            log.warning("BG removal (rembg) failed: %s", exc)
            return _fallback(mode=self.name, error=str(exc))

        alpha = np.asarray(result)[:, :, 3]
        kept = float(np.mean(alpha > 10)) if alpha.size else 0.0
        result.save(dst, "PNG")
        log.info("BG removal kept %.1f%%", kept * 100)
        del alpha, result
        gc.collect()
        return BGRemovalResult(True, False, dst, {"mode": self.name, "ratio": kept})


def make_strategy(conf: BackgroundRemovalConfig) -> RemovalStrategy:
    if conf.mode == "cli":
        return SubprocessStrategy(conf.cli_command, conf.timeout)
    if conf.mode == "http":
        return HttpStrategy(conf.http_url, conf.timeout)
    if conf.mode == "rembg":
        return RembgStrategy()
    return NoopStrategy()


# ── alpha refinement ────────────────────────────────────────
def _shifts(padded: np.ndarray, h: int, w: int):
    for dy in (0, 1, 2):
        for dx in (0, 1, 2):
            yield padded[dy:dy + h, dx:dx + w]


def refine_alpha_array(alpha: np.ndarray, conf: Optional[BackgroundRemovalConfig] = None) -> np.ndarray:
    """
    Refine semi-transparent pixels using their 3×3 neighbourhood:
    sharp local alpha swings (hair, fibres) are boosted, faint isolated
    specks are cleared, and the remaining edge pixels are smoothed.
    """
    conf = conf or cfg.bg
    a = alpha.astype(np.float64)
    h, w = a.shape

    edge = np.pad(a, 1, mode="edge")
    max_var = np.max([np.abs(s - a) for s in _shifts(edge, h, w)], axis=0)

    total = sum(_shifts(np.pad(a, 1, mode="constant"), h, w))
    count = sum(_shifts(np.pad(np.ones_like(a), 1, mode="constant"), h, w))
    mean = total / count

    partial = (a > 0) & (a < 255)
    hair = partial & (max_var > conf.hair_variation) & (a > conf.hair_min_alpha)
    noise = (partial & ~hair & (a < conf.noise_alpha) & (mean < conf.noise_avg)
             & (np.abs(a - mean) > conf.noise_diff))
    smooth = partial & ~hair & ~noise

    out = a.copy()
    out[hair] = np.minimum(255.0, np.floor(a[hair] * conf.hair_boost))
    out[noise] = 0.0
    blend = conf.smooth_weight * a + (1 - conf.smooth_weight) * mean
    out[smooth] = np.floor(blend[smooth] + 0.5)
    return np.clip(out, 0, 255).astype(np.uint8)


def refine_alpha(src: Path, dst: Path, conf: Optional[BackgroundRemovalConfig] = None) -> Path:
    with Image.open(src) as im:
        img = im.convert("RGBA")
    alpha = np.asarray(img.getchannel("A"))
    img.putalpha(Image.fromarray(refine_alpha_array(alpha, conf)))
    img.save(dst, "PNG")
    return dst


def add_alpha_outline(
    src: Union[str, Path],
    width_px: int = 2,
    color: str = "#ffffff",
    opacity: float = 0.9,
    out_dir: Optional[Path] = None,
) -> Path:
    """
    Draw a solid glow just outside the cut-out's alpha edge.  The result
    goes to *out_dir* (the uploads folder by default), never beside *src*.
    """
    src = Path(src)
    out_dir = Path(out_dir or cfg.paths.uploads_dir)
    out = out_dir / f"{src.stem}_outline.png"
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        with Image.open(src) as im:
            img = im.convert("RGBA")
        grown = img.getchannel("A").filter(ImageFilter.GaussianBlur(max(1, width_px)))
        level = int(round(255 * max(0.0, min(1.0, opacity))))
        mask = grown.point(lambda v: level if v >= 1 else 0)

        outline = Image.new("RGBA", img.size, C.rgba(color))
        outline.putalpha(mask)
        Image.alpha_composite(outline, img).save(out, "PNG")
    except Exception as exc:
        log.warning("Outline failed for %s: %s", src.name, exc)
        return src
    return out


class BackgroundRemover:
    """Runs the configured strategy, then refines the alpha edges."""

    def __init__(
        self,
        conf: Optional[BackgroundRemovalConfig] = None,
        out_dir: Optional[Path] = None,
        strategy: Optional[RemovalStrategy] = None,
    ) -> None:
        self.cfg = conf or cfg.bg
        self.out_dir = out_dir or cfg.paths.uploads_dir
        self.strategy = strategy or make_strategy(self.cfg)

    @property
    def enabled(self) -> bool:
        return not isinstance(self.strategy, NoopStrategy)

    def remove(self, src: Path) -> BGRemovalResult:
        src = Path(src)
        if not src.exists():
            return _fallback(error="source missing")
        if not self.enabled:
            return _fallback(mode=self.strategy.name)

        self.out_dir.mkdir(parents=True, exist_ok=True)
        temp = self.out_dir / f"rembg_temp_{src.stem}.png"
        final = self.out_dir / f"rembg_{src.stem}.png"

        log.info("BG removal [%s]: %s", self.strategy.name, src.name)
        result = self.strategy.run(src, temp)
        if not result.success:
            return result

        try:
            if self.cfg.refine_edges:
                refine_alpha(temp, final, self.cfg)
                temp.unlink(missing_ok=True)
            else:
                temp.replace(final)
        except Exception as exc:
            log.warning("Alpha refinement failed for %s: %s", src.name, exc)
            return _fallback(mode=self.strategy.name, error=str(exc))

        return BGRemovalResult(True, False, final, result.stats)

    def remove_background(self, src: Union[str, Path]) -> Path:
        """Path of the cut-out, or *src* itself when removal is off or fails."""
        result = self.remove(Path(src))
        if result.success and result.output_path is not None:
            return result.output_path
        return Path(src)
