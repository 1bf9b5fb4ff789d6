"""Renders a banner PNG from a request, a brand profile and a template."""

from __future__ import annotations

import gc
import json
import math
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from PIL import Image, ImageDraw, ImageStat

from config.settings import AppConfig, DEFAULT_COLORS, cfg
from config.templates import get_template
from core.autolayout import auto_adapt_layers
from core.layers import (
    BadgeLayer,
    ImageLayer,
    Layer,
    RectLayer,
    TextLayer,
    layers_by_kind,
    resolve_fill,
)
from core.models import BannerRequest
from core.profile import BrandProfile, load_profile, parse_profile
from core.tweaks import apply_tweaks, load_tweaks
from copywriting.shaping import shape_title
from imaging import colors as C
from imaging.background import BackgroundRemover, add_alpha_outline
from imaging.colorfit import harmonize
from imaging.effects import draw_ellipse_shadow, draw_floor_reflection
from imaging.fonts import FontManager
from imaging.helpers import composite_at, fit_image, open_rgba
from storage.store import DocumentStore
from utils.exceptions import ProfileError, StoreError
from utils.log_config import get_logger

log = get_logger(__name__)

ProfileSource = Union[BrandProfile, str, Path, Dict[str, Any]]

Box = Tuple[int, int, int, int]


def resolve_profile(source: ProfileSource) -> BrandProfile:
    if isinstance(source, BrandProfile):
        return source
    if isinstance(source, dict):
        return parse_profile(source)
    return load_profile(source)


def prepare_colors(
    profile: BrandProfile,
    override: Optional[Dict[str, str]] = None,
    dark_brightness: float = 30.0,
    lighten_delta: float = 10.0,
) -> BrandProfile:
    """Lift a near-black primary, then apply per-call colour overrides."""
    colors = profile.colors.model_dump()
    if C.brightness(colors["primary"]) < dark_brightness:
        colors["primary"] = C.lighten(colors["primary"], lighten_delta)
        log.debug("Primary too dark, lightened to %s", colors["primary"])

    for key, value in (override or {}).items():
        if not value:
            continue
        if not C.is_hex(value):
            raise ProfileError(f"Invalid override colour for {key}: {value!r}")
        colors[key] = value

    try:
        return profile.model_copy(update={"colors": type(profile.colors).model_validate(colors)})
    except ValueError as exc:
        raise ProfileError(f"Invalid colours: {exc}") from exc


def build_color_map(profile: BrandProfile, gain: float = 50.0) -> Dict[str, str]:
    """Palette slots with defaults, shifted by the learned saturation."""
    base = {**DEFAULT_COLORS, **profile.colors.as_map()}
    amount = (profile.saturation - 1.0) * gain
    if not amount:
        return {k: C.normalize(v) for k, v in base.items()}
    return {k: C.saturate(v, amount) for k, v in base.items()}


class BannerCompositor:

    def __init__(
        self,
        conf: Optional[AppConfig] = None,
        fonts: Optional[FontManager] = None,
        remover: Optional[BackgroundRemover] = None,
        store: Optional[DocumentStore] = None,
    ) -> None:
        self.cfg = conf or cfg
        self.fonts = fonts or FontManager(self.cfg.paths.fonts_dir, self.cfg.fonts)
        self.remover = remover or BackgroundRemover(self.cfg.bg, self.cfg.paths.uploads_dir)
        self.store = store

    # ── public ──────────────────────────────────────────────
    def generate(
        self,
        request: BannerRequest,
        profile: ProfileSource,
        out_path: Optional[Path] = None,
        notes: Optional[List[str]] = None,
        meta: Optional[Dict[str, Any]] = None,
        colors_override: Optional[Dict[str, str]] = None,
    ) -> Path:
        """
        Render *request* and write the PNG.

        Raises ``ProfileError`` for an invalid profile and
        ``UnknownTemplateError`` for an unregistered template; every other
        problem (missing image, failed removal, no fonts) degrades.
        """
        rc = self.cfg.render
        profile = prepare_colors(resolve_profile(profile), colors_override,
                                 rc.dark_brightness, rc.lighten_delta)

        template = get_template(request.template)
        request = request.apply_rules(profile.rules)
        layers = template(request)

        layers, profile = apply_tweaks(layers, request.template,
                                       self._tweaks_for(request.tenant), profile)
        auto_adapt_layers(layers, request.size, request.title,
                          profile.safe_margin, self.cfg.layout)

        colors = build_color_map(profile, rc.saturation_gain)
        canvas = Image.new("RGBA", request.size, (0, 0, 0, 0))
        self._draw_layers(canvas, layers, profile, colors)

        if notes:
            self._draw_notes(canvas, notes, profile)

        out = Path(out_path) if out_path else (
            self.cfg.paths.output_dir
            / f"banner_{request.template}_{request.width}x{request.height}.png"
        )
        out.parent.mkdir(parents=True, exist_ok=True)
        canvas.save(out, "PNG")

        if meta is not None:
            sidecar = out.with_suffix(".json")
            sidecar.write_text(
                json.dumps({**meta, "colors": colors}, ensure_ascii=False, indent=2),
                encoding="utf-8",
            )

        log.info("Composed [%s] %dx%d → %s", request.template,
                 request.width, request.height, out.name)
        del canvas
        gc.collect()
        return out

    # ── internals ───────────────────────────────────────────
    def _tweaks_for(self, tenant: Optional[str]):
        if not tenant or self.store is None:
            return None
        try:
            return load_tweaks(self.store, tenant)
        except StoreError as exc:
            log.warning("Tweaks unavailable for %s: %s", tenant, exc)
            return None

    def _draw_layers(
        self,
        canvas: Image.Image,
        layers: List[Layer],
        profile: BrandProfile,
        colors: Dict[str, str],
    ) -> None:
        for ly in layers_by_kind(layers):
            if isinstance(ly, RectLayer):
                self._draw_rect(canvas, ly, colors)
            elif isinstance(ly, ImageLayer):
                self._draw_image(canvas, ly, profile, colors)
            elif isinstance(ly, TextLayer):
                self._draw_text(canvas, ly, profile, colors)
            elif isinstance(ly, BadgeLayer):
                self._draw_badge(canvas, ly, profile, colors)

    def _clamp_box(self, x, y, w, h, size, safe) -> Box:
        """Shift the box inside the safe area and cut it at the far edges."""
        W, H = size
        x, y = max(x, safe), max(y, safe)
        return (
            int(x),
            int(y),
            int(min(x + w, W - safe) - x),
            int(min(y + h, H - safe) - y),
        )

    @staticmethod
    def _background_under(canvas: Image.Image, box: Box, fallback: str) -> str:
        """Mean colour of what is already drawn under *box*."""
        x0, y0, x1, y1 = box
        x0, y0 = max(0, x0), max(0, y0)
        x1, y1 = min(canvas.width, x1), min(canvas.height, y1)
        if x1 <= x0 or y1 <= y0:
            return fallback
        stat = ImageStat.Stat(canvas.crop((x0, y0, x1, y1)))
        r, g, b, a = stat.mean
        if a < 128:
            return fallback
        return C.rgb_to_hex((round(r), round(g), round(b)))

    def _draw_rect(self, canvas, ly: RectLayer, colors) -> None:
        draw = ImageDraw.Draw(canvas)
        x0, y0 = int(ly.x), int(ly.y)
        x1, y1 = int(ly.x + ly.w) - 1, int(ly.y + ly.h) - 1
        if x1 < x0 or y1 < y0:
            return
        draw.rectangle([x0, y0, x1, y1], fill=C.rgba(resolve_fill(ly.fill, colors)))

    def _draw_text(self, canvas, ly: TextLayer, profile: BrandProfile, colors) -> None:
        rc = self.cfg.render
        W, H = canvas.size
        safe = profile.safe_margin
        size = max(1, int(math.floor(ly.font_size * profile.font_scale)))

        x = int(max(ly.x, safe))
        y = int(max(ly.y, safe))
        max_w = min(ly.max_width, W - safe - x)
        line_h = size * rc.line_height

        max_chars = max(1, int(math.floor(max_w / (size * rc.char_width_ratio))))
        max_lines = max(1, int(math.floor((H - y - safe) / line_h)))
        text = shape_title(ly.text, max_chars=max_chars, max_lines=max_lines,
                           conf=self.cfg.text)
        if not text:
            return

        lines = text.split("\n")
        block = (x, y, int(x + max_w), int(y + line_h * len(lines)))
        behind = self._background_under(canvas, block, colors["primary"])
        color = C.ensure_contrast(resolve_fill(ly.fill, colors), behind, rc.min_contrast)

        font = self.fonts.get(size, ly.font_weight, profile.font.family, profile.font.path)
        draw = ImageDraw.Draw(canvas)
        cursor = float(y)
        for line in lines:
            if cursor + size > H - safe:
                break
            draw.text((x, int(cursor)), line, font=font, fill=C.rgba(color))
            cursor += line_h

    def _draw_badge(self, canvas, ly: BadgeLayer, profile: BrandProfile, colors) -> None:
        rc = self.cfg.render
        x, y, w, h = self._clamp_box(ly.x, ly.y, ly.w, ly.h, canvas.size, profile.safe_margin)
        if w <= 0 or h <= 0:
            return

        bg = resolve_fill(ly.fill, colors)
        draw = ImageDraw.Draw(canvas)
        radius = int(min(w, h) * rc.badge_radius_ratio)
        draw.rounded_rectangle([x, y, x + w - 1, y + h - 1], radius=radius, fill=C.rgba(bg))

        if not ly.text:
            return
        size = max(1, int(math.floor(h * rc.badge_font_ratio * profile.font_scale)))
        font = self.fonts.get(size, rc.bold_weight, profile.font.family, profile.font.path)
        color = C.ensure_contrast(resolve_fill(ly.text_fill, colors), bg, rc.min_contrast)

        l, t, r, b = draw.textbbox((0, 0), ly.text, font=font)
        tx = x + (w - (r - l)) / 2 - l
        ty = y + (h - (b - t)) / 2 - t
        draw.text((int(tx), int(ty)), ly.text, font=font, fill=C.rgba(color))

    def _prepare_source(self, ly: ImageLayer, colors) -> Path:
        src = Path(ly.src)
        if ly.remove_bg:
            src = self.remover.remove_background(src)
        if ly.color_fit and self.cfg.colorfit.enabled:
            src = harmonize(
                src,
                brand_hex=ly.color_fit.brand_hex or colors.get("primary"),
                mode=ly.color_fit.mode,
                strength=ly.color_fit.strength,
                cache_dir=self.cfg.paths.colorfit_dir,
                conf=self.cfg.colorfit,
            )
        if ly.outline:
            src = add_alpha_outline(src, ly.outline.width_px, ly.outline.color, ly.outline.opacity,
                                    out_dir=self.cfg.paths.uploads_dir)
        return src

    def _draw_image(self, canvas, ly: ImageLayer, profile: BrandProfile, colors) -> None:
        if not ly.src:
            return
        x, y, w, h = self._clamp_box(ly.x, ly.y, ly.w, ly.h, canvas.size, profile.safe_margin)
        if w <= 0 or h <= 0:
            return

        img = open_rgba(self._prepare_source(ly, colors))
        if img is None:
            log.warning("Image layer skipped, unreadable source: %s", ly.src)
            return

        fitted, (ox, oy) = fit_image(img, (w, h), ly.fit)
        dx, dy = x + ox, y + oy
        dw, dh = fitted.size

        if ly.shadow == "ellipse":
            offset = ly.shadow_offset or min(16, h * 0.06)
            draw_ellipse_shadow(canvas, dx + dw / 2, dy + dh + offset,
                                dw * 0.8, max(12, dh * 0.12), ly.shadow_opacity)
        elif ly.shadow == "floor":
            draw_floor_reflection(canvas, dx, dy + dh * 0.85, dw, dh * 0.25,
                                  ly.shadow_opacity * 0.7)

        if ly.radius and ly.radius > 0:
            r = int(min(ly.radius, min(w, h) / 2))
            mask = Image.new("L", fitted.size, 0)
            ImageDraw.Draw(mask).rounded_rectangle([0, 0, dw - 1, dh - 1], radius=r, fill=255)
            clipped = Image.new("RGBA", fitted.size, (0, 0, 0, 0))
            clipped.paste(fitted, (0, 0), mask)
            fitted = clipped

        composite_at(canvas, fitted, (dx, dy))
        del img

    def _draw_notes(self, canvas, notes: List[str], profile: BrandProfile) -> None:
        rc = self.cfg.render
        W, H = canvas.size
        safe = profile.safe_margin
        text = rc.notes_separator.join(n for n in notes if n)
        if not text:
            return

        size = max(1, int(math.floor(W * rc.notes_font_ratio)))
        font = self.fonts.get(size, 400, profile.font.family, profile.font.path)

        overlay = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        bottom = draw.textbbox((0, 0), text, font=font)[3]
        baseline = H - safe * 0.6
        draw.text((safe, int(baseline - bottom)), text, font=font,
                  fill=(0, 0, 0, int(255 * rc.notes_opacity)))
        canvas.alpha_composite(overlay)
