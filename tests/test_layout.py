"""Tests for layers, templates, tenant tweaks and auto-layout."""

import pytest

from config.settings import LayoutConfig
from config.templates import ALL_TEMPLATES, get_template
from core.autolayout import auto_adapt_layers, find_title
from core.layers import (
    BadgeLayer,
    ImageLayer,
    LiteralColor,
    PaletteRef,
    RectLayer,
    TextLayer,
    fill,
    layers_by_kind,
    resolve_fill,
)
from core.models import BannerRequest, CatalogItem
from core.tweaks import Tweak, TweakSet, apply_tweaks, load_tweaks, save_tweaks
from utils.exceptions import UnknownTemplateError


class TestLayers:

    def test_fill_kinds(self):
        assert fill("primary") == PaletteRef("primary")
        assert fill("#fff") == LiteralColor("#fff")

    def test_resolve_fill(self):
        colors = {"primary": "#111111", "accent": "#222222"}
        assert resolve_fill(PaletteRef("accent"), colors) == "#222222"
        assert resolve_fill(LiteralColor("#abcdef"), colors) == "#abcdef"
        assert resolve_fill(PaletteRef("secondary"), colors) == "#ffffff"
        assert resolve_fill(PaletteRef("mystery"), colors) == "#111111"

    def test_draw_order_is_stable(self):
        t1 = TextLayer("a", 0, 0, 10, 10)
        t2 = TextLayer("b", 0, 0, 10, 10)
        badge = BadgeLayer("c", 0, 0, 10, 10)
        rect = RectLayer(0, 0, 10, 10)
        img = ImageLayer("x.png", 0, 0, 10, 10)
        assert layers_by_kind([badge, t1, img, t2, rect]) == [rect, img, t1, t2, badge]

    def test_price_detection(self):
        assert TextLayer("¥1,980", 0, 0, 1, 1).looks_like_price
        assert TextLayer("1,980円", 0, 0, 1, 1).looks_like_price
        assert not TextLayer("夏の新作", 0, 0, 1, 1).looks_like_price


class TestTemplates:

    def test_unknown(self):
        with pytest.raises(UnknownTemplateError, match="nope"):
            get_template("nope")

    def test_basic_sale_optional_layers(self):
        plain = get_template("basic-sale")(BannerRequest(title="x", size=(1000, 1000)))
        full = get_template("basic-sale")(BannerRequest(title="x", price="¥1", discount="10%", size=(1000, 1000)))
        assert len(plain) == 3
        assert len(full) == 5
        assert plain[2].font_size == 100

    def test_product_hero_image_only_when_given(self):
        tpl = get_template("product-hero")
        assert not any(isinstance(ly, ImageLayer) for ly in tpl(BannerRequest(title="x")))
        layers = tpl(BannerRequest(title="x", image="p.png", fit="cover"))
        img = next(ly for ly in layers if isinstance(ly, ImageLayer))
        assert img.fit == "cover" and img.remove_bg

    def test_variant_grid_caps_at_four(self):
        layers = get_template("variant-grid")(BannerRequest(title="x", variants=list("ABCDEF")))
        assert sum(1 for ly in layers if isinstance(ly, TextLayer)) == 1 + 4

    def test_catalog_grid_items(self):
        items = [CatalogItem(image="a.png", title="A", price="¥1", badge="NEW") for _ in range(5)]
        layers = get_template("catalog-grid")(BannerRequest(title="x", items=items))
        assert sum(1 for ly in layers if isinstance(ly, ImageLayer)) == 5
        assert sum(1 for ly in layers if isinstance(ly, BadgeLayer)) == 5

    def test_limited_time_period(self):
        layers = get_template("limited-time")(BannerRequest(title="x", period="6/1〜6/7"))
        badge = next(ly for ly in layers if isinstance(ly, BadgeLayer))
        assert badge.text == "期間：6/1〜6/7"

    def test_templates_scale_with_canvas(self):
        for tpl in ALL_TEMPLATES.values():
            small = tpl(BannerRequest(title="x", size=(500, 500)))
            big = tpl(BannerRequest(title="x", size=(1000, 1000)))
            assert small[0].w * 2 == big[0].w


class TestTweaks:

    def _layers(self):
        return [
            TextLayer("title", 0, 100, 500, 30),
            TextLayer("¥1,980", 0, 200, 500, 40),
            BadgeLayer("SALE", 0, 300, 100, 50),
            ImageLayer("p.png", 0, 400, 200, 200),
        ]

    def test_no_tweaks(self, profile):
        layers = self._layers()
        out, prof = apply_tweaks(layers, "basic-sale", None, profile)
        assert out[0].font_size == 30 and prof is profile

    def test_scale_is_floored(self, profile):
        tweaks = TweakSet({"basic-sale": Tweak(title_scale=1.1, price_scale=0.5)})
        layers, _ = apply_tweaks(self._layers(), "basic-sale", tweaks, profile)
        assert layers[0].font_size == 33
        assert layers[1].font_size == 20

    def test_boxes_and_spacing(self, profile):
        tweaks = TweakSet({"*": Tweak(badge_scale=2, image_scale=0.5, spacing_scale=0.5)})
        layers, _ = apply_tweaks(self._layers(), "rank-award", tweaks, profile)
        badge, img = layers[2], layers[3]
        assert (badge.w, badge.h, badge.y) == (200, 100, 150)
        assert (img.w, img.h, img.y) == (100, 100, 200)
        assert layers[0].y == 50

    def test_specific_overrides_wildcard(self):
        tweaks = TweakSet({"*": Tweak(title_scale=1.2, badge_scale=1.5), "price-push": Tweak(title_scale=0.9)})
        spec = tweaks.for_template("price-push")
        assert spec.title_scale == 0.9
        assert spec.badge_scale == 1.5
        assert tweaks.for_template("basic-sale").title_scale == 1.2

    def test_safe_margin_override(self, profile):
        tweaks = TweakSet({"*": Tweak(safe_margin_override=64)})
        _, prof = apply_tweaks(self._layers(), "basic-sale", tweaks, profile)
        assert prof.safe_margin == 64
        assert profile.safe_margin == 36

    def test_persisted(self, store):
        save_tweaks(store, "demo", TweakSet({"*": Tweak(title_scale=1.1)}))
        assert load_tweaks(store, "demo").to_dict() == {"*": {"title_scale": 1.1}}
        assert load_tweaks(store, "other") is None


class TestAutoLayout:

    def test_find_title_prefers_text_match(self):
        a = TextLayer("大きい", 0, 0, 10, 90)
        b = TextLayer("タイトル", 0, 0, 10, 40)
        assert find_title([a, b], "タイトル") is b
        assert find_title([a, b], "other") is a
        assert find_title([RectLayer(0, 0, 1, 1)]) is None

    def test_multiline_title_pushes_price_down(self):
        title = TextLayer("一行目\n二行目", 0, 100, 800, 100)
        price = TextLayer("¥1,980", 0, 500, 800, 60)
        label = TextLayer("説明", 0, 500, 800, 30)
        auto_adapt_layers([title, price, label], (1000, 1000), title.text, 36, LayoutConfig())

        assert title.font_size == 92
        assert price.y == 500 + 25
        assert label.y == 500

    def test_push_is_capped_at_bottom(self):
        title = TextLayer("一行目\n二行目", 0, 100, 800, 100)
        badge = BadgeLayer("SALE", 0, 940, 100, 40)
        auto_adapt_layers([title, badge], (1000, 1000), title.text, 36, LayoutConfig())
        assert badge.y == 1000 - 36 * 1.5

    def test_short_title_grows(self):
        title = TextLayer("夏の新作", 0, 100, 800, 100)
        auto_adapt_layers([title], (1000, 1000), "夏の新作", 36, LayoutConfig())
        assert title.font_size == 106

    def test_portrait_image_keeps_centre(self, tmp_dir):
        from PIL import Image

        src = tmp_dir / "tall.png"
        Image.new("RGBA", (50, 100)).save(src)
        img = ImageLayer(str(src), 100, 100, 200, 400)
        auto_adapt_layers([img], (1000, 1000), None, 36, LayoutConfig())

        assert img.h == pytest.approx(432)
        assert img.w == pytest.approx(190)
        assert img.x + img.w / 2 == pytest.approx(200)
        assert img.y + img.h / 2 == pytest.approx(300)

    def test_landscape_image_lowered(self, product_png):
        img = ImageLayer(str(product_png), 0, 0, 200, 200)
        auto_adapt_layers([img], (1000, 1000), None, 36, LayoutConfig())
        assert img.h == pytest.approx(184)
        assert img.w == 200

    def test_missing_image_ignored(self, tmp_dir):
        img = ImageLayer(str(tmp_dir / "missing.png"), 0, 0, 200, 200)
        auto_adapt_layers([img], (1000, 1000))
        assert (img.w, img.h) == (200, 200)


class TestRequest:

    def test_apply_rules_hides_fields(self, profile):
        rules = profile.rules.model_copy(update={"show_price": False, "show_badge": False})
        req = BannerRequest(title="x", price="¥1", discount="10%", badge="1位").apply_rules(rules)
        assert req.price is None and req.badge is None
        assert req.discount == "10%"

    def test_from_dict(self):
        req = BannerRequest.from_dict({
            "title": "x",
            "size": [600, 400],
            "items": [{"title": "A", "price": "¥1"}],
            "unknown": 1,
        })
        assert req.size == (600, 400)
        assert req.items[0] == CatalogItem(title="A", price="¥1")

    def test_summary_is_json_safe(self):
        data = BannerRequest(title="x", size=(300, 250), items=[CatalogItem(title="A")]).summary()
        assert data["size"] == [300, 250]
        assert data["items"] == [{"image": None, "title": "A", "price": None, "badge": None}]
