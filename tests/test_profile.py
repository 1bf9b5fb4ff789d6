"""Tests for brand profiles and feedback."""

import pytest

from config.settings import cfg
from core.profile import (
    FeedbackTag,
    ProfileRepository,
    Tone,
    apply_feedback,
    default_profile,
    init_profile_from_logo,
    load_profile,
    parse_profile,
    save_profile,
)
from utils.exceptions import ProfileError


class TestParse:

    def test_camelcase_round_trip(self, profile, tmp_dir):
        path = save_profile(profile, tmp_dir / "p.json")
        text = path.read_text(encoding="utf-8")
        assert "brandName" in text and "safeMargin" in text
        assert load_profile(path) == profile

    def test_legacy_tone(self):
        prof = parse_profile({"brandName": "x", "colors": {"primary": "#fff"}, "tone": "上品"})
        assert prof.tone is Tone.ELEGANT

    def test_null_multipliers_default(self):
        prof = parse_profile({"brandName": "x", "colors": {"primary": "#fff"}, "fontScale": None})
        assert prof.font_scale == 1.0

    def test_safe_margin_defaults_to_render_config(self):
        prof = parse_profile({"brandName": "x", "colors": {"primary": "#fff"}})
        assert prof.safe_margin == cfg.render.default_safe_margin == 36

    @pytest.mark.parametrize("data", [
        {"colors": {"primary": "#fff"}},
        {"brandName": "x", "colors": {"primary": "blue"}},
        {"brandName": "x", "colors": {"primary": "#fff"}, "fontScale": 3.0},
        {"brandName": "x", "colors": {"primary": "#fff"}, "tone": "angry"},
    ])
    def test_invalid(self, data):
        with pytest.raises(ProfileError):
            parse_profile(data)

    def test_missing_file(self, tmp_dir):
        with pytest.raises(ProfileError):
            load_profile(tmp_dir / "nope.json")


class TestFeedback:

    def test_larger_text(self, profile):
        assert apply_feedback(profile, "larger_text").font_scale == pytest.approx(1.05)

    def test_legacy_tag(self, profile):
        assert apply_feedback(profile, "上品に").saturation == pytest.approx(0.9)

    def test_margin_steps(self, profile):
        assert apply_feedback(profile, FeedbackTag.WIDER_MARGIN).safe_margin == 44
        assert apply_feedback(profile, "tighter-margin").safe_margin == 28

    def test_clamped(self, profile):
        prof = profile.model_copy(update={"font_scale": 1.5, "saturation": 0.6, "safe_margin": 16})
        assert apply_feedback(prof, "larger_text").font_scale == 1.5
        assert apply_feedback(prof, "elegant").saturation == 0.6
        assert apply_feedback(prof, "tighter_margin").safe_margin == 16

    def test_original_untouched(self, profile):
        apply_feedback(profile, "stand_out")
        assert profile.saturation == 1.0

    def test_unknown_tag(self, profile):
        with pytest.raises(ProfileError, match="larger_text"):
            apply_feedback(profile, "make it pop")


class TestRepository:

    def test_save_and_require(self, store, profile):
        repo = ProfileRepository(store)
        repo.save("demo", profile)
        assert repo.require("demo") == profile
        assert repo.get("other") is None

    def test_require_missing(self, store):
        with pytest.raises(ProfileError):
            ProfileRepository(store).require("ghost")

    def test_feedback_persists(self, store, profile):
        repo = ProfileRepository(store)
        repo.save("demo", profile)
        repo.apply_feedback("demo", "larger_text")
        updated = repo.apply_feedback("demo", "larger_text")
        assert updated.font_scale == pytest.approx(1.1)
        assert repo.require("demo").font_scale == pytest.approx(1.1)

    def test_feedback_missing_tenant(self, store):
        with pytest.raises(ProfileError):
            ProfileRepository(store).apply_feedback("ghost", "larger_text")


class TestOnboarding:

    def test_from_logo(self, photo_jpg):
        prof = init_profile_from_logo(photo_jpg, "ロゴ商店")
        assert prof.brand_name == "ロゴ商店"
        assert prof.colors.primary.startswith("#")
        assert prof.colors.text in ("#000000", "#ffffff")
        assert prof.rules.show_badge is True

    def test_unreadable_logo_falls_back(self, tmp_dir):
        bad = tmp_dir / "logo.png"
        bad.write_bytes(b"not an image")
        assert init_profile_from_logo(bad, "x") == default_profile("x")
