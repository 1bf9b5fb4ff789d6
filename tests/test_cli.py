"""CLI smoke tests through Typer's runner."""

import pytest
from typer.testing import CliRunner

from cli.app import app
from config.settings import AppConfig, PathConfig, cfg
from core.profile import ProfileRepository
from storage.store import DocumentStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_paths():
    original = cfg.paths
    yield
    cfg.paths = original


def _run(tmp_dir, *args):
    return runner.invoke(app, ["--data-dir", str(tmp_dir), *args])


def _repo(tmp_dir):
    return ProfileRepository(DocumentStore.from_config(AppConfig(paths=PathConfig.under(tmp_dir))))


class TestInfo:

    def test_presets(self, tmp_dir):
        result = _run(tmp_dir, "presets")
        assert result.exit_code == 0
        assert "r10_product" in result.output

    def test_no_command_lists_commands(self, tmp_dir):
        result = _run(tmp_dir)
        assert result.exit_code == 0
        assert "generate" in result.output


class TestCheck:

    def test_clean_title(self, tmp_dir):
        assert _run(tmp_dir, "check", "春の大感謝セール").exit_code == 0

    def test_forbidden_title(self, tmp_dir):
        assert _run(tmp_dir, "check", "業界一の品質").exit_code == 2

    def test_evidence_clears_claim(self, tmp_dir):
        assert _run(tmp_dir, "check", "No.1 保冷ボトル").exit_code == 2
        assert _run(tmp_dir, "check", "No.1 保冷ボトル", "--evidence", "自社調べ").exit_code == 0


class TestProfiles:

    def test_init_then_feedback(self, tmp_dir):
        assert _run(tmp_dir, "init-profile", "--brand", "北欧雑貨", "--tenant", "demo").exit_code == 0
        assert _run(tmp_dir, "feedback", "--tenant", "demo", "larger_text").exit_code == 0

        prof = _repo(tmp_dir).require("demo")
        assert prof.brand_name == "北欧雑貨"
        assert prof.font_scale == pytest.approx(1.05)

    def test_primary_override(self, tmp_dir):
        result = _run(tmp_dir, "init-profile", "--tenant", "demo", "--primary", "#2255AA")
        assert result.exit_code == 0
        assert _repo(tmp_dir).require("demo").colors.primary.lower() == "#2255aa"

    def test_bad_primary(self, tmp_dir):
        assert _run(tmp_dir, "init-profile", "--primary", "blue").exit_code == 2

    def test_feedback_unknown_tenant(self, tmp_dir):
        assert _run(tmp_dir, "feedback", "--tenant", "ghost", "elegant").exit_code == 1


class TestGenerate:

    def test_renders_for_tenant(self, tmp_dir):
        _run(tmp_dir, "init-profile", "--tenant", "demo")
        out = tmp_dir / "banner.png"
        result = _run(tmp_dir, "generate", "-t", "春の大感謝セール", "--tenant", "demo",
                      "--price", "¥1,980", "--size", "300x300", "--out", str(out))
        assert result.exit_code == 0, result.output
        assert out.exists()
        assert out.with_suffix(".json").exists()

    def test_needs_profile_or_tenant(self, tmp_dir):
        result = _run(tmp_dir, "generate", "-t", "夏")
        assert result.exit_code != 0

    def test_bad_size(self, tmp_dir):
        result = _run(tmp_dir, "generate", "-t", "夏", "--tenant", "demo", "--size", "big")
        assert result.exit_code == 2


class TestExports:

    def test_ledger_after_generate(self, tmp_dir):
        _run(tmp_dir, "init-profile", "--tenant", "demo")
        _run(tmp_dir, "generate", "-t", "夏の新作", "--tenant", "demo", "--size", "200x200")
        ledger = tmp_dir / "ledger.csv"

        result = _run(tmp_dir, "ledger", "--out", str(ledger))
        assert result.exit_code == 0, result.output
        assert "banner_basic-sale_200x200.png" in ledger.read_text(encoding="utf-8")

    def test_ledger_without_banners(self, tmp_dir):
        result = _run(tmp_dir, "ledger", "--out", str(tmp_dir / "ledger.csv"))
        assert result.exit_code == 0
        assert not (tmp_dir / "ledger.csv").exists()

    def test_catalog_from_csv(self, tmp_dir):
        _run(tmp_dir, "init-profile", "--tenant", "demo")
        csv = tmp_dir / "items.csv"
        csv.write_text("title,price\nBag,¥980\nCap,¥500\n", encoding="utf-8")
        out = tmp_dir / "catalog.png"

        result = _run(tmp_dir, "catalog", str(csv), "--tenant", "demo", "--size", "300x200", "--out", str(out))
        assert result.exit_code == 0, result.output
        assert out.exists()

    def test_catalog_needs_csv_file(self, tmp_dir):
        assert _run(tmp_dir, "catalog", str(tmp_dir / "none.csv"), "--tenant", "demo").exit_code == 2
