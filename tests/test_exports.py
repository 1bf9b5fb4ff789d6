"""Tests for the asset ledger and CSV catalog banners."""

import json

import pandas as pd
import pytest
from PIL import Image

from core.catalog import MAX_ITEMS, read_catalog_csv, render_catalog
from core.ledger import LEDGER_COLUMNS, collect_ledger, export_ledger
from core.models import BannerRequest
from core.rights import WARN_NO_META, annotate_asset
from core.studio import BannerStudio
from utils.exceptions import ConfigurationError


def _write_csv(path, rows, header="image,title,price,badge"):
    path.write_text("\n".join([header, *rows]) + "\n", encoding="utf-8")
    return path


class TestLedger:

    def test_rows_from_studio_sidecars(self, test_config, store, profile, product_png, tmp_dir):
        annotate_asset(product_png, test_config.paths.asset_library,
                       license="commercial-ok", owner="Acme", source_url="https://example.com/p")
        studio = BannerStudio(test_config, store)
        out_dir = test_config.paths.output_dir
        studio.create(BannerRequest(title="夏の新作", template="product-hero", image=str(product_png),
                                    tenant="demo", size=(300, 300)),
                      profile, out_path=out_dir / "hero.png")
        studio.create(BannerRequest(title="No.1 保冷ボトル", size=(200, 100)),
                      profile, out_path=out_dir / "claim.png")

        df = export_ledger(out_dir, tmp_dir / "ledger.csv")

        assert list(df.columns) == LEDGER_COLUMNS
        assert len(df) == 2
        hero = df.set_index("file").loc["hero.png"]
        assert hero["tenant"] == "demo"
        assert hero["license"] == "commercial-ok"
        assert hero["owner"] == "Acme"
        assert hero["sourceUrl"] == "https://example.com/p"
        assert hero["dimensions"] == "300x300"
        assert hero["bytes"] > 0
        claim = df.set_index("file").loc["claim.png"]
        assert claim["license"] == ""
        assert "根拠" in claim["warnings"]

        written = pd.read_csv(tmp_dir / "ledger.csv", keep_default_na=False)
        assert sorted(written["file"]) == ["claim.png", "hero.png"]

    def test_unregistered_asset_is_flagged(self, test_config, store, profile, product_png):
        out_dir = test_config.paths.output_dir
        BannerStudio(test_config, store).create(
            BannerRequest(title="x", template="product-hero", image=str(product_png), size=(200, 200)),
            profile, out_path=out_dir / "b.png")

        row = collect_ledger(out_dir).iloc[0]
        assert row["license"] == "unknown"
        assert WARN_NO_META in row["warnings"]

    def test_skips_foreign_and_broken_json(self, tmp_dir):
        (tmp_dir / "broken.json").write_text("{", encoding="utf-8")
        (tmp_dir / "other.json").write_text(json.dumps({"hello": 1}), encoding="utf-8")
        (tmp_dir / "nested").mkdir()
        (tmp_dir / "nested" / "b.json").write_text(json.dumps({"template": "basic-sale"}), encoding="utf-8")

        df = collect_ledger(tmp_dir)
        assert df["file"].tolist() == ["b.png"]
        assert df.iloc[0]["dimensions"] == ""

    def test_nothing_to_export(self, tmp_dir):
        assert export_ledger(tmp_dir / "missing", tmp_dir / "ledger.csv") is None
        assert not (tmp_dir / "ledger.csv").exists()


class TestCatalog:

    def test_reads_first_eight_rows(self, tmp_dir):
        rows = [f"p{i}.png,Item {i},¥{i}00," for i in range(10)]
        items = read_catalog_csv(_write_csv(tmp_dir / "c.csv", rows))

        assert len(items) == MAX_ITEMS
        assert items[0].title == "Item 0"
        assert items[0].image == str(tmp_dir / "p0.png")
        assert items[0].badge is None

    def test_missing_columns_are_empty(self, tmp_dir):
        items = read_catalog_csv(_write_csv(tmp_dir / "c.csv", ["Bag", "Cap"], header="title"))
        assert [it.title for it in items] == ["Bag", "Cap"]
        assert all(it.image is None and it.price is None for it in items)

    def test_unusable_csv(self, tmp_dir):
        with pytest.raises(ConfigurationError):
            read_catalog_csv(_write_csv(tmp_dir / "c.csv", ["1,2"], header="name,colour"))
        with pytest.raises(ConfigurationError):
            read_catalog_csv(tmp_dir / "missing.csv")

    def test_renders_grid_with_sidecar(self, test_config, profile, product_png, tmp_dir):
        csv = _write_csv(tmp_dir / "c.csv", [
            f"{product_png.name},Red box,¥980,NEW",
            ",Plain,¥500,",
        ])
        out = render_catalog(csv, profile, size=(600, 400), title="おすすめ",
                             out_path=tmp_dir / "cat.png", conf=test_config)

        with Image.open(out) as im:
            assert im.size == (600, 400)
        meta = json.loads(out.with_suffix(".json").read_text(encoding="utf-8"))
        assert meta["template"] == "catalog-grid"
        assert meta["items"] == 2
