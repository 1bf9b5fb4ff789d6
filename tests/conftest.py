"""Shared test fixtures."""

import shutil
import tempfile
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

from config.settings import AppConfig, BackgroundRemovalConfig, ColorFitConfig, PathConfig
from core.profile import BrandColors, BrandProfile
from storage.store import DocumentStore


@pytest.fixture
def tmp_dir():
    d = Path(tempfile.mkdtemp())
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def test_config(tmp_dir):
    cfg = AppConfig(
        paths=PathConfig.under(tmp_dir),
        bg=BackgroundRemovalConfig(mode="none"),
        colorfit=ColorFitConfig(enabled=False),
    )
    cfg.paths.ensure()
    return cfg


@pytest.fixture
def store(test_config):
    s = DocumentStore.from_config(test_config)
    yield s
    s.close()


@pytest.fixture
def profile():
    return BrandProfile(
        brand_name="テスト商店",
        colors=BrandColors(primary="#D92C2C", secondary="#ffffff", accent="#FFD93D", text="#111111"),
        safe_margin=36,
    )


@pytest.fixture
def product_png(tmp_dir):
    """Red square on a transparent 200x120 canvas."""
    arr = np.zeros((120, 200, 4), dtype=np.uint8)
    arr[20:100, 60:140] = (200, 30, 30, 255)
    path = tmp_dir / "product.png"
    Image.fromarray(arr, "RGBA").save(path)
    return path


@pytest.fixture
def photo_jpg(tmp_dir):
    """Opaque blue/orange photo for palette tests."""
    img = Image.new("RGB", (120, 80), (30, 80, 200))
    img.paste((240, 140, 20), (60, 0, 120, 80))
    path = tmp_dir / "photo.jpg"
    img.save(path, quality=95)
    return path
