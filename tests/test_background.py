"""Tests for background removal strategies and alpha refinement."""

import subprocess
from io import BytesIO
from unittest.mock import MagicMock, patch

import numpy as np
import pytest
import requests
from PIL import Image

from config.settings import BackgroundRemovalConfig
from imaging.background import (
    BackgroundRemover,
    BGRemovalResult,
    HttpStrategy,
    NoopStrategy,
    RembgStrategy,
    RemovalStrategy,
    SubprocessStrategy,
    add_alpha_outline,
    make_strategy,
    refine_alpha_array,
)


def _png_bytes(size=(20, 10), color=(0, 255, 0, 128)):
    buf = BytesIO()
    Image.new("RGBA", size, color).save(buf, "PNG")
    return buf.getvalue()


class _CutOut(RemovalStrategy):
    """Writes a copy of the source with a soft left edge."""

    name = "stub"

    def run(self, src, dst):
        with Image.open(src) as im:
            img = im.convert("RGBA")
        arr = np.array(img)
        arr[:, 0, 3] = 120
        Image.fromarray(arr, "RGBA").save(dst, "PNG")
        return BGRemovalResult(True, False, dst, {"mode": self.name})


class TestRefineAlpha:

    def test_solid_pixels_untouched(self):
        alpha = np.array([[0, 255, 255], [0, 0, 255], [255, 0, 0]], dtype=np.uint8)
        assert np.array_equal(refine_alpha_array(alpha, BackgroundRemovalConfig()), alpha)

    def test_hair_is_boosted(self):
        alpha = np.array([[255, 255, 255], [0, 100, 0], [0, 0, 0]], dtype=np.uint8)
        out = refine_alpha_array(alpha, BackgroundRemovalConfig())
        assert out[1, 1] == 130

    def test_isolated_speck_is_cleared(self):
        alpha = np.zeros((5, 5), dtype=np.uint8)
        alpha[2, 2] = 40
        assert refine_alpha_array(alpha, BackgroundRemovalConfig())[2, 2] == 0

    def test_edge_is_smoothed(self):
        alpha = np.full((3, 3), 255, dtype=np.uint8)
        alpha[1, 1] = 200
        assert refine_alpha_array(alpha, BackgroundRemovalConfig())[1, 1] == 205

    def test_shape_and_dtype(self):
        alpha = np.random.default_rng(0).integers(0, 256, size=(7, 11), dtype=np.uint8)
        out = refine_alpha_array(alpha, BackgroundRemovalConfig())
        assert out.shape == (7, 11)
        assert out.dtype == np.uint8


class TestStrategies:

    def test_make_strategy(self):
        assert isinstance(make_strategy(BackgroundRemovalConfig(mode="none")), NoopStrategy)
        assert isinstance(make_strategy(BackgroundRemovalConfig(mode="cli")), SubprocessStrategy)
        assert isinstance(make_strategy(BackgroundRemovalConfig(mode="http", http_url="http://x")), HttpStrategy)
        assert isinstance(make_strategy(BackgroundRemovalConfig(mode="rembg")), RembgStrategy)

    @patch("imaging.background.subprocess.run")
    def test_cli_success(self, mock_run, product_png, tmp_dir):
        dst = tmp_dir / "out.png"
        mock_run.side_effect = lambda *a, **kw: dst.write_bytes(_png_bytes())

        result = SubprocessStrategy("rembg", timeout=5).run(product_png, dst)
        assert result.success and not result.use_original
        assert result.output_path == dst
        args = mock_run.call_args.args[0]
        assert args == ["rembg", "i", str(product_png), str(dst)]
        assert mock_run.call_args.kwargs["timeout"] == 5

    @patch("imaging.background.subprocess.run")
    def test_cli_failure_falls_back(self, mock_run, product_png, tmp_dir):
        mock_run.side_effect = subprocess.CalledProcessError(1, "rembg")
        result = SubprocessStrategy().run(product_png, tmp_dir / "out.png")
        assert not result.success
        assert result.use_original

    @patch("imaging.background.subprocess.run")
    def test_cli_missing_binary(self, mock_run, product_png, tmp_dir):
        mock_run.side_effect = FileNotFoundError("rembg")
        assert SubprocessStrategy().run(product_png, tmp_dir / "out.png").use_original

    def test_http_success(self, product_png, tmp_dir):
        session = MagicMock()
        session.post.return_value.content = _png_bytes()

        dst = tmp_dir / "out.png"
        result = HttpStrategy("http://bg.local/remove", timeout=3, session=session).run(product_png, dst)

        assert result.success
        assert session.post.call_args.args[0] == "http://bg.local/remove"
        assert "file" in session.post.call_args.kwargs["files"]
        with Image.open(dst) as im:
            assert im.mode == "RGBA"
            assert im.size == (20, 10)

    def test_http_error_falls_back(self, product_png, tmp_dir):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("502")
        result = HttpStrategy("http://bg.local/remove", session=session).run(product_png, tmp_dir / "o.png")
        assert result.use_original
        assert "502" in result.stats["error"]

    def test_http_garbage_body_falls_back(self, product_png, tmp_dir):
        session = MagicMock()
        session.post.return_value.content = b"<html>oops</html>"
        result = HttpStrategy("http://bg.local/remove", session=session).run(product_png, tmp_dir / "o.png")
        assert result.use_original

    def test_http_without_url(self, product_png, tmp_dir):
        assert HttpStrategy("").run(product_png, tmp_dir / "o.png").use_original


class TestRemover:

    def test_disabled_returns_original(self, product_png, tmp_dir):
        remover = BackgroundRemover(BackgroundRemovalConfig(mode="none"), tmp_dir / "up")
        assert not remover.enabled
        assert remover.remove_background(product_png) == product_png

    def test_missing_source(self, tmp_dir):
        remover = BackgroundRemover(BackgroundRemovalConfig(), tmp_dir / "up", strategy=_CutOut())
        result = remover.remove(tmp_dir / "nope.png")
        assert result.use_original
        assert result.stats["error"] == "source missing"

    def test_refined_output(self, product_png, tmp_dir):
        out_dir = tmp_dir / "up"
        remover = BackgroundRemover(BackgroundRemovalConfig(refine_edges=True), out_dir, strategy=_CutOut())

        path = remover.remove_background(product_png)
        assert path == out_dir / "rembg_product.png"
        assert path.exists()
        assert not (out_dir / "rembg_temp_product.png").exists()

    def test_unrefined_output(self, product_png, tmp_dir):
        out_dir = tmp_dir / "up"
        remover = BackgroundRemover(BackgroundRemovalConfig(refine_edges=False), out_dir, strategy=_CutOut())
        path = remover.remove_background(product_png)
        with Image.open(path) as im:
            assert im.getpixel((0, 50))[3] == 120

    def test_strategy_failure_returns_original(self, product_png, tmp_dir):
        strategy = MagicMock(spec=RemovalStrategy)
        strategy.name = "broken"
        strategy.run.return_value = BGRemovalResult(False, True, stats={"error": "boom"})
        remover = BackgroundRemover(BackgroundRemovalConfig(), tmp_dir / "up", strategy=strategy)
        assert remover.remove_background(product_png) == product_png


class TestOutline:

    def test_outline_grows_alpha(self, product_png, tmp_dir):
        out = add_alpha_outline(product_png, width_px=3, color="#ffffff", opacity=1.0,
                                out_dir=tmp_dir / "uploads")
        assert out == tmp_dir / "uploads" / "product_outline.png"
        with Image.open(out) as im:
            # just left of the opaque square
            assert im.getpixel((58, 60))[3] == 255
            assert im.getpixel((58, 60))[:3] == (255, 255, 255)
            # far corner stays transparent
            assert im.getpixel((0, 0))[3] == 0
            # square itself keeps its colour
            assert im.getpixel((100, 60)) == (200, 30, 30, 255)

    def test_outline_leaves_source_folder_alone(self, product_png, tmp_dir):
        src_dir = tmp_dir / "catalogue"
        src_dir.mkdir()
        src = src_dir / product_png.name
        src.write_bytes(product_png.read_bytes())

        add_alpha_outline(src, out_dir=tmp_dir / "uploads")
        assert [p.name for p in src_dir.iterdir()] == [src.name]

    def test_compositor_outline_goes_to_uploads(self, test_config, profile, product_png, tmp_dir):
        from core.compositor import BannerCompositor
        from core.models import BannerRequest

        src_dir = tmp_dir / "catalogue"
        src_dir.mkdir()
        src = src_dir / product_png.name
        src.write_bytes(product_png.read_bytes())

        req = BannerRequest(title="x", template="product-hero", image=str(src), size=(300, 300))
        BannerCompositor(test_config).generate(req, profile, out_path=tmp_dir / "b.png")

        assert (test_config.paths.uploads_dir / "product_outline.png").exists()
        assert [p.name for p in src_dir.iterdir()] == [src.name]

    def test_outline_failure_returns_source(self, tmp_dir):
        missing = tmp_dir / "missing.png"
        assert add_alpha_outline(missing, out_dir=tmp_dir / "uploads") == missing
        assert not any((tmp_dir / "uploads").iterdir())
