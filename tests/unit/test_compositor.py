"""Unit tests for the page compositor's scale-to-fit math."""

import pytest

from app.pdf.compositor import A4_HEIGHT, A4_WIDTH, compute_geometry

SIZES = [
    (1, 1),
    (100, 100),
    (595, 842),
    (596, 842),
    (4000, 3000),
    (3000, 4000),
    (2480, 3508),
    (10000, 10),
    (10, 10000),
    (1190, 1684),
]


class TestScale:
    @pytest.mark.parametrize("width,height", SIZES)
    def test_scale_formula(self, width, height):
        g = compute_geometry(width, height)
        assert g.scale == min(A4_WIDTH / width, A4_HEIGHT / height, 1)
        assert g.scale <= 1

    @pytest.mark.parametrize("width,height", SIZES)
    def test_uniform_scale_keeps_aspect(self, width, height):
        g = compute_geometry(width, height)
        assert g.draw_width == pytest.approx(width * g.scale)
        assert g.draw_height == pytest.approx(height * g.scale)
        assert g.draw_width <= A4_WIDTH + 1e-9
        assert g.draw_height <= A4_HEIGHT + 1e-9

    def test_small_image_not_upscaled(self):
        g = compute_geometry(100, 100)
        assert g.scale == 1
        assert g.draw_width == 100
        assert g.draw_height == 100

    def test_non_positive_dimensions_rejected(self):
        with pytest.raises(ValueError):
            compute_geometry(0, 100)
        with pytest.raises(ValueError):
            compute_geometry(100, -1)


class TestCentering:
    @pytest.mark.parametrize("width,height", SIZES)
    def test_centered_on_both_axes(self, width, height):
        g = compute_geometry(width, height)
        assert g.draw_x + width * g.scale / 2 == pytest.approx(A4_WIDTH / 2)
        assert g.draw_y + height * g.scale / 2 == pytest.approx(A4_HEIGHT / 2)

    def test_rect(self):
        g = compute_geometry(100, 100)
        assert g.rect() == pytest.approx((247.5, 371.0, 347.5, 471.0))


class TestLandscapePhoto:
    def test_4000x3000(self):
        g = compute_geometry(4000, 3000)
        assert g.scale == pytest.approx(0.14875)
        assert g.draw_width == pytest.approx(595.0, abs=0.01)
        assert g.draw_height == pytest.approx(446.25, abs=0.01)
        assert g.draw_x == pytest.approx(0.0, abs=0.01)
        assert g.draw_y == pytest.approx(197.875, abs=0.01)

    def test_custom_page(self):
        g = compute_geometry(1224, 1584, page_width=612, page_height=792)
        assert g.scale == pytest.approx(0.5)
        assert g.rect() == pytest.approx((0, 0, 612, 792))
