"""Tests for the mapsprites.variants module."""

import pytest

from mapsprites.errors import MalformedInputError, SizingError
from mapsprites.variants import (ResolutionVariant, image_url, info_url, parse_variants,
                                 service_tile_width)


class TestParseVariants:
    """Tests for the parse_variants function."""

    def test_pixel_widths(self):
        variants = parse_variants("128,256")

        assert variants == [ResolutionVariant(name="128", width=128),
                            ResolutionVariant(name="256", width=256)]

    def test_multiplier(self):
        variant = parse_variants("0.5x")[0]

        assert variant.multiplier == 0.5
        assert variant.width is None
        assert variant.needs_service_info

    def test_whitespace_and_duplicates(self):
        variants = parse_variants(" 64 , 2x,64,")
        assert [v.name for v in variants] == ["64", "2x"]

    @pytest.mark.parametrize("text", ["", ",", "abc", "0", "-5", "0x", "1.5.2x", "x"])
    def test_invalid(self, text):
        with pytest.raises(MalformedInputError):
            parse_variants(text)


class TestTargetWidth:
    """Tests for ResolutionVariant.target_width."""

    def test_absolute(self):
        assert ResolutionVariant(name="128", width=128).target_width(1000) == 128

    def test_clamped_to_resource(self):
        assert ResolutionVariant(name="512", width=512).target_width(300) == 300

    def test_multiplier_of_tile_width(self):
        variant = ResolutionVariant(name="0.5x", multiplier=0.5)
        assert variant.target_width(5000, tile_width=512) == 256

    def test_multiplier_default_tile_width(self):
        variant = ResolutionVariant(name="1x", multiplier=1.0)
        assert variant.target_width(5000) == 256

    def test_zero_width(self):
        """A multiplier too small for a single pixel is a sizing error."""
        variant = ResolutionVariant(name="0.001x", multiplier=0.001)
        with pytest.raises(SizingError):
            variant.target_width(5000, tile_width=256)


class TestUrls:
    """Tests for IIIF URL helpers."""

    def test_image_url(self):
        assert (image_url("https://iiif.example.org/images/a/", 128)
                == "https://iiif.example.org/images/a/full/128,/0/default.jpg")

    def test_info_url(self):
        assert info_url("https://iiif.example.org/images/a") == \
            "https://iiif.example.org/images/a/info.json"

    def test_service_tile_width(self):
        assert service_tile_width({"tiles": [{"width": 1024}]}) == 1024
        assert service_tile_width({}) == 256
