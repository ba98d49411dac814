"""Tests for the mapsprites.packer module."""

import random

import pytest

from mapsprites.errors import SizingError
from mapsprites.packer import PlacementBox, Sheet, pack, packing_order


def _overlaps(a, b):
    return (a.x < b.x + b.width and b.x < a.x + a.width and
            a.y < b.y + b.height and b.y < a.y + a.height)


def _random_sizes(seed, count=40, low=5, high=120):
    rng = random.Random(seed)
    return [(rng.randint(low, high), rng.randint(low, high)) for _ in range(count)]


class TestPackScenarios:
    """Tests for small, hand-checked packings."""

    def test_two_equal_squares_side_by_side(self):
        """Two 10x10 squares should fill a 20x10 sheet exactly."""
        sheet = pack([(10, 10), (10, 10)])

        assert (sheet.width, sheet.height) == (20, 10)
        assert sheet.placements == ((0, 0), (10, 0))

    def test_single_rectangle(self):
        """A single rectangle is placed at the origin of a sheet of its size."""
        sheet = pack([(200, 150)])

        assert (sheet.width, sheet.height) == (200, 150)
        assert sheet.placements == ((0, 0),)

    def test_fills_leftover_slot(self):
        """A small rectangle should go into the free space below another."""
        sheet = pack([(10, 20), (10, 10), (10, 10)])

        assert (sheet.width, sheet.height) == (20, 20)
        assert sheet.placements == ((0, 0), (10, 0), (10, 10))

    def test_grows_down_when_wider_than_tall(self):
        """The canvas should grow on its shorter side."""
        sheet = pack([(30, 10), (10, 10)])

        assert (sheet.width, sheet.height) == (30, 20)
        assert sheet.placements == ((0, 0), (0, 10))

    def test_three_mixed_rectangles(self):
        """Tallest first: 40x200, then 100x80 to its right, then 60x60 below that."""
        sheet = pack([(100, 80), (60, 60), (40, 200)])

        assert (sheet.width, sheet.height) == (140, 200)
        assert sheet.placements == ((40, 0), (40, 80), (0, 0))


class TestPackProperties:
    """Property checks over random inputs."""

    @pytest.mark.parametrize("seed", range(10))
    def test_no_overlap(self, seed):
        """No two placed rectangles may share positive area."""
        boxes = list(pack(_random_sizes(seed)).boxes())

        for i, a in enumerate(boxes):
            for b in boxes[i + 1:]:
                assert not _overlaps(a, b), f"{a} overlaps {b}"

    @pytest.mark.parametrize("seed", range(10))
    def test_bounding_box(self, seed):
        """The sheet must contain every rectangle and at least their total area."""
        sizes = _random_sizes(seed)
        sheet = pack(sizes)

        assert sheet.width >= max(w for w, _ in sizes)
        assert sheet.height >= max(h for _, h in sizes)
        assert sheet.width * sheet.height >= sum(w * h for w, h in sizes)
        for box in sheet.boxes():
            assert box.x >= 0 and box.y >= 0
            assert box.x + box.width <= sheet.width
            assert box.y + box.height <= sheet.height

    @pytest.mark.parametrize("seed", range(5))
    def test_bounding_box_is_tight(self, seed):
        """Some rectangle must touch the right edge and some the bottom edge."""
        sheet = pack(_random_sizes(seed))
        boxes = list(sheet.boxes())

        assert max(b.x + b.width for b in boxes) == sheet.width
        assert max(b.y + b.height for b in boxes) == sheet.height

    def test_deterministic(self):
        """Packing the same sizes twice gives identical sheets."""
        sizes = _random_sizes(42, count=100)

        assert pack(sizes) == pack(list(sizes))

    def test_input_is_not_modified(self):
        """pack should leave its input list untouched."""
        sizes = [(3, 4), (5, 6)]
        pack(sizes)

        assert sizes == [(3, 4), (5, 6)]

    def test_placements_aligned_with_sizes(self):
        """sizes and placements should be index-aligned with the input."""
        sizes = [(7, 3), (2, 9), (4, 4)]
        sheet = pack(sizes)

        assert sheet.sizes == tuple(sizes)
        assert len(sheet.placements) == 3
        assert all(isinstance(box, PlacementBox) for box in sheet.boxes())


class TestPackingOrder:
    """Tests for the packing_order function."""

    def test_tallest_first(self):
        assert packing_order([(1, 5), (1, 9), (1, 7)]) == [1, 2, 0]

    def test_ties_keep_input_order(self):
        assert packing_order([(9, 4), (1, 4), (5, 4)]) == [0, 1, 2]


class TestPackErrors:
    """Tests for invalid input and the growth ceiling."""

    def test_empty_input(self):
        with pytest.raises(SizingError):
            pack([])

    @pytest.mark.parametrize("size", [(0, 10), (10, 0), (-1, 5)])
    def test_non_positive_size(self, size):
        with pytest.raises(SizingError):
            pack([(10, 10), size])

    def test_growth_beyond_ceiling(self):
        """Growing past max_side is an error, not a truncated sheet."""
        with pytest.raises(SizingError):
            pack([(10, 10), (10, 10)], max_side=15)

    def test_first_rectangle_beyond_ceiling(self):
        with pytest.raises(SizingError):
            pack([(20, 5)], max_side=10)

    def test_at_ceiling_is_allowed(self):
        sheet = pack([(10, 10), (10, 10)], max_side=20)
        assert isinstance(sheet, Sheet)
        assert sheet.width == 20
