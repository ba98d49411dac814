"""Rectangle packing for sprite sheets.

A growing guillotine packer: the canvas starts as large as the tallest
rectangle and is extended on its shorter side whenever no free slot can
take the next rectangle. Sizes and placements are kept in separate,
index-aligned tuples; packing never mutates its input.
"""
from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple

from . import config
from .errors import SizingError


class PlacementBox(NamedTuple):
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class Sheet:
    """Result of packing: sheet size and one (x, y) offset per input size.

    Attributes
    ----------
    width, height : int
        Bounding box of all placed rectangles.
    sizes : tuple of (int, int)
        Input (width, height) pairs, in input order.
    placements : tuple of (int, int)
        Top-left offsets, aligned with `sizes` by index.
    """
    width: int
    height: int
    sizes: Tuple[Tuple[int, int], ...]
    placements: Tuple[Tuple[int, int], ...]

    def boxes(self) -> Iterator[PlacementBox]:
        for (w, h), (x, y) in zip(self.sizes, self.placements):
            yield PlacementBox(x, y, w, h)


@dataclass(frozen=True)
class _Slot:
    x: int
    y: int
    width: int
    height: int

    @property
    def area(self) -> int:
        return self.width * self.height

    def fits(self, width: int, height: int) -> bool:
        return width <= self.width and height <= self.height


class _Canvas:
    """Free-slot bookkeeping for one packing run."""

    def __init__(self, width: int, height: int, max_side: int):
        self.width = width
        self.height = height
        self.max_side = max_side
        self.slots: List[_Slot] = [_Slot(0, 0, width, height)]

    def best_slot(self, width: int, height: int) -> Optional[int]:
        """Index of the smallest slot that fits, first one on ties."""
        best = None
        for index, slot in enumerate(self.slots):
            if slot.fits(width, height) and (best is None or slot.area < self.slots[best].area):
                best = index
        return best

    def grow(self, width: int, height: int) -> None:
        # Rectangles arrive tallest first, so growing right always fits.
        if self.width <= self.height or width > self.width:
            self.check_side(self.width + width)
            self.slots.append(_Slot(self.width, 0, width, self.height))
            self.width += width
        else:
            self.check_side(self.height + height)
            self.slots.append(_Slot(0, self.height, self.width, height))
            self.height += height

    def check_side(self, side: int) -> None:
        if side > self.max_side:
            raise SizingError(f"Sprite sheet would grow to {side} px, "
                              f"beyond the {self.max_side} px limit")

    def place(self, index: int, width: int, height: int) -> Tuple[int, int]:
        slot = self.slots.pop(index)
        leftovers = [
            _Slot(slot.x + width, slot.y, slot.width - width, height),
            _Slot(slot.x, slot.y + height, slot.width, slot.height - height),
        ]
        self.slots[index:index] = [s for s in leftovers if s.area > 0]
        return slot.x, slot.y


def packing_order(sizes: Sequence[Tuple[int, int]]) -> List[int]:
    """Input indices sorted by height, tallest first, ties by index."""
    return sorted(range(len(sizes)), key=lambda i: (-sizes[i][1], i))


def pack(sizes: Sequence[Tuple[int, int]], max_side: Optional[int] = None) -> Sheet:
    """Pack rectangles into a sheet of near-minimal area.

    Parameters
    ----------
    sizes : sequence of (int, int)
        Rectangle (width, height) pairs. All must be positive.
    max_side : int, optional
        Largest allowed sheet width or height. If None, uses settings.

    Returns
    -------
    Sheet
        Sheet size and placements aligned with `sizes`. The same input
        always gives the same result.

    Raises
    ------
    SizingError
        If `sizes` is empty, a size is not positive, or the sheet would
        exceed `max_side`.
    """
    sizes = tuple((int(w), int(h)) for w, h in sizes)
    if not sizes:
        raise SizingError("Nothing to pack")
    for index, (w, h) in enumerate(sizes):
        if w <= 0 or h <= 0:
            raise SizingError(f"Rectangle {index} has non-positive size {w}x{h}")
    max_side = int(max_side if max_side is not None else config.get("max_side"))

    order = packing_order(sizes)
    first_w, first_h = sizes[order[0]]
    canvas = _Canvas(first_w, first_h, max_side)
    canvas.check_side(max(first_w, first_h))

    placements: List[Optional[Tuple[int, int]]] = [None] * len(sizes)
    max_x = max_y = 0
    for i in order:
        w, h = sizes[i]
        slot = canvas.best_slot(w, h)
        while slot is None:
            canvas.grow(w, h)
            slot = canvas.best_slot(w, h)
        x, y = canvas.place(slot, w, h)
        placements[i] = (x, y)
        max_x = max(max_x, x + w)
        max_y = max(max_y, y + h)

    return Sheet(width=max_x, height=max_y, sizes=sizes, placements=tuple(placements))
