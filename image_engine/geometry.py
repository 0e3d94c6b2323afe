import math
from dataclasses import dataclass

from .exceptions import InvalidGeometryError


@dataclass(frozen=True)
class Size:
    width: int
    height: int

    def ratio(self) -> float:
        if self.width <= 0 or self.height <= 0:
            raise InvalidGeometryError(f"Cannot compute the ratio of a {self.width}x{self.height} image")
        return self.width / self.height

    def is_square(self) -> bool:
        return self.width == self.height

    def fits_in(self, max_width: int, max_height: int) -> bool:
        return self.width <= max_width and self.height <= max_height

    def swapped(self) -> "Size":
        return Size(width=self.height, height=self.width)


@dataclass(frozen=True)
class Point:
    x: int
    y: int


def round_half_away_from_zero(value: float) -> int:
    """Round ``value`` to the nearest integer, ties going away from zero.

    Python's built-in ``round`` rounds ties to even, which would turn
    ``round(62.5)`` into 62 where the resize rules expect 63.
    """
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def resize_box(size: Size, max_size: int) -> Size:
    """Compute the ratio-preserving size whose longer side is ``max_size``.

    Parameters
    ----------
    size : Size
        Current image size
    max_size : int
        Target length of the longer side

    Returns
    -------
    Size
        Target size, rounded twice (once per axis computation and once when
        handed to the precise resize)

    Raises
    ------
    InvalidGeometryError
        If the image has a zero dimension
    """
    ratio: float = size.ratio()
    if ratio > 1:
        new_width: float = max_size
        new_height: float = round_half_away_from_zero(max_size / ratio)
    else:
        new_width = round_half_away_from_zero(max_size * ratio)
        new_height = max_size
    return Size(
        width=round_half_away_from_zero(new_width),
        height=round_half_away_from_zero(new_height),
    )


def fit_box(size: Size, max_width: int, max_height: int) -> Size:
    """Compute the largest ratio-preserving size contained in the box.

    Parameters
    ----------
    size : Size
        Current image size
    max_width : int
        Width of the bounding box
    max_height : int
        Height of the bounding box

    Returns
    -------
    Size
        Contained size; smaller images are scaled up to touch the box

    Raises
    ------
    InvalidGeometryError
        If the image has a zero dimension
    """
    ratio: float = size.ratio()
    new_width: float = min(max_width, ratio * max_height)
    new_height: float = min(max_height, max_width / ratio)
    return Size(
        width=round_half_away_from_zero(new_width),
        height=round_half_away_from_zero(new_height),
    )


def center_square(size: Size) -> tuple[Point, Size]:
    """Origin and size of the largest square centered on the longer axis."""
    if size.width <= 0 or size.height <= 0:
        raise InvalidGeometryError(f"Cannot center-crop a {size.width}x{size.height} image")
    side: int = min(size.width, size.height)
    if size.width >= size.height:
        origin = Point(x=(size.width - side) // 2, y=0)
    else:
        origin = Point(x=0, y=(size.height - side) // 2)
    return origin, Size(width=side, height=side)


def validate_target(size: Size) -> Size:
    if size.width <= 0 or size.height <= 0:
        raise InvalidGeometryError(f"Target size must be positive, got {size.width}x{size.height}")
    return size


def validate_crop(image_size: Size, origin: Point, size: Size) -> None:
    # Pillow pads out-of-bounds crops with black instead of failing
    if origin.x < 0 or origin.y < 0:
        raise InvalidGeometryError(f"Crop origin must not be negative, got ({origin.x}, {origin.y})")
    validate_target(size)
    if origin.x + size.width > image_size.width or origin.y + size.height > image_size.height:
        raise InvalidGeometryError(
            f"Crop {size.width}x{size.height} at ({origin.x}, {origin.y}) "
            f"exceeds image bounds {image_size.width}x{image_size.height}"
        )
