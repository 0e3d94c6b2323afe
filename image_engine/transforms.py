from dataclasses import dataclass
from typing import Literal, Union

from .geometry import Point, Size


@dataclass(frozen=True)
class Rotate:
    """Counterclockwise rotation by a right angle."""
    degrees: Literal[0, 90, 180, 270]

    def __post_init__(self) -> None:
        if self.degrees not in (0, 90, 180, 270):
            raise ValueError(f"Rotation must be 0, 90, 180 or 270 degrees, got {self.degrees}")


@dataclass(frozen=True)
class FlipHorizontal:
    pass


@dataclass(frozen=True)
class Resize:
    """Scale to cover ``size`` and crop the overflow (outbound thumbnail)."""
    size: Size
    mode: Literal["outbound"] = "outbound"


@dataclass(frozen=True)
class Crop:
    origin: Point
    size: Size


TransformSpec = Union[Rotate, FlipHorizontal, Resize, Crop]

# Transforms after which the EXIF orientation no longer describes the pixels
ORIENTATION_AFFECTING = (Rotate, FlipHorizontal)
