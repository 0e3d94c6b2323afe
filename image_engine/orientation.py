from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping

from .geometry import Size
from .transforms import FlipHorizontal, Rotate, TransformSpec

ORIENTATION_TAG = "Orientation"


class OrientationCode(IntEnum):
    """EXIF orientation (tag 0x0112) of the stored pixels."""
    UNKNOWN = -1
    TOP_LEFT = 1
    TOP_RIGHT = 2
    BOTTOM_RIGHT = 3
    BOTTOM_LEFT = 4
    LEFT_TOP = 5
    RIGHT_TOP = 6
    RIGHT_BOTTOM = 7
    LEFT_BOTTOM = 8


@dataclass(frozen=True)
class CorrectionPlan:
    flip: bool
    rotate: int


_PLANS: dict[OrientationCode, CorrectionPlan] = {
    OrientationCode.TOP_LEFT: CorrectionPlan(flip=False, rotate=0),
    OrientationCode.TOP_RIGHT: CorrectionPlan(flip=True, rotate=0),
    OrientationCode.BOTTOM_RIGHT: CorrectionPlan(flip=False, rotate=180),
    OrientationCode.BOTTOM_LEFT: CorrectionPlan(flip=True, rotate=180),
    OrientationCode.LEFT_TOP: CorrectionPlan(flip=True, rotate=90),
    OrientationCode.RIGHT_TOP: CorrectionPlan(flip=False, rotate=270),
    OrientationCode.RIGHT_BOTTOM: CorrectionPlan(flip=True, rotate=270),
    OrientationCode.LEFT_BOTTOM: CorrectionPlan(flip=False, rotate=90),
}

# Codes whose stored pixels are transposed relative to the upright image
_TRANSPOSED = frozenset({
    OrientationCode.LEFT_TOP,
    OrientationCode.RIGHT_TOP,
    OrientationCode.RIGHT_BOTTOM,
    OrientationCode.LEFT_BOTTOM,
})


def resolve_orientation(metadata: Mapping[str, Any], image_format: str | None) -> OrientationCode:
    """Read the orientation code from decoded EXIF metadata.

    Parameters
    ----------
    metadata : Mapping[str, Any]
        EXIF tags keyed by name
    image_format : str | None
        Format the image was decoded from; only JPEG orientation is trusted

    Returns
    -------
    OrientationCode
        The stored code, or ``UNKNOWN`` for non-JPEG images, missing tags and
        values outside 1..8
    """
    if image_format != "JPEG":
        return OrientationCode.UNKNOWN
    value = metadata.get(ORIENTATION_TAG)
    if value is None:
        return OrientationCode.UNKNOWN
    try:
        code = OrientationCode(int(value))
    except (TypeError, ValueError):
        return OrientationCode.UNKNOWN
    return code


def plan_correction(code: OrientationCode) -> CorrectionPlan | None:
    """Flip/rotate pair that makes the image upright; None when nothing can be fixed."""
    return _PLANS.get(OrientationCode(code))


def correction_transforms(plan: CorrectionPlan) -> list[TransformSpec]:
    # flip must run before the rotation
    transforms: list[TransformSpec] = []
    if plan.flip:
        transforms.append(FlipHorizontal())
    if plan.rotate != 0:
        transforms.append(Rotate(degrees=plan.rotate))  # type: ignore[arg-type]
    return transforms


def top_left_size(size: Size, code: OrientationCode) -> Size:
    if code in _TRANSPOSED:
        return size.swapped()
    return size
