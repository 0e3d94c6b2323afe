from __future__ import annotations

from io import BytesIO
from typing import Sequence

import pytest
from PIL import Image

from image_engine.backends import PillowBackend, PixelBuffer
from image_engine.config import Config
from image_engine.exceptions import BackendError
from image_engine.image_processor import ImageProcessor
from image_engine.transforms import TransformSpec


def make_image_bytes(
    size: tuple[int, int],
    color: str | tuple[int, int, int] = "red",
    image_format: str = "PNG",
    orientation: int | None = None,
) -> bytes:
    image = Image.new("RGB", size, color=color)
    buffer = BytesIO()
    if orientation is None:
        image.save(buffer, format=image_format)
    else:
        exif = Image.Exif()
        exif[0x0112] = orientation
        image.save(buffer, format=image_format, exif=exif.tobytes())
    return buffer.getvalue()


def make_quadrant_jpeg(size: tuple[int, int], orientation: int) -> bytes:
    """JPEG whose four quadrants differ so rotations and flips are observable."""
    width, height = size
    image = Image.new("RGB", size, color=(255, 0, 0))
    image.paste((0, 255, 0), (width // 2, 0, width, height // 2))
    image.paste((0, 0, 255), (0, height // 2, width // 2, height))
    image.paste((255, 255, 0), (width // 2, height // 2, width, height))
    exif = Image.Exif()
    exif[0x0112] = orientation
    buffer = BytesIO()
    image.save(buffer, format="JPEG", quality=95, exif=exif.tobytes())
    return buffer.getvalue()


class RecordingBackend(PillowBackend):
    def __init__(self) -> None:
        self.applied: list[list[TransformSpec]] = []

    def apply(self, buffer: PixelBuffer, transforms: Sequence[TransformSpec]) -> PixelBuffer:
        self.applied.append(list(transforms))
        return super().apply(buffer, transforms)


class FailingBackend(PillowBackend):
    def apply(self, buffer: PixelBuffer, transforms: Sequence[TransformSpec]) -> PixelBuffer:
        raise BackendError("backend exploded")


@pytest.fixture
def processor() -> ImageProcessor:
    return ImageProcessor(config=Config.defaults())


@pytest.fixture
def recording_processor() -> tuple[ImageProcessor, RecordingBackend]:
    backend = RecordingBackend()
    return ImageProcessor(config=Config.defaults(), backend=backend), backend


@pytest.fixture
def failing_processor() -> ImageProcessor:
    return ImageProcessor(config=Config.defaults(), backend=FailingBackend())
