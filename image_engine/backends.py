from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from io import BytesIO
from typing import Any, Callable, Mapping, Sequence

from PIL import ExifTags, Image, ImageOps, UnidentifiedImageError

from .exceptions import BackendError, InvalidImageError, UnsupportedBackendError
from .geometry import Size
from .transforms import ORIENTATION_AFFECTING, Crop, FlipHorizontal, Resize, Rotate, TransformSpec


@dataclass(frozen=True)
class PixelBuffer:
    """Decoded pixels owned by one processor at a time.

    Parameters
    ----------
    image : Image.Image
        Pillow image holding the pixels
    format : str | None
        Format the pixels were decoded from (Pillow format name), None once
        unknown
    metadata : Mapping[str, Any]
        EXIF tags keyed by their names, e.g. ``"Orientation"``
    """

    image: Image.Image
    format: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> Size:
        width, height = self.image.size
        return Size(width=width, height=height)

    def get_pixel(self, x: int, y: int) -> tuple[int, ...]:
        pixel = self.image.convert("RGBA").getpixel((x, y))
        return tuple(pixel)  # type: ignore[arg-type]


def extract_metadata(image: Image.Image) -> dict[str, Any]:
    exif = image.getexif()
    return {ExifTags.TAGS.get(tag_id, str(tag_id)): value for tag_id, value in exif.items()}


class ImageBackend(ABC):
    """Decoding, transform and encoding primitives of an imaging library."""

    name: str = ""
    # True when pixels are rasterized in process and the bitmap encoder applies
    software_rasterizer: bool = False

    @abstractmethod
    def load(self, data: bytes) -> PixelBuffer:
        """Decode ``data``; raises InvalidImageError when it is not an image."""

    @abstractmethod
    def apply(self, buffer: PixelBuffer, transforms: Sequence[TransformSpec]) -> PixelBuffer:
        """Apply ``transforms`` in order and return a new buffer.

        Raises
        ------
        BackendError
            If any primitive fails; ``buffer`` is left untouched
        """

    @abstractmethod
    def encode(self, buffer: PixelBuffer, image_format: str, options: Mapping[str, Any] | None = None) -> bytes:
        """Serialize ``buffer`` to ``image_format`` (a Pillow format name)."""


class PillowBackend(ImageBackend):
    name = "pil"
    software_rasterizer = True

    def load(self, data: bytes) -> PixelBuffer:
        try:
            image: Image.Image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError, EOFError) as e:
            raise InvalidImageError(f"Failed to decode image: {e}") from e
        return PixelBuffer(image=image, format=image.format, metadata=extract_metadata(image))

    def apply(self, buffer: PixelBuffer, transforms: Sequence[TransformSpec]) -> PixelBuffer:
        image: Image.Image = buffer.image
        try:
            for transform in transforms:
                image = self._apply_one(image=image, transform=transform)
        except (OSError, ValueError, MemoryError) as e:
            raise BackendError(f"{type(e).__name__}: {e}") from e

        metadata = dict(buffer.metadata)
        if any(isinstance(transform, ORIENTATION_AFFECTING) for transform in transforms):
            metadata.pop("Orientation", None)
        return replace(buffer, image=image, metadata=metadata)

    def _apply_one(self, image: Image.Image, transform: TransformSpec) -> Image.Image:
        if isinstance(transform, Rotate):
            if transform.degrees == 0:
                return image
            method = {
                90: Image.Transpose.ROTATE_90,
                180: Image.Transpose.ROTATE_180,
                270: Image.Transpose.ROTATE_270,
            }[transform.degrees]
            return image.transpose(method)
        if isinstance(transform, FlipHorizontal):
            return image.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
        if isinstance(transform, Resize):
            target = (transform.size.width, transform.size.height)
            return ImageOps.fit(image, target, method=Image.Resampling.LANCZOS)
        if isinstance(transform, Crop):
            width, height = image.size
            left, top = transform.origin.x, transform.origin.y
            right, bottom = left + transform.size.width, top + transform.size.height
            if left < 0 or top < 0 or right > width or bottom > height or right <= left or bottom <= top:
                raise ValueError(f"Crop box {(left, top, right, bottom)} outside of {width}x{height} image")
            return image.crop((left, top, right, bottom))
        raise ValueError(f"Unsupported transform: {transform!r}")

    def encode(self, buffer: PixelBuffer, image_format: str, options: Mapping[str, Any] | None = None) -> bytes:
        image: Image.Image = buffer.image
        if image_format == "JPEG" and image.mode not in ("RGB", "L", "CMYK"):
            image = image.convert("RGB")
        elif image_format == "XBM" and image.mode != "1":
            image = image.convert("1")

        output = BytesIO()
        try:
            image.save(output, format=image_format, **dict(options or {}))
        except (OSError, ValueError, KeyError) as e:
            raise BackendError(f"Failed to encode {image_format}: {e}") from e
        return output.getvalue()


BACKENDS: dict[str, Callable[[], ImageBackend]] = {
    "pil": PillowBackend,
    "pillow": PillowBackend,
}


def create_backend(name: str) -> ImageBackend:
    try:
        factory = BACKENDS[name.lower()]
    except KeyError:
        raise UnsupportedBackendError(
            f"Unknown image backend {name!r}, expected one of: {', '.join(sorted(BACKENDS))}"
        ) from None
    return factory()
