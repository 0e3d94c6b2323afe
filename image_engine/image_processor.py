import base64
import binascii
import functools
import sys
from pathlib import Path
from typing import BinaryIO, Callable, Literal, Optional, TypeVar

from PIL import Image

from .backends import ImageBackend, PixelBuffer, create_backend
from .bmp import encode_bmp
from .config import Config
from .exceptions import BackendError, InvalidGeometryError, InvalidImageError, UnsupportedFormatError
from .geometry import Point, Size, center_square, fit_box, resize_box, validate_crop, validate_target
from .logger import Logger
from .orientation import OrientationCode, correction_transforms, plan_correction, resolve_orientation, top_left_size
from .transforms import Crop, Resize, TransformSpec

DEFAULT_MIME_TYPE = "image/png"
# files shorter than this cannot hold a recognizable image header
MIN_FILE_SIZE = 12

MIME_FORMATS: dict[str, str] = {
    "image/gif": "GIF",
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/x-xbitmap": "XBM",
    "image/bmp": "BMP",
    "image/x-ms-bmp": "BMP",
}

F = TypeVar("F", bound=Callable[..., bool])


def transform_operation(method: F) -> F:
    """Report a missing image or impossible geometry as a failed operation."""
    @functools.wraps(method)
    def wrapper(self: "ImageProcessor", *args, **kwargs) -> bool:
        if not self.valid():
            self.logger.error(f"{method.__name__}(): No image loaded")
            return False
        try:
            return method(self, *args, **kwargs)
        except InvalidGeometryError as e:
            self.logger.error(f"{method.__name__}(): {e}")
            self.logger.update_stats(success=False)
            return False
    return wrapper  # type: ignore[return-value]


class ImageProcessor:
    """Holds one decoded image and sequences loads, transforms and saves.

    Parameters
    ----------
    config : Config | None, optional
        Engine configuration, by default the packaged defaults
    logger : Logger | None, optional
        Logger receiving diagnostics and operation stats, by default one
        built from ``config.logging``
    backend : ImageBackend | None, optional
        Imaging backend, by default the one named by ``config.image.backend``

    Raises
    ------
    UnsupportedBackendError
        If the configured backend name is not registered

    Notes
    -----
    Transform and load methods never raise for runtime failures: they return
    False (or the loaded buffer) so a chain of operations can be checked at
    the end. The current buffer is only replaced when an operation succeeds.
    """

    def __init__(
        self,
        config: Config | None = None,
        logger: Logger | None = None,
        backend: ImageBackend | None = None,
    ) -> None:
        self.config: Config = config or Config.defaults()
        self.logger: Logger = logger or Logger(
            verbose=self.config.logging.verbose,
            show_logs=self.config.logging.show_logs,
        )
        self.backend: ImageBackend = backend or create_backend(self.config.image.backend)
        self.bit_depth: int = self.config.image.bmp_bit_depth
        self.file_path: Path | None = None
        self._buffer: PixelBuffer | None = None
        self._mime_type: str = DEFAULT_MIME_TYPE
        self._orientation: OrientationCode | None = None

    def valid(self) -> bool:
        return self._buffer is not None

    def resource(self) -> PixelBuffer | None:
        return self._buffer

    def mime_type(self) -> str:
        return self._mime_type if self.valid() else ""

    def width(self) -> int:
        return self._buffer.size.width if self._buffer is not None else -1

    def height(self) -> int:
        return self._buffer.size.height if self._buffer is not None else -1

    def width_top_left(self) -> int:
        """Width the image would have once its orientation is fixed."""
        code = self.get_orientation()
        self.logger.debug(f"width_top_left() Orientation: {code}")
        if self._buffer is None:
            return -1
        return top_left_size(self._buffer.size, code).width

    def height_top_left(self) -> int:
        """Height the image would have once its orientation is fixed."""
        code = self.get_orientation()
        self.logger.debug(f"height_top_left() Orientation: {code}")
        if self._buffer is None:
            return -1
        return top_left_size(self._buffer.size, code).height

    def get_jpeg_quality(self) -> int | None:
        return self.config.image.get_jpeg_quality()

    def get_orientation(self) -> OrientationCode:
        """Orientation code from the EXIF data, or ``UNKNOWN``.

        The code is resolved once per buffer; transforms reset it.
        """
        if self._orientation is not None:
            return self._orientation

        if self._buffer is None:
            self.logger.debug("get_orientation() No image loaded.")
            return OrientationCode.UNKNOWN

        if self._buffer.format != "JPEG":
            self.logger.debug("get_orientation() Image is not a JPEG.")

        self._orientation = resolve_orientation(self._buffer.metadata, self._buffer.format)
        return self._orientation

    def fix_orientation(self) -> bool:
        """Rotate and flip the pixels so the image is upright.

        Returns False when there is nothing to fix or the backend failed.
        """
        code = self.get_orientation()
        self.logger.debug(f"fix_orientation() Orientation: {code}")
        plan = plan_correction(code)
        if plan is None:
            return False
        return self._apply("fix_orientation", correction_transforms(plan))

    def load_from_file_handle(self, handle: BinaryIO) -> PixelBuffer | Literal[False]:
        """Load from an open binary file object.

        The caller positions and closes the handle.
        """
        try:
            data: bytes = handle.read()
        except OSError as e:
            self.logger.debug(f"load_from_file_handle() could not read: {e}")
            return False
        return self.load_from_data(data)

    def load_from_file(self, image_path: str | Path) -> PixelBuffer | Literal[False]:
        path = Path(image_path)
        try:
            if not path.is_file() or path.stat().st_size < MIN_FILE_SIZE:
                return False
            data: bytes = path.read_bytes()
        except OSError as e:
            self.logger.debug(f"load_from_file() could not read {path}: {e}")
            return False

        buffer = self.load_from_data(data)
        if buffer is not False:
            self.file_path = path
        return buffer

    def load_from_data(self, data: bytes) -> PixelBuffer | Literal[False]:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            return False

        try:
            buffer: PixelBuffer = self.backend.load(bytes(data))
        except InvalidImageError as e:
            self.logger.debug(f"load_from_data() could not load: {e}")
            return False

        self._replace_buffer(buffer)
        self._mime_type = Image.MIME.get(buffer.format or "", DEFAULT_MIME_TYPE)
        self.file_path = None
        return buffer

    def load_from_base64(self, data: str) -> PixelBuffer | Literal[False]:
        if not isinstance(data, str):
            return False
        try:
            decoded: bytes = base64.b64decode(data)
        except (binascii.Error, ValueError) as e:
            self.logger.debug(f"load_from_base64() invalid base64 data: {e}")
            return False
        return self.load_from_data(decoded)

    @transform_operation
    def resize(self, max_size: int) -> bool:
        """Resize preserving the ratio so the longer side equals ``max_size``."""
        target: Size = resize_box(self._current().size, max_size)
        return self.precise_resize(target.width, target.height)

    @transform_operation
    def precise_resize(self, width: int, height: int) -> bool:
        """Resize to exactly ``width`` x ``height``, cropping any overflow."""
        target = validate_target(Size(width=width, height=height))
        return self._apply("precise_resize", [Resize(size=target)])

    @transform_operation
    def center_crop(self, size: Optional[int] = None) -> bool:
        """Crop the image to its middle square.

        Parameters
        ----------
        size : int | None, optional
            Side of the resulting square; unset (None or 0) keeps the side of
            the cropped square

        Returns
        -------
        bool
            True on success, including already square images with ``size``
            unset
        """
        if size is not None and size < 0:
            raise InvalidGeometryError(f"Center crop size must not be negative, got {size}")

        current: Size = self._current().size
        if current.is_square() and not size:
            return True

        origin, square = center_square(current)
        transforms: list[TransformSpec] = [Crop(origin=origin, size=square)]
        if size:
            transforms.append(Resize(size=Size(width=size, height=size)))
        return self._apply("center_crop", transforms)

    @transform_operation
    def crop(self, x: int, y: int, w: int, h: int) -> bool:
        origin = Point(x=x, y=y)
        size = Size(width=w, height=h)
        validate_crop(self._current().size, origin, size)
        return self._apply("crop", [Crop(origin=origin, size=size)])

    @transform_operation
    def fit_in(self, max_width: int, max_height: int) -> bool:
        """Resize to fit within the box while preserving the ratio.

        Images smaller than the box are scaled up.
        """
        target: Size = fit_box(self._current().size, max_width, max_height)
        return self.precise_resize(target.width, target.height)

    @transform_operation
    def scale_down_to_fit(self, max_width: int, max_height: int) -> bool:
        """Shrink images larger than the box; returns False when nothing was done."""
        if self._current().size.fits_in(max_width, max_height):
            self.logger.debug(f"scale_down_to_fit() image already fits in {max_width}x{max_height}")
            return False
        return self.fit_in(max_width, max_height)

    def show(self, mime_type: str | None = None, stream: BinaryIO | None = None) -> bool:
        """Write the encoded image to ``stream`` (stdout by default)."""
        if not self.valid():
            return False
        image_format = self._output_format(mime_type)
        try:
            data = self._encode(image_format)
        except BackendError as e:
            self.logger.error(f"show(): {e}")
            return False
        target = stream if stream is not None else sys.stdout.buffer
        target.write(data)
        target.flush()
        return True

    def save(self, file_path: str | Path, mime_type: str | None = None) -> bool:
        if not self.valid():
            return False
        image_format = self._output_format(mime_type)
        path = Path(file_path)
        try:
            data = self._encode(image_format)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except BackendError as e:
            self.logger.error(f"save(): {e}")
            return False
        except OSError as e:
            self.logger.error(f"save(): Path '{path}' is not writable: {e}")
            return False
        return True

    def __call__(self) -> bool:
        return self.show()

    def output_mime_type(self, mime_type: str | None = None) -> str:
        """MIME type ``show``/``save`` would produce for ``mime_type``."""
        if mime_type is not None:
            self._output_format(mime_type)
            return mime_type
        return self._mime_type if self._mime_type in MIME_FORMATS else DEFAULT_MIME_TYPE

    def data_mime_type(self) -> str:
        if not self.valid():
            return ""
        if self._mime_type in ("image/png", "image/jpeg", "image/gif"):
            return self._mime_type
        return DEFAULT_MIME_TYPE

    def data(self) -> bytes | None:
        """Encoded image in its own type (PNG for anything but JPEG/GIF)."""
        if not self.valid():
            return None

        mime_type = self.data_mime_type()
        if mime_type != self._mime_type:
            self.logger.info(f"data() Could not guess format for {self._mime_type}, defaulting to png")
        try:
            return self._encode(MIME_FORMATS[mime_type])
        except BackendError as e:
            self.logger.error(f"data() Error getting image data: {e}")
            return None

    def to_base64(self) -> str:
        data = self.data()
        return base64.b64encode(data).decode("ascii") if data is not None else ""

    def __str__(self) -> str:
        return self.to_base64()

    def destroy(self) -> None:
        self._buffer = None
        self._orientation = None

    def _current(self) -> PixelBuffer:
        if self._buffer is None:
            raise InvalidImageError("No image loaded")
        return self._buffer

    def _replace_buffer(self, buffer: PixelBuffer) -> None:
        self._buffer = buffer
        self._orientation = None

    def _apply(self, operation: str, transforms: list[TransformSpec]) -> bool:
        try:
            buffer = self.backend.apply(self._current(), transforms)
        except BackendError as e:
            self.logger.error(f"{operation}(): Error transforming image: {e}")
            self.logger.update_stats(success=False)
            return False
        self._replace_buffer(buffer)
        self.logger.update_stats(success=True)
        return True

    def _output_format(self, mime_type: str | None) -> str:
        if mime_type is None:
            # a loaded type without an encoder falls back to png
            return MIME_FORMATS.get(self._mime_type, "PNG")
        try:
            return MIME_FORMATS[mime_type]
        except KeyError:
            raise UnsupportedFormatError(
                f'"{mime_type}" is not supported when forcing a specific output format'
            ) from None

    def _encode(self, image_format: str) -> bytes:
        buffer = self._current()
        if image_format == "BMP" and self.backend.software_rasterizer:
            return encode_bmp(buffer, bit_depth=self.bit_depth, compression=self.config.image.bmp_compression)
        options = {}
        if image_format == "JPEG":
            quality = self.get_jpeg_quality()
            if quality is not None:
                options["quality"] = quality
        return self.backend.encode(buffer, image_format, options)
