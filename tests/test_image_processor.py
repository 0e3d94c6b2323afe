from __future__ import annotations

import base64
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from image_engine.backends import PixelBuffer
from image_engine.bmp import encode_bmp
from image_engine.config import Config, ImageConfig
from image_engine.exceptions import InvalidImageError, UnsupportedBackendError, UnsupportedFormatError
from image_engine.image_processor import ImageProcessor
from image_engine.transforms import Crop, Resize

from conftest import make_image_bytes


def _striped(size: tuple[int, int]) -> bytes:
    """Landscape image: red left quarter, green middle half, blue right quarter."""
    width, height = size
    image = Image.new("RGB", size, color=(0, 255, 0))
    image.paste((255, 0, 0), (0, 0, width // 4, height))
    image.paste((0, 0, 255), (width - width // 4, 0, width, height))
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def test_empty_processor_reports_failure(processor: ImageProcessor) -> None:
    assert processor.valid() is False
    assert processor.width() == -1
    assert processor.height() == -1
    assert processor.mime_type() == ""
    assert processor.data_mime_type() == ""
    assert processor.data() is None
    assert processor.resize(100) is False
    assert processor.precise_resize(10, 10) is False
    assert processor.crop(0, 0, 1, 1) is False
    assert processor.center_crop() is False
    assert processor.fit_in(10, 10) is False
    assert processor.scale_down_to_fit(10, 10) is False
    assert processor.show(stream=BytesIO()) is False
    assert processor.save("unused.png") is False


def test_load_from_data_detects_mime_type(processor: ImageProcessor) -> None:
    buffer = processor.load_from_data(make_image_bytes((30, 20), image_format="JPEG"))

    assert isinstance(buffer, PixelBuffer)
    assert processor.valid()
    assert processor.mime_type() == "image/jpeg"
    assert (processor.width(), processor.height()) == (30, 20)


def test_load_from_data_rejects_garbage_and_keeps_previous(processor: ImageProcessor) -> None:
    assert processor.load_from_data(b"definitely not an image") is False
    assert processor.valid() is False

    processor.load_from_data(make_image_bytes((30, 20)))
    previous = processor.resource()
    assert processor.load_from_data(b"\x89PNG broken") is False
    assert processor.resource() is previous


def test_load_from_file(processor: ImageProcessor, tmp_path: Path) -> None:
    path = tmp_path / "picture.gif"
    path.write_bytes(make_image_bytes((16, 8), image_format="GIF"))

    assert processor.load_from_file(path) is not False
    assert processor.mime_type() == "image/gif"
    assert processor.file_path == path


def test_load_from_file_rejects_missing_and_tiny_files(processor: ImageProcessor, tmp_path: Path) -> None:
    tiny = tmp_path / "tiny.png"
    tiny.write_bytes(b"\x89PNG")

    assert processor.load_from_file(tmp_path / "missing.png") is False
    assert processor.load_from_file(tiny) is False
    assert processor.load_from_file(tmp_path) is False


def test_load_from_file_handle(processor: ImageProcessor) -> None:
    handle = BytesIO(make_image_bytes((12, 34)))
    assert processor.load_from_file_handle(handle) is not False
    assert (processor.width(), processor.height()) == (12, 34)


def test_load_from_data_rejects_oversized_images(processor: ImageProcessor, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)
    assert processor.load_from_data(make_image_bytes((10, 10))) is False
    assert processor.valid() is False


def test_load_from_file_handle_rejects_unreadable_handles(processor: ImageProcessor, tmp_path: Path) -> None:
    with open(tmp_path / "write_only.png", "wb") as handle:
        assert processor.load_from_file_handle(handle) is False
    assert processor.valid() is False


def test_current_buffer_requires_an_image(processor: ImageProcessor) -> None:
    with pytest.raises(InvalidImageError):
        processor._current()


def test_load_from_base64(processor: ImageProcessor) -> None:
    encoded = base64.b64encode(make_image_bytes((5, 7))).decode()
    assert processor.load_from_base64(encoded) is not False
    assert (processor.width(), processor.height()) == (5, 7)
    assert processor.load_from_base64(b"not a str") is False  # type: ignore[arg-type]


@pytest.mark.parametrize(("size", "expected"), [((200, 100), (100, 50)), ((100, 200), (50, 100))])
def test_resize_preserves_ratio(processor: ImageProcessor, size, expected) -> None:
    processor.load_from_data(make_image_bytes(size))
    assert processor.resize(100) is True
    assert (processor.width(), processor.height()) == expected


def test_precise_resize_fills_box(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((200, 100)))
    assert processor.precise_resize(60, 60) is True
    assert (processor.width(), processor.height()) == (60, 60)


def test_precise_resize_rejects_empty_box(recording_processor) -> None:
    processor, backend = recording_processor
    processor.load_from_data(make_image_bytes((20, 10)))
    assert processor.precise_resize(0, 10) is False
    assert backend.applied == []


def test_center_crop_takes_middle_square(processor: ImageProcessor) -> None:
    processor.load_from_data(_striped((400, 200)))

    assert processor.center_crop() is True

    image = processor.resource().image
    assert image.size == (200, 200)
    assert image.getcolors() == [(200 * 200, (0, 255, 0))]


def test_center_crop_sends_crop_at_midpoint(recording_processor) -> None:
    processor, backend = recording_processor
    processor.load_from_data(make_image_bytes((400, 200)))

    processor.center_crop()

    crop = backend.applied[0][0]
    assert isinstance(crop, Crop)
    assert (crop.origin.x, crop.origin.y) == (100, 0)
    assert (crop.size.width, crop.size.height) == (200, 200)


def test_center_crop_square_is_noop(recording_processor) -> None:
    processor, backend = recording_processor
    processor.load_from_data(make_image_bytes((50, 50)))
    before = processor.resource()

    assert processor.center_crop() is True
    assert processor.center_crop(0) is True
    assert processor.resource() is before
    assert backend.applied == []


def test_center_crop_with_size_resizes_square(recording_processor) -> None:
    processor, backend = recording_processor
    processor.load_from_data(make_image_bytes((400, 200)))

    assert processor.center_crop(50) is True
    assert (processor.width(), processor.height()) == (50, 50)
    assert isinstance(backend.applied[0][1], Resize)


def test_center_crop_with_size_on_square_image(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((80, 80)))
    assert processor.center_crop(20) is True
    assert (processor.width(), processor.height()) == (20, 20)


def test_crop(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((100, 80)))
    assert processor.crop(10, 10, 20, 30) is True
    assert (processor.width(), processor.height()) == (20, 30)


@pytest.mark.parametrize("box", [(-1, 0, 10, 10), (0, -1, 10, 10), (95, 0, 10, 10), (0, 0, 0, 5)])
def test_crop_rejects_invalid_geometry(recording_processor, box) -> None:
    processor, backend = recording_processor
    processor.load_from_data(make_image_bytes((100, 80)))
    before = processor.resource()

    assert processor.crop(*box) is False
    assert processor.resource() is before
    assert backend.applied == []


def test_fit_in_without_cropping(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((400, 200)))
    assert processor.fit_in(100, 50) is True
    assert (processor.width(), processor.height()) == (100, 50)


@pytest.mark.parametrize(
    ("size", "box", "expected"),
    [((333, 177), (100, 100), (100, 53)), ((177, 333), (120, 90), (48, 90)), ((10, 10), (64, 32), (32, 32))],
)
def test_fit_in_result_equals_contain_box(processor: ImageProcessor, size, box, expected) -> None:
    processor.load_from_data(make_image_bytes(size))
    assert processor.fit_in(*box) is True
    assert (processor.width(), processor.height()) == expected


def test_scale_down_to_fit_declines_small_images(recording_processor) -> None:
    processor, backend = recording_processor
    processor.load_from_data(make_image_bytes((50, 50)))

    assert processor.scale_down_to_fit(100, 100) is False
    assert (processor.width(), processor.height()) == (50, 50)
    assert backend.applied == []


def test_scale_down_to_fit_shrinks_large_images(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((200, 50)))
    assert processor.scale_down_to_fit(100, 100) is True
    assert (processor.width(), processor.height()) == (100, 25)


def test_zero_area_image_fails_before_backend(recording_processor) -> None:
    processor, backend = recording_processor
    processor._replace_buffer(PixelBuffer(image=Image.new("RGB", (0, 0)), format="PNG"))

    assert processor.resize(100) is False
    assert processor.fit_in(10, 10) is False
    assert processor.center_crop(10) is False
    assert backend.applied == []
    assert processor.logger.stats.failed == 3


def test_backend_failure_keeps_previous_buffer(failing_processor: ImageProcessor) -> None:
    failing_processor.load_from_data(make_image_bytes((200, 100)))
    before = failing_processor.resource()

    assert failing_processor.resize(50) is False
    assert failing_processor.crop(0, 0, 10, 10) is False
    assert failing_processor.resource() is before
    assert (failing_processor.width(), failing_processor.height()) == (200, 100)


def test_transforms_do_not_mutate_previous_buffer(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((200, 100)))
    before = processor.resource()

    processor.resize(50)

    assert before.image.size == (200, 100)
    assert processor.resource() is not before


def test_stats_count_operations(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((200, 100)))
    processor.resize(50)
    processor.crop(-1, 0, 5, 5)

    assert processor.logger.stats.successful == 1
    assert processor.logger.stats.failed == 1


def test_save_creates_directories(processor: ImageProcessor, tmp_path: Path) -> None:
    processor.load_from_data(make_image_bytes((20, 10)))
    target = tmp_path / "nested" / "dir" / "out.jpg"

    assert processor.save(target, "image/jpeg") is True
    with Image.open(target) as saved:
        assert saved.format == "JPEG"
        assert saved.size == (20, 10)


def test_save_keeps_loaded_type_by_default(processor: ImageProcessor, tmp_path: Path) -> None:
    processor.load_from_data(make_image_bytes((20, 10), image_format="GIF"))
    target = tmp_path / "out.gif"

    assert processor.save(target) is True
    with Image.open(target) as saved:
        assert saved.format == "GIF"


def test_save_xbm(processor: ImageProcessor, tmp_path: Path) -> None:
    processor.load_from_data(make_image_bytes((16, 8), color="white"))
    target = tmp_path / "out.xbm"

    assert processor.save(target, "image/x-xbitmap") is True
    assert b"#define" in target.read_bytes()


def test_unsupported_output_format_raises(processor: ImageProcessor, tmp_path: Path) -> None:
    processor.load_from_data(make_image_bytes((20, 10)))
    with pytest.raises(UnsupportedFormatError):
        processor.save(tmp_path / "out.webp", "image/webp")
    with pytest.raises(UnsupportedFormatError):
        processor.show("text/plain", stream=BytesIO())


def test_show_bmp_uses_bitmap_encoder(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((7, 3), color="blue"))
    stream = BytesIO()

    assert processor.show("image/x-ms-bmp", stream=stream) is True
    assert stream.getvalue() == encode_bmp(processor.resource(), bit_depth=24)


def test_show_bmp_honours_bit_depth(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((7, 3), color="blue"))
    processor.bit_depth = 8
    stream = BytesIO()

    processor.show("image/bmp", stream=stream)

    assert int.from_bytes(stream.getvalue()[28:30], "little") == 8


def test_call_writes_to_stdout(processor: ImageProcessor, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    processor.load_from_data(make_image_bytes((4, 4)))

    assert processor() is True
    assert capsysbinary.readouterr().out.startswith(b"\x89PNG")


def test_data_falls_back_to_png(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((6, 6), image_format="BMP"))

    assert processor.mime_type() == "image/bmp"
    assert processor.data_mime_type() == "image/png"
    assert processor.data().startswith(b"\x89PNG")


def test_data_keeps_jpeg(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((6, 6), image_format="JPEG"))
    assert processor.data().startswith(b"\xff\xd8")


def test_str_is_base64_of_data(processor: ImageProcessor) -> None:
    assert str(processor) == ""
    processor.load_from_data(make_image_bytes((3, 3)))
    assert base64.b64decode(str(processor)) == processor.data()


@pytest.mark.parametrize(("configured", "expected"), [(150, 100), (3, 10), (75, 75), (None, None)])
def test_jpeg_quality_is_clamped(configured, expected) -> None:
    config = Config.defaults()
    config.image = ImageConfig(jpeg_quality=configured)
    assert ImageProcessor(config=config).get_jpeg_quality() == expected


def test_unknown_backend_fails_at_construction() -> None:
    config = Config.defaults()
    config.image = ImageConfig(backend="imagick")
    with pytest.raises(UnsupportedBackendError):
        ImageProcessor(config=config)


def test_destroy_resets_processor(processor: ImageProcessor) -> None:
    processor.load_from_data(make_image_bytes((3, 3)))
    processor.destroy()
    assert processor.valid() is False
    assert processor.width() == -1
