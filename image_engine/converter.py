from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from .archive import ZipStreamer
from .config import Config
from .exceptions import UnsupportedFormatError
from .geometry import Size
from .image_processor import MIME_FORMATS, ImageProcessor
from .logger import Logger
from .orientation import OrientationCode
from .progress import ProgressManager

EXTENSIONS: dict[str, str] = {
    "image/gif": "gif",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/x-xbitmap": "xbm",
    "image/bmp": "bmp",
    "image/x-ms-bmp": "bmp",
}


@dataclass
class ConversionReport:
    converted: list[Path] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)
    archive: Path | None = None


Operation = tuple[str, Callable[[ImageProcessor], bool]]


def build_operations(
    fix_orientation: bool = False,
    resize: int | None = None,
    fit: tuple[int, int] | None = None,
    scale_down: tuple[int, int] | None = None,
    center_crop: int | None = None,
) -> list[Operation]:
    """Translate conversion options into an ordered list of processor calls.

    Orientation is fixed first so later geometry applies to the upright image.
    ``scale_down`` declining to touch an image that already fits is not a
    failure.
    """
    operations: list[Operation] = []
    if fix_orientation:
        operations.append((
            "fix_orientation",
            lambda p: p.fix_orientation() or p.get_orientation() == OrientationCode.UNKNOWN,
        ))
    if center_crop is not None:
        operations.append(("center_crop", lambda p: p.center_crop(center_crop)))
    if resize is not None:
        operations.append(("resize", lambda p: p.resize(resize)))
    if fit is not None:
        operations.append(("fit_in", lambda p: p.fit_in(*fit)))
    if scale_down is not None:
        operations.append((
            "scale_down_to_fit",
            lambda p: p.scale_down_to_fit(*scale_down) or Size(p.width(), p.height()).fits_in(*scale_down),
        ))
    return operations


def convert(
    sources: Sequence[str | Path],
    output_dir: str | Path = "converted",
    mime_type: str | None = None,
    operations: Sequence[Operation] = (),
    bmp_bit_depth: int | None = None,
    zip_name: str | None = None,
    config: Config | None = None,
    verbose: bool = True,
    show_logs: bool = False,
) -> ConversionReport:
    """Convert image files one after another.

    Parameters
    ----------
    sources : Sequence[str | Path]
        Image files to convert, processed in order
    output_dir : str | Path, optional
        Directory receiving the converted files, by default 'converted'
    mime_type : str | None, optional
        Output MIME type, by default each source keeps its own type
    operations : Sequence[Operation], optional
        Transforms applied to every image, see :func:`build_operations`
    bmp_bit_depth : int | None, optional
        Bit depth of BMP output, by default the configured one
    zip_name : str | None, optional
        When set, the converted files are also bundled into
        ``<output_dir>/<zip_name>.zip``
    config : Config | None, optional
        Engine configuration, by default the packaged defaults
    verbose : bool, optional
        Whether to show progress, by default True
    show_logs : bool, optional
        Whether to show detailed logs, by default False

    Returns
    -------
    ConversionReport
        Written files and sources that could not be converted

    Raises
    ------
    UnsupportedFormatError
        If ``mime_type`` has no encoder
    """
    config = config or Config.defaults()
    if mime_type is not None and mime_type not in MIME_FORMATS:
        raise UnsupportedFormatError(f'"{mime_type}" is not a supported output format')

    logger = Logger(verbose=verbose, show_logs=show_logs)
    target_dir = Path(output_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    report = ConversionReport()

    with ProgressManager(total=len(sources), enabled=verbose) as progress:
        for source in map(Path, sources):
            output = _convert_one(
                source=source,
                target_dir=target_dir,
                mime_type=mime_type,
                operations=operations,
                bmp_bit_depth=bmp_bit_depth,
                config=config,
                logger=logger,
            )
            if output is None:
                report.failed.append(source)
            else:
                report.converted.append(output)
            progress.update(source, success=output is not None)

    if zip_name and report.converted:
        report.archive = write_archive(
            files=report.converted,
            destination=target_dir / f"{zip_name}.zip",
            chunk_size=config.archive.chunk_size,
        )
        logger.info(f"Archived {len(report.converted)} files to {report.archive}")

    logger.summary()
    return report


def _convert_one(
    source: Path,
    target_dir: Path,
    mime_type: str | None,
    operations: Sequence[Operation],
    bmp_bit_depth: int | None,
    config: Config,
    logger: Logger,
) -> Path | None:
    processor = ImageProcessor(config=config, logger=logger)
    if bmp_bit_depth is not None:
        processor.bit_depth = bmp_bit_depth

    if processor.load_from_file(source) is False:
        logger.error(f"Could not load {source}")
        return None

    for name, operation in operations:
        # later transforms would work on a buffer that failed to update
        if not operation(processor):
            logger.error(f"{name} failed for {source}, skipping")
            return None

    output_type = processor.output_mime_type(mime_type)
    output = target_dir / f"{source.stem}.{EXTENSIONS[output_type]}"
    if not processor.save(output, mime_type=output_type):
        return None
    logger.info(f"Converted {source} -> {output}")
    return output


def write_archive(files: Sequence[Path], destination: Path, chunk_size: int = 64 * 1024) -> Path:
    streamer = ZipStreamer(chunk_size=chunk_size)
    with ExitStack() as stack:
        for path in files:
            stat = path.stat()
            handle = stack.enter_context(open(path, "rb"))
            streamer.add_resource(handle, internal_name=path.name, size=stat.st_size, time=int(stat.st_mtime))
        with open(destination, "wb") as out:
            for chunk in streamer.iter_chunks():
                out.write(chunk)
    return destination
