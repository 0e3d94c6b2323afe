import argparse
import sys
from pathlib import Path
from typing import Sequence

from .config import Config
from .converter import build_operations, convert
from .exceptions import ImageEngineError


def parse_box(value: str) -> tuple[int, int]:
    try:
        width, height = (int(part) for part in value.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected WIDTHxHEIGHT, got {value!r}") from None
    return width, height


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="image-engine", description='Convert and transform images')
    parser.add_argument('sources', nargs='+', type=Path, help='Image files to convert')
    parser.add_argument('--output-dir', type=Path, default=Path("converted"), help='Directory for converted files')
    parser.add_argument('--format', dest='mime_type', default=None, help='Output MIME type, e.g. image/bmp')
    parser.add_argument('--fix-orientation', action='store_true', help='Rotate images upright using EXIF data')
    geometry = parser.add_mutually_exclusive_group()
    geometry.add_argument('--resize', type=int, metavar='N', help='Longer side in pixels, ratio preserved')
    geometry.add_argument('--fit', type=parse_box, metavar='WxH', help='Fit within the box, ratio preserved')
    geometry.add_argument('--scale-down', type=parse_box, metavar='WxH', help='Shrink larger images to fit the box')
    geometry.add_argument('--center-crop', type=int, nargs='?', const=0, metavar='N', help='Crop to the middle square, optionally resized to N')
    parser.add_argument('--bmp-bit-depth', type=int, choices=(1, 4, 8, 16, 24, 32), help='Bit depth of BMP output')
    parser.add_argument('--rle', action='store_true', help='RLE8-compress 8-bit BMP output')
    parser.add_argument('--zip', dest='zip_name', default=None, help='Also bundle the results into NAME.zip')
    parser.add_argument('--config', type=Path, default=None, help='YAML configuration file')
    parser.add_argument('--quiet', action='store_true', help='Hide progress output')
    parser.add_argument('--logs', action='store_true', help='Show detailed logs')
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args: argparse.Namespace = build_parser().parse_args(argv)

    try:
        config = Config(config_path=args.config) if args.config else Config()
        if args.rle:
            config.image.bmp_compression = 1
        report = convert(
            sources=args.sources,
            output_dir=args.output_dir,
            mime_type=args.mime_type,
            operations=build_operations(
                fix_orientation=args.fix_orientation,
                resize=args.resize,
                fit=args.fit,
                scale_down=args.scale_down,
                center_crop=args.center_crop,
            ),
            bmp_bit_depth=args.bmp_bit_depth,
            zip_name=args.zip_name,
            config=config,
            verbose=not args.quiet,
            show_logs=args.logs,
        )
    except (ImageEngineError, ValueError) as e:
        print(f"[Error] {e}", file=sys.stderr)
        return 2

    return 1 if report.failed else 0


if __name__ == "__main__":
    sys.exit(main())
