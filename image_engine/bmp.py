"""Windows bitmap (BMP/DIB) encoder.

Writes BITMAPINFOHEADER bitmaps at 1, 4, 8, 16 or 24 bits per pixel, with
optional RLE8 compression for 8-bit images. Depths of 8 bits and below go
through Pillow's quantizer to build the color table.
"""
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, Union

from PIL import Image

from .backends import PixelBuffer

FILE_HEADER = struct.Struct("<2sIHHI")
INFO_HEADER = struct.Struct("<IiiHHIIiiII")
HEADERS_SIZE = FILE_HEADER.size + INFO_HEADER.size

SUPPORTED_BIT_DEPTHS = (1, 4, 8, 16, 24, 32)
END_OF_LINE = b"\x00\x00"
END_OF_BITMAP = b"\x00\x01"
MAX_RUN = 255

Palette = list[tuple[int, int, int]]


class Compression(IntEnum):
    NONE = 0
    RLE8 = 1


@dataclass(frozen=True)
class BitmapEncodingParams:
    bit_depth: int = 24
    compression: Compression = Compression.NONE

    @classmethod
    def normalized(cls, bit_depth: int = 24, compression: int = Compression.NONE) -> "BitmapEncodingParams":
        """Coerce requested parameters to ones the encoder can write.

        Unknown depths and 32 become 24 (alpha is never written). RLE8 is
        only kept for 8-bit bitmaps, anything else is written uncompressed.
        """
        if bit_depth not in SUPPORTED_BIT_DEPTHS or bit_depth == 32:
            bit_depth = 24
        if compression == Compression.RLE8 and bit_depth == 8:
            mode = Compression.RLE8
        else:
            mode = Compression.NONE
        return cls(bit_depth=bit_depth, compression=mode)

    @property
    def indexed(self) -> bool:
        return self.bit_depth <= 8


def row_padding(row_length: int) -> int:
    return -row_length % 4


def quantize(image: Image.Image, colors: int) -> tuple[bytes, Palette]:
    """Reduce ``image`` to at most ``colors`` colors.

    Returns one palette index per pixel (row-major, top row first) and the
    palette in the order the quantizer assigned the indices. The palette is
    trimmed after the highest index in use.
    """
    indexed: Image.Image = image.convert("RGB").quantize(colors=colors)
    indices: bytes = indexed.tobytes()
    flat: list[int] = indexed.getpalette("RGB") or []
    count: int = max(indices) + 1 if indices else 0
    palette: Palette = [
        (flat[i * 3], flat[i * 3 + 1], flat[i * 3 + 2]) for i in range(count)
    ]
    return indices, palette


def encode_palette(palette: Palette) -> bytes:
    return b"".join(bytes((blue, green, red, 0)) for red, green, blue in palette)


def pack_indexed_rows(indices: bytes, width: int, height: int, bit_depth: int) -> bytes:
    """Pack palette indices most significant bits first, bottom row first."""
    per_byte: int = 8 // bit_depth
    row_length: int = -(-width // per_byte)
    padding: bytes = b"\x00" * row_padding(row_length)
    data = bytearray()
    for y in range(height - 1, -1, -1):
        row = indices[y * width:(y + 1) * width]
        if per_byte == 1:
            data += row
        else:
            for start in range(0, width, per_byte):
                value = 0
                for k, index in enumerate(row[start:start + per_byte]):
                    value |= index << (8 - bit_depth * (k + 1))
                data.append(value)
        data += padding
    return bytes(data)


def encode_rle8_rows(indices: bytes, width: int, height: int) -> bytes:
    """Run-length encode 8-bit indices as (count, index) pairs, bottom row first."""
    data = bytearray()
    for y in range(height - 1, -1, -1):
        row = indices[y * width:(y + 1) * width]
        run_index: int = 0
        run_length: int = 0
        for index in row:
            if run_length and index == run_index and run_length < MAX_RUN:
                run_length += 1
                continue
            if run_length:
                data += bytes((run_length, run_index))
            run_index, run_length = index, 1
        if run_length:
            data += bytes((run_length, run_index))
        data += END_OF_LINE
    data += END_OF_BITMAP
    return bytes(data)


def pack_rgb555_rows(rgb: bytes, width: int, height: int) -> bytes:
    stride: int = width * 3
    padding: bytes = b"\x00" * row_padding(width * 2)
    data = bytearray()
    for y in range(height - 1, -1, -1):
        row = rgb[y * stride:(y + 1) * stride]
        for i in range(0, stride, 3):
            red, green, blue = row[i], row[i + 1], row[i + 2]
            data += struct.pack("<H", (red >> 3) << 10 | (green >> 3) << 5 | blue >> 3)
        data += padding
    return bytes(data)


def pack_bgr_rows(bgr: bytes, width: int, height: int) -> bytes:
    stride: int = width * 3
    padding: bytes = b"\x00" * row_padding(stride)
    data = bytearray()
    for y in range(height - 1, -1, -1):
        data += bgr[y * stride:(y + 1) * stride]
        data += padding
    return bytes(data)


def encode_bmp(
    source: Union[PixelBuffer, Image.Image],
    bit_depth: int = 24,
    compression: int = Compression.NONE,
) -> bytes:
    """Serialize an image to the BMP file format.

    Parameters
    ----------
    source : PixelBuffer | Image.Image
        Pixels to encode; alpha is discarded
    bit_depth : int, optional
        One of 1, 4, 8, 16, 24 (32 and unknown values become 24), by default 24
    compression : int, optional
        ``Compression.RLE8`` for run-length encoded 8-bit bitmaps, by default
        ``Compression.NONE``

    Returns
    -------
    bytes
        Complete file contents, headers included
    """
    image: Image.Image = source.image if isinstance(source, PixelBuffer) else source
    params = BitmapEncodingParams.normalized(bit_depth=bit_depth, compression=compression)
    width, height = image.size

    palette: Palette = []
    if params.indexed:
        indices, palette = quantize(image=image, colors=2 ** params.bit_depth)
        if params.compression == Compression.RLE8:
            pixel_data = encode_rle8_rows(indices=indices, width=width, height=height)
        else:
            pixel_data = pack_indexed_rows(indices=indices, width=width, height=height, bit_depth=params.bit_depth)
    elif params.bit_depth == 16:
        rgb: bytes = image.convert("RGB").tobytes()
        pixel_data = pack_rgb555_rows(rgb=rgb, width=width, height=height)
    else:
        bgr: bytes = image.convert("RGB").tobytes("raw", "BGR")
        pixel_data = pack_bgr_rows(bgr=bgr, width=width, height=height)

    color_table: bytes = encode_palette(palette)
    data_offset: int = HEADERS_SIZE + len(color_table)
    file_header: bytes = FILE_HEADER.pack(b"BM", data_offset + len(pixel_data), 0, 0, data_offset)
    info_header: bytes = INFO_HEADER.pack(
        INFO_HEADER.size,
        width,
        height,
        1,
        params.bit_depth,
        params.compression,
        len(pixel_data),
        0,
        0,
        len(palette),
        0,
    )
    return file_header + info_header + color_table + pixel_data


def write_bmp(
    source: Union[PixelBuffer, Image.Image],
    fp: BinaryIO,
    bit_depth: int = 24,
    compression: int = Compression.NONE,
) -> int:
    """Write the output of :func:`encode_bmp` to ``fp``; returns the byte count."""
    data: bytes = encode_bmp(source=source, bit_depth=bit_depth, compression=compression)
    fp.write(data)
    return len(data)
