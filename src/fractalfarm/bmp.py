"""24-bit BMP encoding of the finished raster."""

from __future__ import annotations

import struct
from pathlib import Path

import numpy as np

from .errors import BmpFormatError

__all__ = ["encode_bmp", "decode_bmp", "write_bmp", "read_bmp"]

FILE_HEADER = struct.Struct("<2sIHHI")
INFO_HEADER = struct.Struct("<IiiHHIIiiII")
HEADER_SIZE = FILE_HEADER.size + INFO_HEADER.size  # 54


def _row_padding(width: int) -> int:
    return (4 - (width * 3) % 4) % 4


def encode_bmp(image: np.ndarray) -> bytes:
    """Encode an ``(height, width, 3)`` RGB raster, row 0 at the top.

    Rows are stored bottom-to-top as BGR triples, each padded to 4 bytes.
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (height, width, 3) raster, got shape {image.shape}")
    height, width, _ = image.shape
    padding = _row_padding(width)

    rows = np.ascontiguousarray(image[::-1, :, ::-1], dtype=np.uint8).reshape(height, width * 3)
    if padding:
        rows = np.hstack([rows, np.zeros((height, padding), dtype=np.uint8)])
    pixel_data = rows.tobytes()

    file_header = FILE_HEADER.pack(b"BM", HEADER_SIZE + len(pixel_data), 0, 0, HEADER_SIZE)
    info_header = INFO_HEADER.pack(
        INFO_HEADER.size, width, height, 1, 24, 0, len(pixel_data), 0, 0, 0, 0
    )
    return file_header + info_header + pixel_data


def decode_bmp(data: bytes) -> np.ndarray:
    """Decode an uncompressed 24-bit BMP into an RGB raster, row 0 at the top."""
    if len(data) < HEADER_SIZE:
        raise BmpFormatError(f"Truncated BMP header ({len(data)} bytes)")
    magic, _, _, _, offset = FILE_HEADER.unpack_from(data, 0)
    if magic != b"BM":
        raise BmpFormatError(f"Bad BMP magic {magic!r}")
    _, width, height, _, bits, compression, _, _, _, _, _ = INFO_HEADER.unpack_from(data, FILE_HEADER.size)
    if bits != 24 or compression != 0:
        raise BmpFormatError(f"Only uncompressed 24-bit BMP is supported (bpp={bits}, compression={compression})")

    # Negative height marks a top-down file.
    top_down = height < 0
    height = abs(height)
    stride = width * 3 + _row_padding(width)
    if len(data) < offset + stride * height:
        raise BmpFormatError("Pixel data shorter than the header claims")

    rows = np.frombuffer(data, dtype=np.uint8, count=stride * height, offset=offset)
    pixels = rows.reshape(height, stride)[:, : width * 3].reshape(height, width, 3)[:, :, ::-1]
    if not top_down:
        pixels = pixels[::-1]
    return np.ascontiguousarray(pixels)


def write_bmp(path: str | Path, image: np.ndarray) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(encode_bmp(image))
    return path


def read_bmp(path: str | Path) -> np.ndarray:
    return decode_bmp(Path(path).read_bytes())
