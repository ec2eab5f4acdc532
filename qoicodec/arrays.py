"""
Byte and pixel buffer helpers shared by the encoder and the decoder.

Byte sequences are plain ``bytes``; pixel buffers are numpy ``uint8``
arrays of shape ``(N, 4)`` in internal ARGB order, and images are
``(height, width)`` ``uint32`` grids of packed ``0xRRGGBBAA`` values.
"""

import struct

import numpy as np

from .qoi import ARGB_TO_RGBA, RGBA_TO_ARGB, QOIError


def _as_array(data) -> np.ndarray:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return np.frombuffer(data, dtype=np.uint8)
    return np.asarray(data)


def bytes_equal(a, b) -> bool:
    """
    Compare two byte sequences (or two 2-D pixel buffers) element by element.

    :param a: First sequence, bytes-like or numpy array.
    :param b: Second sequence, bytes-like or numpy array.
    :return: True if both have the same shape and the same values.
    """
    if a is None or b is None:
        raise QOIError("QOI.bytes_equal: Cannot compare None")
    return bool(np.array_equal(_as_array(a), _as_array(b)))


def to_uint32_be(data, signed: bool = False) -> int:
    """
    Read 4 big-endian bytes as a 32-bit integer.

    :param data: The 4 bytes to read.
    :param signed: Read them as a two's-complement value instead of unsigned.
    :return: The integer value.
    """
    if data is None or len(data) != 4:
        raise QOIError("QOI.to_uint32_be: Exactly 4 bytes are required")
    return struct.unpack(">i" if signed else ">I", bytes(data))[0]


def from_uint32_be(value: int) -> bytes:
    """Write a 32-bit integer as 4 big-endian bytes.

    Negative values are written as their two's-complement bit pattern.
    """
    if not (-0x80000000 <= value <= 0xFFFFFFFF):
        raise QOIError("QOI.from_uint32_be: Value does not fit in 32 bits")
    return struct.pack(">I", value & 0xFFFFFFFF)


def concat(*parts) -> bytes:
    """
    Concatenate single byte values and byte sequences, in order.

    :param parts: ints in 0..255 and/or bytes-like objects / uint8 arrays.
    :return: bytes object holding every part back to back.
    """
    result = bytearray()
    for part in parts:
        if part is None:
            raise QOIError("QOI.concat: Cannot concatenate None")
        if isinstance(part, (int, np.integer)):
            result.append(int(part))
        else:
            result.extend(_as_array(part).astype(np.uint8, copy=False).tobytes())
    return bytes(result)


def extract(data, start: int, length: int) -> bytes:
    """Copy ``length`` bytes of ``data`` starting at ``start``."""
    if data is None:
        raise QOIError("QOI.extract: Cannot extract from None")
    if start < 0 or length < 0 or start + length > len(data):
        raise QOIError(
            f"QOI.extract: Range [{start}, {start + length}) is outside "
            f"the {len(data)} available bytes"
        )
    return bytes(data[start : start + length])


def partition(data, *sizes: int) -> list[bytes]:
    """Split ``data`` into consecutive pieces of the given sizes."""
    if data is None:
        raise QOIError("QOI.partition: Cannot partition None")
    if sum(sizes) != len(data):
        raise QOIError(
            f"QOI.partition: Sizes add up to {sum(sizes)}, expected {len(data)}"
        )

    pieces = []
    start = 0
    for size in sizes:
        pieces.append(extract(data, start, size))
        start += size
    return pieces


def image_to_channels(grid) -> np.ndarray:
    """
    Flatten an image grid into a pixel buffer.

    :param grid: height x width grid of packed 0xRRGGBBAA pixels.
    :return: (height * width, 4) uint8 array in ARGB order, row-major.
    """
    if grid is None or len(grid) == 0:
        raise QOIError("QOI.image_to_channels: The image has no rows")

    width = len(grid[0])
    if any(len(row) != width for row in grid):
        raise QOIError("QOI.image_to_channels: Rows have different lengths")

    # Big-endian view puts the bytes in R, G, B, A order
    packed = np.ascontiguousarray(grid, dtype=">u4")
    rgba = packed.view(np.uint8).reshape(-1, 4)
    return np.ascontiguousarray(rgba[:, RGBA_TO_ARGB])


def channels_to_image(flat, height: int, width: int) -> np.ndarray:
    """
    Inverse of :func:`image_to_channels`.

    :param flat: (height * width, 4) uint8 array in ARGB order.
    :param height: Number of rows of the output grid.
    :param width: Number of columns of the output grid.
    :return: height x width uint32 grid of packed 0xRRGGBBAA pixels.
    """
    if flat is None:
        raise QOIError("QOI.channels_to_image: The pixel buffer is None")

    flat = np.asarray(flat, dtype=np.uint8)
    if flat.ndim != 2 or flat.shape[1] != 4:
        raise QOIError("QOI.channels_to_image: Pixels must have 4 channels")
    if flat.shape[0] != height * width:
        raise QOIError(
            f"QOI.channels_to_image: {flat.shape[0]} pixels cannot fill "
            f"a {width}x{height} image"
        )

    rgba = np.ascontiguousarray(flat[:, ARGB_TO_RGBA])
    return rgba.view(">u4").reshape(height, width).astype(np.uint32)
