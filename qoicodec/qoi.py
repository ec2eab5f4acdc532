import dataclasses
import enum

import numpy as np

QOI_MAGIC = b"qoif"
QOI_HEADER_SIZE = 14
QOI_END_MARKER = b"\x00\x00\x00\x00\x00\x00\x00\x01"

QOI_MASK_2 = 0xC0  # 11000000
QOI_MASK_6 = 0x3F  # 00111111
QOI_CACHE_SIZE = 64
QOI_RUN_MAX = 62
QOI_PIXELS_MAX = 400000000  # Safety limit (400MP)

# Position of each channel inside an internal pixel (alpha first)
A, R, G, B = 0, 1, 2, 3

# Column orders used to reorder between the RGBA boundary and internal ARGB
RGBA_TO_ARGB = [3, 0, 1, 2]
ARGB_TO_RGBA = [1, 2, 3, 0]

# r*3 + g*5 + b*7 + a*11, laid out in ARGB order
HASH_WEIGHTS = np.array([11, 3, 5, 7], dtype=np.uint32)

# Opaque black, in ARGB order
START_PIXEL = np.array([255, 0, 0, 0], dtype=np.uint8)


class QOIError(ValueError):
    """Raised when an image, a chunk or a QOI stream breaks the format rules."""


class QOIChannels(enum.IntEnum):
    RGB = 3
    RGBA = 4


class QOIColorSpace(enum.IntEnum):
    SRGB = 0  # sRGB with linear alpha
    LINEAR = 1  # all channels linear


class ChunkTag(enum.IntEnum):
    """Tag carried by the first byte of every chunk."""

    INDEX = 0x00  # 00xxxxxx
    DIFF = 0x40  # 01xxxxxx
    LUMA = 0x80  # 10xxxxxx
    RUN = 0xC0  # 11xxxxxx
    RGB = 0xFE  # 11111110
    RGBA = 0xFF  # 11111111

    @classmethod
    def of(cls, byte: int) -> "ChunkTag":
        """Classify a chunk by its leading byte.

        The two 8-bit tags take precedence over the 2-bit ones, which is why
        a run can never be 63 or 64 pixels long.
        """
        if byte == cls.RGB or byte == cls.RGBA:
            return cls(byte)
        return cls(byte & QOI_MASK_2)


def qoi_hash(pixel) -> int:
    """Index of the color cache slot for an ARGB pixel."""
    return int(np.dot(pixel, HASH_WEIGHTS)) % QOI_CACHE_SIZE


@dataclasses.dataclass
class CodecState:
    """Color cache and previous pixel for a single encode or decode call.

    Encoder and decoder each build their own instance and update it in the
    same order, so both sides hold the same cache at every chunk boundary.
    """

    previous: np.ndarray = dataclasses.field(
        default_factory=lambda: START_PIXEL.copy()
    )
    cache: np.ndarray = dataclasses.field(
        default_factory=lambda: np.zeros((QOI_CACHE_SIZE, 4), dtype=np.uint8)
    )

    def slot(self, pixel) -> int:
        return qoi_hash(pixel)

    def remember(self, pixel) -> int:
        """Store pixel in its cache slot and return the slot."""
        index_pos = qoi_hash(pixel)
        self.cache[index_pos] = pixel
        return index_pos
