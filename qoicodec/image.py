import dataclasses

import numpy as np

from .qoi import QOIChannels, QOIColorSpace, QOIError


@dataclasses.dataclass(eq=False)
class Image:
    """
    An image exchanged with the codec.

    :param pixels: height x width uint32 grid of packed 0xRRGGBBAA pixels.
    :param channels: 3 (RGB) or 4 (RGBA), as recorded in the QOI header.
    :param color_space: 0 (sRGB) or 1 (linear).
    """

    pixels: np.ndarray
    channels: QOIChannels = QOIChannels.RGBA
    color_space: QOIColorSpace = QOIColorSpace.SRGB

    def __post_init__(self):
        try:
            self.channels = QOIChannels(self.channels)
        except ValueError:
            raise QOIError(
                f"QOI.Image: Invalid channels {self.channels}, must be 3 or 4"
            ) from None
        try:
            self.color_space = QOIColorSpace(self.color_space)
        except ValueError:
            raise QOIError(
                f"QOI.Image: Invalid color space {self.color_space}, must be 0 or 1"
            ) from None

        try:
            rows = [len(row) for row in self.pixels]
        except TypeError:
            raise QOIError("QOI.Image: Pixels must be a 2-D grid") from None
        if not rows or rows[0] == 0:
            raise QOIError("QOI.Image: Width and height must be positive")
        if any(length != rows[0] for length in rows):
            raise QOIError("QOI.Image: Rows have different lengths")

        pixels = np.asarray(self.pixels)
        if pixels.ndim != 2 or pixels.dtype.kind not in "ui":
            raise QOIError("QOI.Image: Pixels must be a 2-D grid of integers")
        if pixels.min() < 0 or pixels.max() > 0xFFFFFFFF:
            raise QOIError("QOI.Image: Pixels must be packed unsigned 0xRRGGBBAA values")
        self.pixels = pixels.astype(np.uint32)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]
