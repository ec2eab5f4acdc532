import numpy as np
from PIL import Image as PILImage

from .image import Image
from .qoi import QOIChannels, QOIColorSpace, QOIError

DEFAULT_COLORSPACE = QOIColorSpace.SRGB
RAW_EXTENSIONS = ("dng", "cr2", "nef", "arw", "raw")


def pack_rgba(array) -> np.ndarray:
    """Pack an (H, W, 3|4) uint8 array into a grid of 0xRRGGBBAA pixels."""
    array = np.asarray(array, dtype=np.uint8)
    if array.ndim != 3 or array.shape[2] not in (3, 4):
        raise QOIError("QOI.pack_rgba: Expected an (H, W, 3) or (H, W, 4) array")

    height, width, channels = array.shape
    if channels == 3:
        # Opaque alpha for RGB images
        alpha = np.full((height, width, 1), 255, dtype=np.uint8)
        array = np.concatenate([array, alpha], axis=2)

    packed = np.ascontiguousarray(array).view(">u4")
    return packed.reshape(height, width).astype(np.uint32)


def unpack_rgba(grid, channels: int = 4) -> np.ndarray:
    """Unpack a grid of 0xRRGGBBAA pixels into an (H, W, channels) uint8 array."""
    if channels not in tuple(QOIChannels):
        raise QOIError("QOI.unpack_rgba: channels must be 3 or 4")

    packed = np.ascontiguousarray(grid, dtype=">u4")
    height, width = packed.shape
    rgba = packed.view(np.uint8).reshape(height, width, 4)
    return np.ascontiguousarray(rgba[:, :, :channels])


def load_image(filepath: str, colorspace: int = DEFAULT_COLORSPACE) -> Image:
    """Load an image file and return it as a qoicodec.Image."""

    ext = filepath.lower().split(".")[-1]

    if ext in RAW_EXTENSIONS:
        # RAW formats - requires rawpy
        import rawpy

        with rawpy.imread(filepath) as raw:
            rgb = raw.postprocess()
        img = PILImage.fromarray(rgb)
    else:
        # Standard formats (PNG, JPEG, etc.)
        img = PILImage.open(filepath)

    # Convert to RGB or RGBA
    if img.mode == "RGBA":
        channels = QOIChannels.RGBA
    else:
        img = img.convert("RGB")
        channels = QOIChannels.RGB

    return Image(pack_rgba(np.array(img)), channels, colorspace)


def save_image(image: Image, filepath: str):
    """Write a qoicodec.Image through Pillow, in RGB or RGBA mode."""
    # Pillow picks RGB or RGBA from the last axis
    img = PILImage.fromarray(unpack_rgba(image.pixels, image.channels))
    img.save(filepath)
