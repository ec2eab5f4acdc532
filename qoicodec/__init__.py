from .decoder import QOIDecoder
from .encoder import QOIEncoder
from .image import Image
from .qoi import QOIChannels, QOIColorSpace, QOIError
from .utils import load_image, save_image

__all__ = [
    "QOIEncoder",
    "QOIDecoder",
    "Image",
    "QOIChannels",
    "QOIColorSpace",
    "QOIError",
    "load_image",
    "save_image",
]
