from importlib.metadata import version

import numpy as np
import pytest

from qoicodec import Image, QOIDecoder, QOIEncoder
from qoicodec.arrays import image_to_channels
from qoicodec.utils import pack_rgba, unpack_rgba

WIDTH = 37
HEIGHT = 23


def make_pixels(channels, seed=0):
    """Build an (H, W, channels) image that exercises every chunk kind."""
    rng = np.random.default_rng(seed)

    # Smooth gradient: diff and luma chunks
    y, x = np.mgrid[0:HEIGHT, 0:WIDTH]
    pixels = np.stack([x * 3, y * 5, (x + y) * 2], axis=-1) % 256

    # Flat band: runs, longer than 62 pixels once flattened
    pixels[5:9] = (200, 10, 10)

    # Noise: rgb chunks
    pixels[12:15] = rng.integers(0, 256, size=(3, WIDTH, 3))

    # Small palette: index chunks
    palette = np.array([(1, 2, 3), (250, 0, 120), (17, 99, 42)])
    pixels[18:] = palette[rng.integers(0, 3, size=(HEIGHT - 18, WIDTH))]

    pixels = pixels.astype(np.uint8)
    if channels == 4:
        alpha = np.full((HEIGHT, WIDTH, 1), 255, dtype=np.uint8)
        alpha[10:16, ::4] = 128
        alpha[16, :] = rng.integers(0, 256, size=(WIDTH, 1))
        pixels = np.concatenate([pixels, alpha], axis=2)
    return pixels


@pytest.mark.parametrize("channels", [3, 4])
@pytest.mark.parametrize("colorspace", [0, 1])
def test_round_trip(channels, colorspace):
    """Verify that decoding an encoded image gives back the same pixels."""
    image = Image(pack_rgba(make_pixels(channels)), channels, colorspace)

    encoded = QOIEncoder.encode(image)
    decoded = QOIDecoder.decode(encoded)

    assert (decoded.width, decoded.height) == (WIDTH, HEIGHT)
    assert decoded.channels == channels
    assert decoded.color_space == colorspace
    assert np.array_equal(decoded.pixels, image.pixels)


def test_header_round_trip():
    image = Image(pack_rgba(make_pixels(4)), 4, 1)
    assert QOIDecoder.decode_header(QOIEncoder.header(image)) == (WIDTH, HEIGHT, 4, 1)


def test_reencoding_is_canonical():
    image = Image(pack_rgba(make_pixels(4, seed=3)), 4, 0)
    encoded = QOIEncoder.encode(image)

    assert QOIEncoder.encode(QOIDecoder.decode(encoded)) == encoded


def test_encode_data_matches_decode_data():
    pixels = image_to_channels(pack_rgba(make_pixels(4, seed=5)))
    data = QOIEncoder.encode_data(pixels)

    assert np.array_equal(QOIDecoder.decode_data(data, WIDTH, HEIGHT), pixels)


def test_single_pixel_images():
    for value in (0x000000FF, 0x00000000, 0x12345678, 0xFFFFFFFF):
        image = Image(np.array([[value]], dtype=np.uint32), 4, 0)
        assert QOIDecoder.decode(QOIEncoder.encode(image)).pixels.tolist() == [[value]]


def reference_qoi(byte_identical=False):
    OfficialQOI = pytest.importorskip("qoi")
    if byte_identical:
        # qoi 0.8 indexes single repeated pixels instead of emitting a run of 1
        major, minor = (int(part) for part in version("qoi").split(".")[:2])
        if (major, minor) >= (0, 8):
            pytest.skip("qoi>=0.8 uses a different chunk policy")
    return OfficialQOI


@pytest.mark.parametrize("channels", [3, 4])
def test_matches_reference_encoder(channels):
    """Verify that our QOI implementation is byte-identical to the reference."""
    OfficialQOI = reference_qoi(byte_identical=True)

    pixel_data = make_pixels(channels, seed=11)
    image = Image(pack_rgba(pixel_data), channels, 0)

    encoded = OfficialQOI.encode(pixel_data)
    our_encoded = QOIEncoder.encode(image)
    assert encoded == our_encoded, "Encoded data mismatch!"


@pytest.mark.parametrize("channels", [3, 4])
def test_cross_decodes_with_reference(channels):
    """Verify that each implementation decodes the other's stream."""
    OfficialQOI = reference_qoi()

    pixel_data = make_pixels(channels, seed=11)
    image = Image(pack_rgba(pixel_data), channels, 0)

    # Their stream, our decoder
    our_decoded = QOIDecoder.decode(OfficialQOI.encode(pixel_data))
    our_decoded_array = unpack_rgba(our_decoded.pixels, our_decoded.channels)
    assert np.array_equal(pixel_data, our_decoded_array), "Decoded data mismatch!"

    # Our stream, their decoder
    decoded = OfficialQOI.decode(QOIEncoder.encode(image))
    assert np.array_equal(pixel_data, decoded), "Decoded data mismatch!"
