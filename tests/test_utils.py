import numpy as np
import pytest
from PIL import Image as PILImage

import converter
from qoicodec import QOIChannels, QOIColorSpace, QOIDecoder, QOIError, load_image
from qoicodec.image import Image
from qoicodec.utils import pack_rgba, save_image, unpack_rgba


def test_pack_rgba():
    rgba = np.array([[[1, 2, 3, 4], [255, 0, 128, 255]]], dtype=np.uint8)
    assert pack_rgba(rgba).tolist() == [[0x01020304, 0xFF0080FF]]


def test_pack_rgb_is_opaque():
    rgb = np.array([[[1, 2, 3]]], dtype=np.uint8)
    assert pack_rgba(rgb).tolist() == [[0x010203FF]]


def test_unpack_rgba():
    grid = np.array([[0x01020304, 0xFF0080FF]], dtype=np.uint32)
    assert unpack_rgba(grid).tolist() == [[[1, 2, 3, 4], [255, 0, 128, 255]]]
    assert unpack_rgba(grid, 3).tolist() == [[[1, 2, 3], [255, 0, 128]]]

    with pytest.raises(QOIError):
        unpack_rgba(grid, 2)


def test_image_validation():
    with pytest.raises(QOIError):
        Image(np.zeros((2, 2), dtype=np.uint32), 5)
    with pytest.raises(QOIError):
        Image(np.zeros((2, 2), dtype=np.uint32), 4, 3)
    with pytest.raises(QOIError):
        Image(np.zeros((0, 0), dtype=np.uint32))
    with pytest.raises(QOIError):
        Image([[1, 2], [3]])


def test_image_rejects_non_grid_pixels():
    with pytest.raises(QOIError):
        Image(np.array([1, 2, 3], dtype=np.uint32))
    with pytest.raises(QOIError):
        Image(np.zeros((2, 2, 4), dtype=np.uint8))
    with pytest.raises(QOIError):
        Image([[0.5, 1.0]])


def test_image_rejects_signed_packed_pixels():
    with pytest.raises(QOIError):
        Image([[-1, 0x000000FF]])
    with pytest.raises(QOIError):
        Image([[1 << 32]])


@pytest.mark.parametrize("mode, channels", [("RGB", 3), ("RGBA", 4)])
def test_load_and_save(tmp_path, mode, channels):
    rng = np.random.default_rng(1)
    array = rng.integers(0, 256, size=(6, 9, channels), dtype=np.uint8)
    PILImage.fromarray(array).save(tmp_path / "in.png")

    image = load_image(str(tmp_path / "in.png"))
    assert image.channels == channels
    assert image.color_space == QOIColorSpace.SRGB
    assert (image.width, image.height) == (9, 6)

    save_image(image, str(tmp_path / "out.png"))
    with PILImage.open(tmp_path / "out.png") as saved:
        assert saved.mode == mode
        assert np.array_equal(np.array(saved), array)


def test_load_grayscale_becomes_rgb(tmp_path):
    PILImage.new("L", (3, 2), 70).save(tmp_path / "gray.png")

    image = load_image(str(tmp_path / "gray.png"), colorspace=1)
    assert image.channels == QOIChannels.RGB
    assert image.color_space == QOIColorSpace.LINEAR
    assert image.pixels.tolist() == [[0x464646FF] * 3] * 2


def test_converter_round_trip(tmp_path):
    array = np.zeros((4, 70, 4), dtype=np.uint8)
    array[..., 0] = np.arange(70)
    array[..., 3] = 255
    array[2, 10:20, 3] = 0
    PILImage.fromarray(array).save(tmp_path / "in.png")

    converter.main(["encode", str(tmp_path / "in.png"), str(tmp_path / "out.qoi"), "--verify"])
    with open(tmp_path / "out.qoi", "rb") as f:
        decoded = QOIDecoder.decode(f.read())
    assert np.array_equal(decoded.pixels, pack_rgba(array))

    converter.main(["decode", str(tmp_path / "out.qoi"), str(tmp_path / "back.png")])
    with PILImage.open(tmp_path / "back.png") as back:
        assert np.array_equal(np.array(back), array)


def test_converter_verify_mismatch(tmp_path, monkeypatch):
    PILImage.new("RGB", (3, 2), (10, 20, 30)).save(tmp_path / "in.png")

    def corrupt_decode(content):
        return Image(np.zeros((2, 3), dtype=np.uint32), 3)

    monkeypatch.setattr(converter.QOIDecoder, "decode", staticmethod(corrupt_decode))
    with pytest.raises(QOIError, match="does not match"):
        converter.png_to_qoi(
            str(tmp_path / "in.png"), str(tmp_path / "out.qoi"), verify=True
        )
    assert not (tmp_path / "out.qoi").exists()
