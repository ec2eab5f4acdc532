import logging

import numpy as np

from .arrays import (
    bytes_equal,
    channels_to_image,
    extract,
    partition,
    to_uint32_be,
)
from .image import Image
from .qoi import (
    QOI_END_MARKER,
    QOI_HEADER_SIZE,
    QOI_MAGIC,
    QOI_MASK_6,
    QOI_PIXELS_MAX,
    QOI_RUN_MAX,
    A,
    ChunkTag,
    CodecState,
    QOIChannels,
    QOIColorSpace,
    QOIError,
)

logger = logging.getLogger(__name__)


def _check_tag(byte: int, expected: ChunkTag):
    if ChunkTag.of(byte) is not expected:
        raise QOIError(
            f"QOI.decode: Chunk 0x{byte:02x} is not a {expected.name} chunk"
        )


def _check_available(data, idx: int, length: int, tag: ChunkTag):
    if idx + length > len(data):
        raise QOIError(f"QOI.decode: Truncated {tag.name} chunk at byte {idx}")


class QOIDecoder:
    """
    A class to decode QOI (Quite OK Image) files into images.
    """

    @staticmethod
    def decode_header(header: bytes) -> tuple[int, int, QOIChannels, QOIColorSpace]:
        """
        Parse the 14-byte QOI header.

        :param header: Bytes of the header.
        :return: (width, height, channels, colorspace).
        """
        if header is None or len(header) != QOI_HEADER_SIZE:
            raise QOIError("QOI.decode: A header must be exactly 14 bytes")

        magic, width, height, channels, colorspace = partition(header, 4, 4, 4, 1, 1)

        if not bytes_equal(magic, QOI_MAGIC):
            raise QOIError("QOI.decode: The signature of the QOI file is invalid")

        if channels[0] not in tuple(QOIChannels):
            raise QOIError(
                "QOI.decode: The number of channels declared in the file is invalid"
            )

        if colorspace[0] not in tuple(QOIColorSpace):
            raise QOIError("QOI.decode: The colorspace declared in the file is invalid")

        return (
            to_uint32_be(width),
            to_uint32_be(height),
            QOIChannels(channels[0]),
            QOIColorSpace(colorspace[0]),
        )

    # --- Chunk decoders ---

    @staticmethod
    def op_rgb(data, idx: int, alpha) -> np.ndarray:
        """
        Read a QOI_OP_RGB chunk whose tag is at data[idx].

        The alpha channel is carried over from the previous pixel.
        """
        _check_tag(data[idx], ChunkTag.RGB)
        _check_available(data, idx, 4, ChunkTag.RGB)
        return np.array(
            [alpha, data[idx + 1], data[idx + 2], data[idx + 3]], dtype=np.uint8
        )

    @staticmethod
    def op_rgba(data, idx: int) -> np.ndarray:
        """Read a QOI_OP_RGBA chunk whose tag is at data[idx]."""
        _check_tag(data[idx], ChunkTag.RGBA)
        _check_available(data, idx, 5, ChunkTag.RGBA)
        return np.array(
            [data[idx + 4], data[idx + 1], data[idx + 2], data[idx + 3]],
            dtype=np.uint8,
        )

    @staticmethod
    def op_diff(previous, chunk: int) -> np.ndarray:
        """
        Apply a QOI_OP_DIFF chunk to the previous pixel.

        :param previous: ARGB pixel before this chunk.
        :param chunk: The chunk byte, 01 followed by three 2-bit fields.
        :return: The new ARGB pixel.
        """
        _check_tag(chunk, ChunkTag.DIFF)

        # Extract 2-bit differences and subtract bias of 2
        dr = ((chunk >> 4) & 0x03) - 2
        dg = ((chunk >> 2) & 0x03) - 2
        db = (chunk & 0x03) - 2

        delta = np.array([0, dr, dg, db], dtype=np.int8).view(np.uint8)
        return np.asarray(previous, dtype=np.uint8) + delta

    @staticmethod
    def op_luma(previous, data) -> np.ndarray:
        """
        Apply a two-byte QOI_OP_LUMA chunk to the previous pixel.

        :param previous: ARGB pixel before this chunk.
        :param data: The two chunk bytes.
        :return: The new ARGB pixel.
        """
        if len(data) != 2:
            raise QOIError("QOI.decode: A luma chunk is exactly 2 bytes")
        _check_tag(data[0], ChunkTag.LUMA)

        dg = (data[0] & QOI_MASK_6) - 32
        dr = ((data[1] >> 4) & 0x0F) - 8 + dg
        db = (data[1] & 0x0F) - 8 + dg

        delta = np.array([0, dr, dg, db], dtype=np.int8).view(np.uint8)
        return np.asarray(previous, dtype=np.uint8) + delta

    @staticmethod
    def op_run(buffer: np.ndarray, pixel, chunk: int, position: int) -> int:
        """
        Write a QOI_OP_RUN chunk into the output buffer.

        :param buffer: (N, 4) output pixel buffer.
        :param pixel: The repeated ARGB pixel.
        :param chunk: The chunk byte, 11 followed by run length - 1.
        :param position: Index in buffer to start writing from.
        :return: Number of pixels written.
        """
        _check_tag(chunk, ChunkTag.RUN)

        count = (chunk & QOI_MASK_6) + 1
        if position < 0 or position + count > len(buffer):
            raise QOIError(
                f"QOI.decode: Run of {count} at pixel {position} overflows "
                f"the {len(buffer)} pixels of the image"
            )

        buffer[position : position + count] = pixel
        return count

    # --- Stream decoding ---

    @staticmethod
    def decode_data(data, width: int, height: int) -> np.ndarray:
        """
        Decode a chunk stream into a pixel buffer.

        :param data: Chunk bytes, without header or end marker.
        :param width: Image width declared in the header.
        :param height: Image height declared in the header.
        :return: (width * height, 4) uint8 array of ARGB pixels.
        """
        if data is None:
            raise QOIError("QOI.decode: No data to decode")
        if width <= 0 or height <= 0:
            raise QOIError("QOI.decode: Width and height must be positive")

        total_pixels = width * height
        if total_pixels > QOI_PIXELS_MAX:
            raise QOIError(
                f"QOI.decode: {width}x{height} exceeds the limit of "
                f"{QOI_PIXELS_MAX} pixels"
            )
        # Every chunk yields at most one full run
        if total_pixels > QOI_RUN_MAX * len(data):
            raise QOIError(
                f"QOI.decode: {len(data)} bytes of chunks cannot fill "
                f"a {width}x{height} image"
            )

        buffer = np.zeros((total_pixels, 4), dtype=np.uint8)
        state = CodecState()

        read_pos = 0
        write_pos = 0

        while read_pos < len(data):
            if write_pos >= total_pixels:
                raise QOIError(
                    "QOI.decode: The stream holds more pixels than the header declares"
                )

            b1 = data[read_pos]
            tag = ChunkTag.of(b1)

            if tag is ChunkTag.RUN:
                write_pos += QOIDecoder.op_run(
                    buffer, state.previous, b1, write_pos
                )
                read_pos += 1
                continue

            if tag is ChunkTag.INDEX:
                # The slot already holds this pixel, the cache is left as is
                pixel = state.cache[b1 & QOI_MASK_6].copy()
                read_pos += 1
            else:
                if tag is ChunkTag.DIFF:
                    pixel = QOIDecoder.op_diff(state.previous, b1)
                    read_pos += 1
                elif tag is ChunkTag.LUMA:
                    _check_available(data, read_pos, 2, tag)
                    pixel = QOIDecoder.op_luma(
                        state.previous, extract(data, read_pos, 2)
                    )
                    read_pos += 2
                elif tag is ChunkTag.RGB:
                    pixel = QOIDecoder.op_rgb(data, read_pos, state.previous[A])
                    read_pos += 4
                else:
                    pixel = QOIDecoder.op_rgba(data, read_pos)
                    read_pos += 5
                state.remember(pixel)

            buffer[write_pos] = pixel
            state.previous = pixel
            write_pos += 1

        if write_pos != total_pixels:
            raise QOIError(
                f"QOI.decode: Incomplete image, {write_pos} of {total_pixels} pixels"
            )

        return buffer

    @staticmethod
    def decode(content: bytes) -> Image:
        """
        Decode the content of a QOI file.

        :param content: Bytes of the whole file, header to end marker.
        :return: The decoded qoicodec.Image.
        """
        if content is None:
            raise QOIError("QOI.decode: No content to decode")

        # QOI Header is 14 bytes, the end marker 8
        if len(content) < QOI_HEADER_SIZE + len(QOI_END_MARKER):
            raise QOIError("QOI.decode: File too short for header and end marker")

        end = extract(content, len(content) - len(QOI_END_MARKER), len(QOI_END_MARKER))
        if not bytes_equal(end, QOI_END_MARKER):
            raise QOIError("QOI.decode: The end marker is missing")

        width, height, channels, colorspace = QOIDecoder.decode_header(
            extract(content, 0, QOI_HEADER_SIZE)
        )
        chunks = extract(
            content,
            QOI_HEADER_SIZE,
            len(content) - QOI_HEADER_SIZE - len(QOI_END_MARKER),
        )

        pixels = QOIDecoder.decode_data(chunks, width, height)
        logger.debug(
            "Decoded %d bytes of chunks into a %dx%d image", len(chunks), width, height
        )

        return Image(channels_to_image(pixels, height, width), channels, colorspace)
