import logging

import numpy as np

from .arrays import bytes_equal, concat, from_uint32_be, image_to_channels
from .qoi import (
    QOI_END_MARKER,
    QOI_MAGIC,
    QOI_RUN_MAX,
    A,
    B,
    ChunkTag,
    CodecState,
    G,
    QOIChannels,
    QOIColorSpace,
    QOIError,
    R,
)

logger = logging.getLogger(__name__)


class QOIEncoder:
    """
    A class to encode images into QOI (Quite OK Image) files.
    """

    @staticmethod
    def header(image) -> bytes:
        """
        Build the 14-byte QOI header of an image.

        :param image: Image with pixels, channels and color_space.
        :return: magic(4), width(4), height(4), channels(1), colorspace(1).
        """
        if image.channels not in tuple(QOIChannels):
            raise QOIError("QOI.encode: Invalid channels, must be 3 or 4")

        if image.color_space not in tuple(QOIColorSpace):
            raise QOIError("QOI.encode: Invalid colorspace, must be 0 or 1")

        height = len(image.pixels)
        width = len(image.pixels[0])

        return concat(
            QOI_MAGIC,
            from_uint32_be(width),
            from_uint32_be(height),
            int(image.channels),
            int(image.color_space),
        )

    # --- Chunk encoders ---

    @staticmethod
    def op_rgb(pixel) -> bytes:
        if len(pixel) != 4:
            raise QOIError("QOI.encode: A pixel must have 4 channels")
        return concat(ChunkTag.RGB, pixel[R], pixel[G], pixel[B])

    @staticmethod
    def op_rgba(pixel) -> bytes:
        if len(pixel) != 4:
            raise QOIError("QOI.encode: A pixel must have 4 channels")
        return concat(ChunkTag.RGBA, pixel[R], pixel[G], pixel[B], pixel[A])

    @staticmethod
    def op_index(index_pos: int) -> bytes:
        if not (0 <= index_pos <= 63):
            raise QOIError(f"QOI.encode: Cache index {index_pos} is out of range")
        return concat(ChunkTag.INDEX | index_pos)

    @staticmethod
    def op_diff(diff) -> bytes:
        """
        Encode a small difference with the previous pixel.

        :param diff: (dr, dg, db), each in [-2, 1].
        :return: one byte, 01 followed by three 2-bit fields biased by 2.
        """
        if len(diff) != 3 or not all(-2 <= d <= 1 for d in diff):
            raise QOIError(f"QOI.encode: {tuple(diff)} does not fit a diff chunk")

        dr, dg, db = (int(d) for d in diff)
        return concat(ChunkTag.DIFF | (dr + 2) << 4 | (dg + 2) << 2 | (db + 2))

    @staticmethod
    def op_luma(diff) -> bytes:
        """
        Encode a difference with the previous pixel relative to green.

        :param diff: (dr, dg, db) with dg in [-32, 31] and dr - dg,
                     db - dg in [-8, 7].
        :return: two bytes, 10 + dg biased by 32, then dr - dg and db - dg
                 biased by 8 as two 4-bit fields.
        """
        if len(diff) != 3:
            raise QOIError("QOI.encode: A luma difference has 3 components")

        dr, dg, db = (int(d) for d in diff)
        dr_dg = dr - dg
        db_dg = db - dg
        if not (-32 <= dg <= 31 and -8 <= dr_dg <= 7 and -8 <= db_dg <= 7):
            raise QOIError(f"QOI.encode: {(dr, dg, db)} does not fit a luma chunk")

        return concat(ChunkTag.LUMA | (dg + 32), (dr_dg + 8) << 4 | (db_dg + 8))

    @staticmethod
    def op_run(count: int) -> bytes:
        if not (1 <= count <= QOI_RUN_MAX):
            raise QOIError(f"QOI.encode: Run length {count} is out of range")
        return concat(ChunkTag.RUN | (count - 1))

    # --- Stream encoding ---

    @staticmethod
    def _chunk(state: CodecState, pixel) -> bytes:
        # Index > diff > luma > rgb/rgba, first match wins
        index_pos = state.slot(pixel)
        if bytes_equal(pixel, state.cache[index_pos]):
            return QOIEncoder.op_index(index_pos)

        state.remember(pixel)

        if pixel[A] != state.previous[A]:
            return QOIEncoder.op_rgba(pixel)

        # uint8 subtraction wraps mod 256, the int8 view gives the signed delta
        diff = (pixel[R : B + 1] - state.previous[R : B + 1]).view(np.int8)
        dr, dg, db = (int(d) for d in diff)

        if -2 <= dr <= 1 and -2 <= dg <= 1 and -2 <= db <= 1:
            return QOIEncoder.op_diff((dr, dg, db))

        if -32 <= dg <= 31 and -8 <= dr - dg <= 7 and -8 <= db - dg <= 7:
            return QOIEncoder.op_luma((dr, dg, db))

        return QOIEncoder.op_rgb(pixel)

    @staticmethod
    def encode_data(pixels) -> bytes:
        """
        Encode a pixel buffer into a stream of QOI chunks.

        :param pixels: (N, 4) uint8 array of ARGB pixels.
        :return: bytes of the chunk stream, without header or end marker.
        """
        pixels = np.asarray(pixels, dtype=np.uint8)
        if pixels.ndim != 2 or pixels.shape[1] != 4:
            raise QOIError("QOI.encode: Pixels must have 4 channels")

        state = CodecState()
        result = bytearray()
        run = 0
        last = len(pixels) - 1

        for i, pixel in enumerate(pixels):
            if bytes_equal(pixel, state.previous):
                run += 1
                # Flush at max run length (62) or on the very last pixel
                if run == QOI_RUN_MAX or i == last:
                    result.extend(QOIEncoder.op_run(run))
                    run = 0
                continue

            # If we were in a run, end it before processing the new pixel
            if run > 0:
                result.extend(QOIEncoder.op_run(run))
                run = 0

            result.extend(QOIEncoder._chunk(state, pixel))
            state.previous = pixel

        return bytes(result)

    @staticmethod
    def encode(image) -> bytes:
        """
        Encode an image into the content of a QOI file.

        :param image: qoicodec.Image to encode.
        :return: header + chunk stream + end marker.
        """
        header = QOIEncoder.header(image)
        data = QOIEncoder.encode_data(image_to_channels(image.pixels))

        logger.debug(
            "Encoded %dx%d image into %d bytes of chunks",
            len(image.pixels[0]),
            len(image.pixels),
            len(data),
        )
        return concat(header, data, QOI_END_MARKER)
