"""Convert images to and from the QOI format.

Usage (CLI):

    # Encode a PNG (or JPEG, DNG, ...) into a .qoi file
    python converter.py encode fruits.png fruits.qoi

    # Decode a .qoi file back into a PNG
    python converter.py decode fruits.qoi fruits.png
"""

import argparse
import logging

import numpy as np

from qoicodec import QOIDecoder, QOIEncoder, QOIError, load_image, save_image

logger = logging.getLogger(__name__)


def png_to_qoi(png_path, qoi_path, colorspace=0, verify=False):
    image = load_image(png_path, colorspace)
    encoded = QOIEncoder.encode(image)

    if verify:
        decoded = QOIDecoder.decode(encoded)
        if not np.array_equal(decoded.pixels, image.pixels):
            raise QOIError(f"Reconverted {png_path} does not match original!")
        logger.debug("Verified %s round-trips", png_path)

    with open(qoi_path, "wb") as f:
        f.write(encoded)
    print(
        f"Converted {png_path} ({image.width}x{image.height}, "
        f"{int(image.channels)} channels) to {qoi_path}: {len(encoded)} bytes"
    )


def qoi_to_png(qoi_path, png_path):
    with open(qoi_path, "rb") as f:
        content = f.read()

    decoded = QOIDecoder.decode(content)
    save_image(decoded, png_path)
    print(f"Converted {qoi_path} to {png_path}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="QOI image converter")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_enc = subparsers.add_parser("encode", help="Encode an image to .qoi")
    p_enc.add_argument("input", help="Input image path (PNG, JPEG, DNG, ...)")
    p_enc.add_argument("output", help="Output .qoi path")
    p_enc.add_argument(
        "--colorspace",
        type=int,
        choices=(0, 1),
        default=0,
        help="0 = sRGB with linear alpha, 1 = all channels linear (default: 0)",
    )
    p_enc.add_argument(
        "--verify", action="store_true", help="Decode again and compare pixels"
    )

    p_dec = subparsers.add_parser("decode", help="Decode a .qoi file to an image")
    p_dec.add_argument("input", help="Input .qoi path")
    p_dec.add_argument("output", help="Output image path (format from extension)")

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "encode":
        png_to_qoi(args.input, args.output, args.colorspace, args.verify)
    elif args.command == "decode":
        qoi_to_png(args.input, args.output)
    else:  # pragma: no cover
        raise SystemExit(f"Unknown command: {args.command}")


if __name__ == "__main__":
    main()
