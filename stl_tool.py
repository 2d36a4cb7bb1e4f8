#!/usr/bin/env python3
"""Inspect STL files and convert them between ASCII and binary encodings.

Example:
    python stl_tool.py info part.stl other.stl
    python stl_tool.py convert part.stl part_binary.stl --output-format binary

``convert --output-format auto`` writes the opposite encoding of the input.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Sequence, Tuple

from stl_document import STLDocument, STLFormatError, open_stl

logger = logging.getLogger(__name__)


def load_stl(path: Path, try_binary: bool = False) -> Tuple[STLDocument, str]:
    """Load an STL file and return the document with its detected encoding."""

    document = open_stl(path, try_binary_if_text_failed=try_binary)
    if document is None:
        raise STLFormatError(f"{path} is empty")

    # Only the ASCII reader assigns a name.
    encoding = "binary" if document.name is None else "ascii"
    logger.debug("Loaded %s as %s with %d facets", path, encoding, len(document))
    return document, encoding


def describe_document(path: Path, document: STLDocument, encoding: str) -> List[str]:
    """Return the report lines printed by ``info`` for one file."""

    bbox = document.bounding_box
    center = document.center_of_mass
    lines = [
        f"FILE: {path}",
        f"  FORMAT: {encoding}",
    ]
    if encoding == "ascii":
        lines.append(f"  NAME: {document.name}")
    lines.extend(
        [
            f"  FACETS: {len(document)}",
            f"  AREA: {document.area:.6f} mm^2",
            f"  VOLUME: {document.volume:.6f} cm^3",
            f"  WEIGHT: {document.weight:.6f} g",
            f"  BOUNDING BOX: {bbox.x:.6f} x {bbox.y:.6f} x {bbox.z:.6f} mm",
            f"  CENTER OF MASS: ({center.x:.6f}, {center.y:.6f}, {center.z:.6f})",
        ]
    )
    return lines


def convert_stl(input_path: Path, output_path: Path, output_format: str, try_binary: bool = False) -> str:
    """Rewrite ``input_path`` to ``output_path`` and return the encoding used."""

    document, encoding = load_stl(input_path, try_binary)

    if output_format == "auto":
        output_format = "binary" if encoding == "ascii" else "ascii"

    if output_format == "binary":
        document.save_as_binary(output_path)
    else:
        if document.name is None:
            document.name = input_path.stem
        document.save_as_text(output_path)

    logger.info("Converted %s (%s) to %s (%s)", input_path, encoding, output_path, output_format)
    return output_format


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the STL tool."""

    parser = argparse.ArgumentParser(
        description="Report STL mesh properties or convert between STL encodings."
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="log debug output",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    info_parser = subparsers.add_parser(
        "info",
        help="print area, volume, weight, bounding box and center of mass",
    )
    info_parser.add_argument(
        "paths",
        type=Path,
        nargs="+",
        help="one or more STL files to inspect",
    )

    convert_parser = subparsers.add_parser(
        "convert",
        help="rewrite an STL file in ASCII or binary encoding",
    )
    convert_parser.add_argument("input", type=Path, help="input STL file")
    convert_parser.add_argument("output", type=Path, help="output STL file")
    convert_parser.add_argument(
        "--output-format",
        "-f",
        choices=["auto", "ascii", "binary"],
        default="auto",
        help="encoding for the output STL (default: the opposite of the input)",
    )

    for subparser in (info_parser, convert_parser):
        subparser.add_argument(
            "--try-binary",
            action="store_true",
            help="re-read files starting with 'solid' as binary when no ASCII facets are found",
        )

    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        if args.command == "info":
            for path in args.paths:
                document, encoding = load_stl(path, args.try_binary)
                print("\n".join(describe_document(path, document, encoding)))
        else:
            convert_stl(args.input, args.output, args.output_format, args.try_binary)
    except (STLFormatError, OSError) as exc:
        raise SystemExit(f"stl-tool: {exc}") from exc


if __name__ == "__main__":
    main()
