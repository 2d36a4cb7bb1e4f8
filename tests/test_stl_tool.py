"""Tests for the stl_tool command line script."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from stl_document import STLDocument, open_stl
from stl_tool import convert_stl, describe_document, load_stl, main


def test_load_stl_reports_encoding(tmp_path: Path, cube_document: STLDocument) -> None:
    text_path = tmp_path / "cube_ascii.stl"
    binary_path = tmp_path / "cube_binary.stl"
    cube_document.save_as_text(text_path)
    cube_document.save_as_binary(binary_path)

    assert load_stl(text_path)[1] == "ascii"
    assert load_stl(binary_path)[1] == "binary"


def test_describe_document(cube_document: STLDocument) -> None:
    lines = describe_document(Path("cube.stl"), cube_document, "ascii")

    assert lines[0] == "FILE: cube.stl"
    assert "  NAME: cube" in lines
    assert "  FACETS: 12" in lines
    assert "  AREA: 600.000000 mm^2" in lines
    assert "  VOLUME: 1.000000 cm^3" in lines
    assert "  WEIGHT: 1.040000 g" in lines
    assert "  BOUNDING BOX: 10.000000 x 10.000000 x 10.000000 mm" in lines
    assert "  CENTER OF MASS: (5.000000, 5.000000, 5.000000)" in lines


def test_info_command(tmp_path: Path, cube_document: STLDocument, capsys: pytest.CaptureFixture) -> None:
    path = tmp_path / "cube.stl"
    cube_document.save_as_binary(path)

    main(["info", str(path)])

    out = capsys.readouterr().out
    assert "FORMAT: binary" in out
    assert "NAME:" not in out
    assert "VOLUME: 1.000000 cm^3" in out


def test_convert_auto_flips_encoding(tmp_path: Path, cube_document: STLDocument) -> None:
    ascii_path = tmp_path / "cube.stl"
    binary_path = tmp_path / "converted" / "cube_binary.stl"
    cube_document.save_as_text(ascii_path)

    assert convert_stl(ascii_path, binary_path, "auto") == "binary"
    assert binary_path.stat().st_size == 84 + 12 * 50

    round_trip_path = tmp_path / "cube_round_trip.stl"
    assert convert_stl(binary_path, round_trip_path, "auto") == "ascii"
    converted = open_stl(round_trip_path)
    assert converted == cube_document
    assert converted.name == "cube_binary"


def test_convert_command_explicit_format(tmp_path: Path, cube_document: STLDocument) -> None:
    source = tmp_path / "cube.stl"
    target = tmp_path / "copy.stl"
    cube_document.save_as_text(source)

    main(["convert", str(source), str(target), "--output-format", "ascii"])

    assert target.read_bytes() == source.read_bytes()


def test_malformed_file_exits(tmp_path: Path) -> None:
    path = tmp_path / "broken.stl"
    path.write_text("solid broken\nfacet normal 0 0 1\nouter loop\nendloop\n")

    with pytest.raises(SystemExit) as excinfo:
        main(["info", str(path)])

    assert "vertex x y z" in str(excinfo.value)


def test_empty_file_exits(tmp_path: Path) -> None:
    path = tmp_path / "empty.stl"
    path.write_bytes(b"")

    with pytest.raises(SystemExit) as excinfo:
        main(["convert", str(path), str(tmp_path / "out.stl")])

    assert "empty" in str(excinfo.value)


def test_missing_subcommand_is_rejected() -> None:
    with pytest.raises(SystemExit):
        main([])
