"""Read, write and measure STL triangle meshes in either encoding.

Example:
    with open("part.stl", "rb") as stream:
        document = read(stream, try_binary_if_text_failed=True)
    print(document.volume, document.bounding_box)

The reader sniffs the first five bytes for ``solid`` to choose between the
ASCII grammar and the 80-byte header / 50-byte record binary layout.  Binary
files whose header happens to start with ``solid`` are misread as ASCII; pass
``try_binary_if_text_failed=True`` to retry those as binary.
"""

from __future__ import annotations

import io
import math
import re
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, NamedTuple, Optional, TextIO, Tuple, Union

#: Density used for :attr:`STLDocument.weight`, in g/cm^3.
DENSITY = 1.04

#: Coordinates are millimetres; volumes are reported in cubic centimetres.
VOLUME_SCALE = 1000

BINARY_HEADER = b"Binary STL generated by STLdotNET. QuantumConceptsCorp.com"
HEADER_SIZE = 80
FACET_RECORD_SIZE = 50

_COUNT_STRUCT = struct.Struct("<I")
_FACET_STRUCT = struct.Struct("<12fH")

_HEADER_PATTERN = re.compile(r"solid\s+(?P<name>[^\r\n]+)?")
_FACET_PATTERN = re.compile(r"facet\s+normal\s+(\S+)\s+(\S+)\s+(\S+)")
_OUTER_LOOP_PATTERN = re.compile(r"outer\s+loop")
_VERTEX_PATTERN = re.compile(r"vertex\s+(\S+)\s+(\S+)\s+(\S+)")
_END_LOOP_PATTERN = re.compile(r"end\s*loop")
_END_FACET_PATTERN = re.compile(r"end\s*facet")


class STLFormatError(ValueError):
    """Raised when STL content does not follow the ASCII or binary layout."""


class STLHeaderError(STLFormatError):
    """Raised when neither an ASCII header nor a full binary header is present."""


class STLReadError(STLFormatError):
    """Raised when a binary facet record is cut short."""


class Vector3(NamedTuple):
    """A point or direction in model space."""

    x: float
    y: float
    z: float

    def sub(self, other: Vector3) -> Vector3:
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def cross(self, other: Vector3) -> Vector3:
        return Vector3(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)


def _to_vector(values: Iterable[float]) -> Vector3:
    x, y, z = values
    return Vector3(float(x), float(y), float(z))


def _format_number(value: float) -> str:
    """Return the shortest text that reads back as ``value``."""

    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return text


def _format_vector(vector: Vector3) -> str:
    return " ".join(_format_number(component) for component in vector)


def _parse_vector(match: re.Match, line: str) -> Vector3:
    try:
        return Vector3(float(match.group(1)), float(match.group(2)), float(match.group(3)))
    except ValueError as exc:
        raise STLFormatError(f'Invalid STL coordinates in "{line}".') from exc


def _next_line(reader: TextIO) -> Optional[str]:
    """Return the next non-blank stripped line, or ``None`` at end of input."""

    while True:
        raw_line = reader.readline()
        if not raw_line:
            return None
        line = raw_line.strip()
        if line:
            return line


def _expect_line(reader: TextIO, pattern: re.Pattern, expected: str) -> str:
    line = _next_line(reader)
    if line is None:
        raise STLFormatError(f'Invalid STL facet, expected "{expected}" but reached the end of the input.')
    if pattern.fullmatch(line) is None:
        raise STLFormatError(f'Invalid STL facet, expected "{expected}" but found "{line}".')
    return line


@dataclass(frozen=True)
class Facet:
    """One oriented triangle: the stored normal plus three ordered vertices.

    The normal is kept exactly as read or given; it is never recomputed from
    the vertices.
    """

    normal: Vector3
    vertices: Tuple[Vector3, Vector3, Vector3]

    def __post_init__(self) -> None:
        vertices = tuple(_to_vector(vertex) for vertex in self.vertices)
        if len(vertices) != 3:
            raise ValueError("Facet does not contain exactly 3 vertices")
        object.__setattr__(self, "normal", _to_vector(self.normal))
        object.__setattr__(self, "vertices", vertices)

    def __str__(self) -> str:
        return f"facet normal {_format_vector(self.normal)}"

    @classmethod
    def read_text(cls, reader: TextIO) -> Optional[Facet]:
        """Parse the next ASCII facet from ``reader``.

        Returns ``None`` at the end of the input or when the next line does
        not open a facet (``endsolid`` for instance).  Raises
        :class:`STLFormatError` when an opened facet breaks the grammar.
        """

        line = _next_line(reader)
        if line is None or not line.startswith("facet"):
            return None

        match = _FACET_PATTERN.fullmatch(line)
        if match is None:
            raise STLFormatError(f'Invalid STL facet, expected "facet normal x y z" but found "{line}".')
        normal = _parse_vector(match, line)

        _expect_line(reader, _OUTER_LOOP_PATTERN, "outer loop")

        vertices: List[Vector3] = []
        for _ in range(3):
            line = _expect_line(reader, _VERTEX_PATTERN, "vertex x y z")
            vertices.append(_parse_vector(_VERTEX_PATTERN.fullmatch(line), line))

        _expect_line(reader, _END_LOOP_PATTERN, "endloop")
        _expect_line(reader, _END_FACET_PATTERN, "endfacet")

        return cls(normal, (vertices[0], vertices[1], vertices[2]))

    def write_text(self, writer: TextIO) -> None:
        writer.write(f"\t{self}\n")
        writer.write("\t\touter loop\n")
        for vertex in self.vertices:
            writer.write(f"\t\t\tvertex {_format_vector(vertex)}\n")
        writer.write("\t\tendloop\n")
        writer.write("\tendfacet\n")

    @classmethod
    def read_binary(cls, stream: BinaryIO) -> Optional[Facet]:
        """Read one 50-byte record, or return ``None`` exactly at end of stream.

        The trailing attribute byte count is discarded.
        """

        chunk = stream.read(FACET_RECORD_SIZE)
        if not chunk:
            return None
        if len(chunk) != FACET_RECORD_SIZE:
            raise STLReadError(
                f"Truncated STL facet record: expected {FACET_RECORD_SIZE} bytes but found {len(chunk)}."
            )

        values = _FACET_STRUCT.unpack(chunk)
        return cls(
            Vector3(values[0], values[1], values[2]),
            (
                Vector3(values[3], values[4], values[5]),
                Vector3(values[6], values[7], values[8]),
                Vector3(values[9], values[10], values[11]),
            ),
        )

    def write_binary(self, stream: BinaryIO) -> None:
        v0, v1, v2 = self.vertices
        stream.write(_FACET_STRUCT.pack(*self.normal, *v0, *v1, *v2, 0))


@dataclass(frozen=True)
class BoundingBox:
    """Extent of a mesh along each axis."""

    x: float
    y: float
    z: float


@dataclass(frozen=True)
class CenterOfMass:
    """Volume-weighted centroid of a mesh."""

    x: float
    y: float
    z: float


def _signed_volume(facet: Facet) -> float:
    """Signed volume of the tetrahedron spanned by ``facet`` and the origin."""

    v0, v1, v2 = facet.vertices
    v321 = v2.x * v1.y * v0.z
    v231 = v1.x * v2.y * v0.z
    v312 = v2.x * v0.y * v1.z
    v132 = v0.x * v2.y * v1.z
    v213 = v1.x * v0.y * v2.z
    v123 = v0.x * v1.y * v2.z
    return (1.0 / 6.0) * (-v321 + v231 + v312 - v132 - v213 + v123)


def _ensure_parent_directory(path: Path) -> None:
    """Create the parent directories for ``path`` if needed."""

    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


class STLDocument:
    """A named solid made of an ordered list of facets.

    Iterating a document yields its facets.  Two documents compare equal when
    they hold equal facets in the same order; the name is not compared.  The
    geometric properties are recomputed from :attr:`facets` on every access.
    """

    def __init__(self, name: Optional[str] = None, facets: Optional[Iterable[Facet]] = None) -> None:
        #: Solid name; only the ASCII encoding carries it.
        self.name = name
        self.facets: List[Facet] = list(facets) if facets is not None else []

    def __str__(self) -> str:
        return f"solid {self.name or ''}"

    def __repr__(self) -> str:
        return f"STLDocument(name={self.name!r}, facets={len(self.facets)})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, STLDocument):
            return NotImplemented
        return len(self.facets) == len(other.facets) and all(
            facet == other.facets[index] for index, facet in enumerate(self.facets)
        )

    def __iter__(self) -> Iterator[Facet]:
        return iter(self.facets)

    def __len__(self) -> int:
        return len(self.facets)

    @property
    def density(self) -> float:
        return DENSITY

    @property
    def weight(self) -> float:
        """Estimated weight in grams."""

        return self.density * self.volume

    @property
    def area(self) -> float:
        """Total surface area in square millimetres."""

        area = 0.0
        for facet in self.facets:
            v0, v1, v2 = facet.vertices
            area += v1.sub(v0).cross(v2.sub(v0)).length() / 2
        return area

    @property
    def volume(self) -> float:
        """Enclosed volume in cubic centimetres.

        Only meaningful for a closed, consistently wound mesh.
        """

        volume = 0.0
        for facet in self.facets:
            volume += _signed_volume(facet)
        return abs(volume) / VOLUME_SCALE

    @property
    def bounding_box(self) -> BoundingBox:
        """Per-axis extent of the vertices.

        The running minimum and maximum start at zero, so the origin is
        always inside the measured box.
        """

        min_x = min_y = min_z = 0.0
        max_x = max_y = max_z = 0.0

        for facet in self.facets:
            xs = [vertex.x for vertex in facet.vertices]
            ys = [vertex.y for vertex in facet.vertices]
            zs = [vertex.z for vertex in facet.vertices]
            min_x = min(min_x, *xs)
            max_x = max(max_x, *xs)
            min_y = min(min_y, *ys)
            max_y = max(max_y, *ys)
            min_z = min(min_z, *zs)
            max_z = max(max_z, *zs)

        return BoundingBox(max_x - min_x, max_y - min_y, max_z - min_z)

    @property
    def center_of_mass(self) -> CenterOfMass:
        """Sum of tetrahedron centroids weighted by their signed volumes."""

        x_center = y_center = z_center = 0.0
        for facet in self.facets:
            facet_volume = _signed_volume(facet)
            v0, v1, v2 = facet.vertices
            x_center += (v0.x + v1.x + v2.x) / 4 * facet_volume
            y_center += (v0.y + v1.y + v2.y) / 4 * facet_volume
            z_center += (v0.z + v1.z + v2.z) / 4 * facet_volume

        return CenterOfMass(
            x_center / VOLUME_SCALE,
            y_center / VOLUME_SCALE,
            z_center / VOLUME_SCALE,
        )

    def append_facets(self, facets: Iterable[Facet]) -> None:
        """Append ``facets`` in order; another :class:`STLDocument` may be passed."""

        self.facets.extend(list(facets))

    def write_text(self, stream: BinaryIO) -> None:
        """Write the ASCII encoding to ``stream`` without closing it."""

        writer = io.TextIOWrapper(stream, encoding="ascii", errors="replace", newline="\n")
        try:
            writer.write(f"{self}\n")
            for facet in self.facets:
                facet.write_text(writer)
            writer.write(f"end{self}")
            writer.flush()
        finally:
            writer.detach()

    def write_binary(self, stream: BinaryIO) -> None:
        """Write the binary encoding to ``stream`` without closing it."""

        stream.write(BINARY_HEADER.ljust(HEADER_SIZE, b"\0")[:HEADER_SIZE])
        stream.write(_COUNT_STRUCT.pack(len(self.facets)))
        for facet in self.facets:
            facet.write_binary(stream)

    def save_as_text(self, path: Union[str, Path]) -> None:
        if not path:
            raise ValueError("path must not be empty")
        path = Path(path)
        _ensure_parent_directory(path)
        with path.open("wb") as stream:
            self.write_text(stream)

    def save_as_binary(self, path: Union[str, Path]) -> None:
        if not path:
            raise ValueError("path must not be empty")
        path = Path(path)
        _ensure_parent_directory(path)
        with path.open("wb") as stream:
            self.write_binary(stream)


def is_text(stream: BinaryIO) -> bool:
    """Return True when ``stream`` starts with ``solid`` (any case).

    The stream is rewound to position 0 before returning.
    """

    stream.seek(0)
    prefix = stream.read(5)
    stream.seek(0)
    return prefix.decode("ascii", errors="replace").lower() == "solid"


def is_binary(stream: BinaryIO) -> bool:
    return not is_text(stream)


def read_text(reader: TextIO) -> STLDocument:
    """Parse an ASCII STL document from a text reader.

    Facets are read until the facet reader reports the end of the solid.
    """

    header = reader.readline().rstrip("\r\n")
    match = _HEADER_PATTERN.match(header)
    if match is None:
        raise STLHeaderError(f'Invalid STL header, expected "solid [name]" but found "{header}".')

    document = STLDocument(name=match.group("name") or "")
    while True:
        facet = Facet.read_text(reader)
        if facet is None:
            break
        document.facets.append(facet)

    return document


def read_binary(stream: BinaryIO) -> STLDocument:
    """Parse a binary STL document, reading records until the stream ends.

    The header text and the declared facet count are ignored.
    """

    preamble = stream.read(HEADER_SIZE + _COUNT_STRUCT.size)
    if len(preamble) < HEADER_SIZE + _COUNT_STRUCT.size:
        found = preamble.decode("ascii", errors="replace")
        raise STLHeaderError(
            f'Invalid STL header, expected "solid [name]" or an {HEADER_SIZE}-byte binary header '
            f'but found "{found}".'
        )

    document = STLDocument()
    while True:
        facet = Facet.read_binary(stream)
        if facet is None:
            break
        document.facets.append(facet)

    return document


def _read_text_stream(stream: BinaryIO) -> STLDocument:
    reader = io.TextIOWrapper(stream, encoding="ascii", errors="replace")
    try:
        return read_text(reader)
    finally:
        reader.detach()


def _is_empty(stream: BinaryIO) -> bool:
    stream.seek(0)
    empty = not stream.read(1)
    stream.seek(0)
    return empty


def read(
    source: Union[BinaryIO, str, bytes, None],
    try_binary_if_text_failed: bool = False,
) -> Optional[STLDocument]:
    """Read an STL document of either encoding.

    ``source`` is a seekable binary stream, or the STL content itself as
    ``str`` or ``bytes``.  Empty or missing input returns ``None``.

    When the content looks like ASCII but yields no facets and
    ``try_binary_if_text_failed`` is set, the stream is re-read as binary and
    that result is used if it has at least one facet.  Content too short for a
    binary header counts as no facets; a truncated binary record still raises
    :class:`STLReadError`.
    """

    if source is None:
        return None
    if isinstance(source, str):
        source = source.encode("ascii", errors="replace")
    if isinstance(source, (bytes, bytearray)):
        if not source:
            return None
        with io.BytesIO(source) as stream:
            return read(stream, try_binary_if_text_failed)

    stream = source
    if _is_empty(stream):
        return None

    if not is_text(stream):
        return read_binary(stream)

    text_document = _read_text_stream(stream)
    if text_document.facets or not try_binary_if_text_failed:
        return text_document

    stream.seek(0)
    try:
        binary_document = read_binary(stream)
    except STLHeaderError:
        return text_document

    return binary_document if binary_document.facets else text_document


def open_stl(path: Union[str, Path], try_binary_if_text_failed: bool = False) -> Optional[STLDocument]:
    """Read the STL file at ``path``."""

    if not path:
        raise ValueError("path must not be empty")
    with Path(path).open("rb") as stream:
        return read(stream, try_binary_if_text_failed)


def copy_as_text(in_stream: BinaryIO, out_stream: BinaryIO) -> STLDocument:
    """Read a document of either encoding and write it to ``out_stream`` as ASCII."""

    document = read(in_stream)
    if document is None:
        raise STLFormatError("Cannot copy an empty STL stream.")
    document.write_text(out_stream)
    return document


def copy_as_binary(in_stream: BinaryIO, out_stream: BinaryIO) -> STLDocument:
    """Read a document of either encoding and write it to ``out_stream`` as binary."""

    document = read(in_stream)
    if document is None:
        raise STLFormatError("Cannot copy an empty STL stream.")
    document.write_binary(out_stream)
    return document
