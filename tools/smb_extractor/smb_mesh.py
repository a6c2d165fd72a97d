"""Geometry extraction from SMB mesh container files.

Vertex data starts at the first 16-byte boundary after the submesh
headers. Each submesh stores, back to back:
- vertexCount records of vertexStride bytes:
  - +0:  position (3x float32)
  - +12: normal (3x float32)
  - +24: UV (2x half float)
  - +28..stride: padding, not read
- faceCount triangles of 3x u16 indices (local to the submesh)

The source is mirrored relative to OBJ/glTF: X is negated on positions
and normals, and the last two indices of every triangle are swapped to
keep faces pointing outward.
"""
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional, Union

from smb_parser import LayoutWalker, SMBParser
from smb_reader import check_range, half_to_float
from smb_types import MeshDocument, SMBHeader, SubmeshDescriptor, SubmeshGeometry, Vertex

VERTEX_ATTRIBUTES = struct.Struct("<3f3f2H")
TRIANGLE = struct.Struct("<3H")


@dataclass
class SubmeshRange:
    """Byte ranges of one submesh's vertex and index blocks."""
    descriptor: SubmeshDescriptor
    vertex_offset: int
    index_offset: int
    end: int


def plan_submesh_ranges(start: int, submeshes: List[SubmeshDescriptor]) -> List[SubmeshRange]:
    """Lay out submesh blocks back to back from ``start``."""
    ranges = []
    offset = start
    for descriptor in submeshes:
        index_offset = offset + descriptor.vertex_count * descriptor.vertex_stride
        end = index_offset + descriptor.face_count * TRIANGLE.size
        ranges.append(SubmeshRange(descriptor, offset, index_offset, end))
        offset = end
    return ranges


def read_submesh(data: bytes, span: SubmeshRange) -> SubmeshGeometry:
    """Decode one submesh whose range has already been bounds-checked."""
    descriptor = span.descriptor
    stride = descriptor.vertex_stride

    vertices = []
    for i in range(descriptor.vertex_count):
        px, py, pz, nx, ny, nz, u, v = VERTEX_ATTRIBUTES.unpack_from(
            data, span.vertex_offset + i * stride
        )
        vertices.append(Vertex(
            position=(-px, py, pz),
            normal=(-nx, ny, nz),
            uv=(half_to_float(u), half_to_float(v)),
        ))

    triangles = []
    for i in range(descriptor.face_count):
        i1, i2, i3 = TRIANGLE.unpack_from(data, span.index_offset + i * TRIANGLE.size)
        triangles.append((i1, i3, i2))

    return SubmeshGeometry(
        name=descriptor.name,
        material_name=descriptor.material_name,
        vertices=vertices,
        triangles=triangles,
        vertex_offset=span.vertex_offset,
        index_offset=span.index_offset,
    )


def extract_geometry(data: bytes, header: SMBHeader) -> List[SubmeshGeometry]:
    """Decode every submesh described by ``header``.

    All submesh ranges are checked against the buffer before anything is
    decoded, so an overrun anywhere fails the whole file.

    Raises:
        BufferOverrun: If any vertex or index block runs past the buffer
    """
    start = LayoutWalker(data).vertex_data_offset()
    ranges = plan_submesh_ranges(start, header.submeshes)

    for index, span in enumerate(ranges):
        descriptor = span.descriptor
        if descriptor.vertex_count:
            # The last record only needs its 28 attribute bytes, not the padding
            last = span.vertex_offset + (descriptor.vertex_count - 1) * descriptor.vertex_stride
            check_range(data, span.vertex_offset, last - span.vertex_offset + VERTEX_ATTRIBUTES.size,
                        f"vertices of submesh {index} ({descriptor.name})")
        if descriptor.face_count:
            check_range(data, span.index_offset, span.end - span.index_offset,
                        f"faces of submesh {index} ({descriptor.name})")

    return [read_submesh(data, span) for span in ranges]


class SMBMeshExtractor:
    """Extracts mesh data from SMB files."""

    def __init__(self, source: Union[str, Path, BinaryIO, bytes]):
        """Initialize extractor with a file path, file-like object or buffer.

        Args:
            source: Path to SMB file, file-like object, or raw bytes
        """
        self.source = source
        self.parser = SMBParser()
        self._data: Optional[bytes] = None
        self._header: Optional[SMBHeader] = None
        self._document: Optional[MeshDocument] = None

    @property
    def name(self) -> str:
        if isinstance(self.source, (str, Path)):
            return Path(self.source).stem
        name = getattr(self.source, "name", None)
        return Path(name).stem if isinstance(name, str) else "smb"

    def _load(self) -> bytes:
        if self._data is None:
            if isinstance(self.source, (bytes, bytearray, memoryview)):
                self._data = bytes(self.source)
            elif isinstance(self.source, (str, Path)):
                with open(self.source, "rb") as f:
                    self._data = f.read()
            else:
                if self.source.seekable():
                    self.source.seek(0)
                self._data = self.source.read()
        return self._data

    @property
    def size(self) -> int:
        return len(self._load())

    def get_header(self) -> SMBHeader:
        """Parse materials and submesh headers.

        Raises:
            TruncatedHeader: If the file is shorter than the fixed header
            BufferOverrun: If a header record runs past the end of the file
        """
        if self._header is None:
            self._header = self.parser.parse_header_bytes(self._load())
        return self._header

    def get_vertex_data_offset(self) -> int:
        return LayoutWalker(self._load()).vertex_data_offset()

    def get_document(self) -> MeshDocument:
        """Decode the whole file.

        Returns:
            MeshDocument with one SubmeshGeometry per submesh header

        Raises:
            TruncatedHeader: If the file is shorter than the fixed header
            BufferOverrun: If any read runs past the end of the file
        """
        if self._document is None:
            header = self.get_header()
            submeshes = extract_geometry(self._load(), header)
            self._document = MeshDocument(
                name=self.name,
                materials=list(header.materials),
                submeshes=submeshes,
                diagnostics=list(header.diagnostics),
            )
        return self._document

    def get_submeshes(self) -> List[SubmeshGeometry]:
        return self.get_document().submeshes
