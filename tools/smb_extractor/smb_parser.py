"""Header parser for SMB mesh container files.

SMB layout (all integers little-endian):
- 0x00: 40-byte preamble (not interpreted)
- 0x28: submeshCount, collisionMeshCount, tagCount, materialsCount (u32 each)
- 0x38: 8 reserved bytes
- 0x40: materialsCount NUL-terminated names, each padded to 4 bytes
- tag block (tagCount * 48 + 24) or collision block
  (collisionMeshCount * 428 + 24) or an empty 24-byte block
- submeshCount headers of 368 bytes:
  - +0:   name (48 bytes, NUL-terminated unless it fills the field)
  - +48:  material index (u32)
  - +220: vertex stride marker (u32)
  - +352: vertex count (u32)
  - +356: face count (u32)
- vertex data starts at the next 16-byte boundary
"""
from typing import BinaryIO, Tuple

from smb_reader import (
    align,
    check_range,
    decode_name,
    find_terminator,
    padded_length,
    read_u32,
)
from smb_types import (
    UNKNOWN_MATERIAL,
    Diagnostic,
    DiagnosticKind,
    SMBHeader,
    SubmeshDescriptor,
    TruncatedHeader,
)

MIN_FILE_SIZE = 64
PREAMBLE_SIZE = 40
COUNTS_RESERVED_SIZE = 8

TAG_ENTRY_SIZE = 48
COLLISION_MESH_SIZE = 428
TAG_BLOCK_TRAILER = 24

SUBMESH_HEADER_SIZE = 368
SUBMESH_NAME_SIZE = 48
MATERIAL_INDEX_OFFSET = 48
STRIDE_MARKER_OFFSET = 220
VERTEX_COUNT_OFFSET = 352
FACE_COUNT_OFFSET = 356

VERTEX_DATA_ALIGNMENT = 16

STRIDE_MARKERS = {
    0x40: 68,
    0x3C: 64,
    0x38: 60,
}
DEFAULT_STRIDE = 64


class LayoutWalker:
    """Replays the variable-length records that precede the vertex data.

    Each step takes a cursor and returns the advanced cursor; nothing is
    kept between calls, so two walks over the same buffer agree.
    """

    def __init__(self, data: bytes):
        self.data = data

    def read_counts(self) -> Tuple[Tuple[int, int, int, int], int]:
        """Return (submesh, collision, tag, materials) counts and the cursor."""
        if len(self.data) < MIN_FILE_SIZE:
            raise TruncatedHeader(len(self.data), MIN_FILE_SIZE)

        offset = PREAMBLE_SIZE
        submesh_count, offset = read_u32(self.data, offset, "submesh count")
        collision_count, offset = read_u32(self.data, offset, "collision mesh count")
        tag_count, offset = read_u32(self.data, offset, "tag count")
        materials_count, offset = read_u32(self.data, offset, "materials count")
        offset += COUNTS_RESERVED_SIZE
        return (submesh_count, collision_count, tag_count, materials_count), offset

    def read_material_name(self, offset: int) -> Tuple[str, int]:
        end = find_terminator(self.data, offset, what="material name")
        name = decode_name(self.data[offset:end])
        # Stored length includes the terminator before padding
        return name, offset + padded_length(end - offset + 1)

    def skip_material_names(self, offset: int, count: int) -> int:
        for _ in range(count):
            end = find_terminator(self.data, offset, what="material name")
            offset += padded_length(end - offset + 1)
        return offset

    @staticmethod
    def skip_tag_block(offset: int, tag_count: int, collision_count: int) -> int:
        if tag_count > 0:
            return offset + tag_count * TAG_ENTRY_SIZE + TAG_BLOCK_TRAILER
        if collision_count > 0:
            return offset + collision_count * COLLISION_MESH_SIZE + TAG_BLOCK_TRAILER
        return offset + TAG_BLOCK_TRAILER

    @staticmethod
    def skip_submesh_headers(offset: int, count: int) -> int:
        return offset + count * SUBMESH_HEADER_SIZE

    def header_end(self) -> int:
        """Cursor after the last submesh header, without decoding names."""
        (submesh_count, collision_count, tag_count, materials_count), offset = self.read_counts()
        offset = self.skip_material_names(offset, materials_count)
        offset = self.skip_tag_block(offset, tag_count, collision_count)
        return self.skip_submesh_headers(offset, submesh_count)

    def vertex_data_offset(self) -> int:
        return align(self.header_end(), VERTEX_DATA_ALIGNMENT)


class SMBParser:
    """Parses the material table and submesh headers of SMB files."""

    def parse_header(self, file: BinaryIO) -> SMBHeader:
        """Parse SMB header from an open binary file.

        Args:
            file: Open binary file handle positioned at start

        Returns:
            SMBHeader with parsed data
        """
        return self.parse_header_bytes(file.read())

    def parse_header_bytes(self, data: bytes) -> SMBHeader:
        """Parse SMB header from a complete file buffer.

        Args:
            data: Entire SMB file contents

        Returns:
            SMBHeader with materials, submesh descriptors and diagnostics

        Raises:
            TruncatedHeader: If data is shorter than the fixed header
            BufferOverrun: If a name or submesh header runs past the buffer
        """
        walker = LayoutWalker(data)
        (submesh_count, collision_count, tag_count, materials_count), offset = walker.read_counts()

        header = SMBHeader(
            submesh_count=submesh_count,
            collision_mesh_count=collision_count,
            tag_count=tag_count,
            materials_count=materials_count,
        )

        for _ in range(materials_count):
            name, offset = walker.read_material_name(offset)
            header.materials.append(name)

        if tag_count > 0 and collision_count > 0:
            header.diagnostics.append(Diagnostic(
                DiagnosticKind.TAG_COLLISION_AMBIGUITY,
                f"Both tag count ({tag_count}) and collision mesh count "
                f"({collision_count}) are set; skipping tag data only",
            ))
        offset = walker.skip_tag_block(offset, tag_count, collision_count)

        for i in range(submesh_count):
            descriptor = self._parse_submesh_header(data, offset, i, header)
            header.submeshes.append(descriptor)
            offset += SUBMESH_HEADER_SIZE

        header.header_end = offset
        return header

    def _parse_submesh_header(self, data: bytes, offset: int, index: int,
                              header: SMBHeader) -> SubmeshDescriptor:
        check_range(data, offset, SUBMESH_HEADER_SIZE, "submesh header")

        name_end = find_terminator(data, offset, offset + SUBMESH_NAME_SIZE)
        name = decode_name(data[offset:name_end])

        material_index, _ = read_u32(data, offset + MATERIAL_INDEX_OFFSET)
        stride_marker, _ = read_u32(data, offset + STRIDE_MARKER_OFFSET)
        vertex_count, _ = read_u32(data, offset + VERTEX_COUNT_OFFSET)
        face_count, _ = read_u32(data, offset + FACE_COUNT_OFFSET)

        stride = STRIDE_MARKERS.get(stride_marker)
        if stride is None:
            stride = DEFAULT_STRIDE
            header.diagnostics.append(Diagnostic(
                DiagnosticKind.UNKNOWN_STRIDE_MARKER,
                f"Unknown stride marker 0x{stride_marker:x}. Defaulting to {DEFAULT_STRIDE}.",
                index,
            ))

        if material_index < len(header.materials):
            material_name = header.materials[material_index]
        else:
            material_name = UNKNOWN_MATERIAL
            header.diagnostics.append(Diagnostic(
                DiagnosticKind.UNRESOLVED_MATERIAL_INDEX,
                f"Material index {material_index} out of range "
                f"({len(header.materials)} materials). Using '{UNKNOWN_MATERIAL}'.",
                index,
            ))

        return SubmeshDescriptor(
            name=name,
            material_index=material_index,
            material_name=material_name,
            vertex_count=vertex_count,
            face_count=face_count,
            vertex_stride=stride,
            stride_marker=stride_marker,
        )
