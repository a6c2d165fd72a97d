"""Tests for SMB header parser."""
import io
import struct
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from smb_parser import LayoutWalker, SMBParser
from smb_types import BufferOverrun, DiagnosticKind, TruncatedHeader
from smb_builder import SubmeshSpec, build_smb, cube_smb, triangle_submesh


def test_parse_cube_header():
    """Should decode counts, material table and the single submesh."""
    built = cube_smb()
    header = SMBParser().parse_header_bytes(built.data)

    assert header.submesh_count == 1
    assert header.materials_count == 1
    assert header.tag_count == 0
    assert header.collision_mesh_count == 0
    assert header.materials == ["Red"]

    assert len(header.submeshes) == 1
    submesh = header.submeshes[0]
    assert submesh.name == "Cube"
    assert submesh.material_index == 0
    assert submesh.material_name == "Red"
    assert submesh.vertex_count == 3
    assert submesh.face_count == 1
    assert submesh.vertex_stride == 64
    assert header.diagnostics == []


def test_parse_cube_offsets():
    """64 fixed + 4 name + 24 empty tag block + 368 header = 460."""
    built = cube_smb()
    header = SMBParser().parse_header_bytes(built.data)

    assert header.header_end == 460
    assert built.header_end == 460
    assert LayoutWalker(built.data).vertex_data_offset() == 464


def test_parse_header_from_file():
    built = cube_smb()
    header = SMBParser().parse_header(io.BytesIO(built.data))
    assert header.submeshes[0].name == "Cube"


def test_truncated_header():
    """A 63-byte buffer fails before anything is decoded."""
    with pytest.raises(TruncatedHeader) as exc_info:
        SMBParser().parse_header_bytes(b"\x00" * 63)
    assert exc_info.value.size == 63
    assert exc_info.value.minimum == 64


def test_minimal_empty_header():
    """64 bytes with zero counts is a valid, empty file."""
    header = SMBParser().parse_header_bytes(b"\x00" * 64)
    assert header.submeshes == []
    assert header.materials == []
    assert header.header_end == 64 + 24


@pytest.mark.parametrize("marker,stride", [(0x40, 68), (0x3C, 64), (0x38, 60)])
def test_stride_markers(marker, stride):
    built = build_smb(["Red"], [triangle_submesh("Mesh", 0, marker)])
    header = SMBParser().parse_header_bytes(built.data)

    assert header.submeshes[0].vertex_stride == stride
    assert header.submeshes[0].stride_marker == marker
    assert header.diagnostics == []


def test_unknown_stride_marker_defaults_to_64():
    built = build_smb(["Red"], [triangle_submesh("Odd", 0, 0x99)])
    header = SMBParser().parse_header_bytes(built.data)

    assert header.submeshes[0].vertex_stride == 64
    assert len(header.diagnostics) == 1
    diagnostic = header.diagnostics[0]
    assert diagnostic.kind == DiagnosticKind.UNKNOWN_STRIDE_MARKER
    assert diagnostic.submesh == 0
    assert "0x99" in diagnostic.message


def test_unresolved_material_index():
    built = build_smb(["Red"], [triangle_submesh("Mesh", 5)])
    header = SMBParser().parse_header_bytes(built.data)

    assert header.submeshes[0].material_index == 5
    assert header.submeshes[0].material_name == "Unknown"
    assert [d.kind for d in header.diagnostics] == [DiagnosticKind.UNRESOLVED_MATERIAL_INDEX]


def test_multiple_materials_in_order():
    built = build_smb(
        ["Red", "Green", "Blue_Metal"],
        [triangle_submesh("A", 2), triangle_submesh("B", 1)],
    )
    header = SMBParser().parse_header_bytes(built.data)

    assert header.materials == ["Red", "Green", "Blue_Metal"]
    assert [s.material_name for s in header.submeshes] == ["Blue_Metal", "Green"]
    assert header.header_end == built.header_end


@pytest.mark.parametrize("name,consumed", [
    ("", 4),      # L=1
    ("ab", 4),    # L=3
    ("abc", 4),   # L=4
    ("abcd", 8),  # L=5
])
def test_material_name_padding(name, consumed):
    data = b"\x00" * 64 + name.encode() + b"\x00" + b"\xee" * 16
    walker = LayoutWalker(data)

    decoded, offset = walker.read_material_name(64)
    assert decoded == name
    assert offset == 64 + consumed
    assert walker.skip_material_names(64, 1) == 64 + consumed


def test_material_name_without_terminator():
    data = bytearray(64)
    struct.pack_into("<4I", data, 40, 0, 0, 0, 1)
    data += b"NoTerminator"

    with pytest.raises(BufferOverrun):
        SMBParser().parse_header_bytes(bytes(data))


def test_tag_block_skipped():
    built = build_smb(["Red"], [triangle_submesh()], tag_count=3)
    header = SMBParser().parse_header_bytes(built.data)

    assert header.header_end == 64 + 4 + 3 * 48 + 24 + 368
    assert header.submeshes[0].name == "Tri"
    assert header.diagnostics == []


def test_collision_block_skipped():
    built = build_smb(["Red"], [triangle_submesh()], collision_count=2)
    header = SMBParser().parse_header_bytes(built.data)

    assert header.header_end == 64 + 4 + 2 * 428 + 24 + 368
    assert header.submeshes[0].name == "Tri"


def test_tag_takes_precedence_over_collision():
    built = build_smb(["Red"], [triangle_submesh()], tag_count=1, collision_count=4)
    header = SMBParser().parse_header_bytes(built.data)

    assert header.header_end == 64 + 4 + 48 + 24 + 368
    assert header.submeshes[0].name == "Tri"
    assert [d.kind for d in header.diagnostics] == [DiagnosticKind.TAG_COLLISION_AMBIGUITY]


def test_submesh_name_fills_field():
    """A 48-byte name without terminator stops at the field end."""
    long_name = "N" * 48
    built = build_smb(["Red"], [SubmeshSpec(name=long_name)])
    header = SMBParser().parse_header_bytes(built.data)
    assert header.submeshes[0].name == long_name


def test_truncated_submesh_header():
    built = cube_smb()
    data = built.data[:built.header_end - 1]

    with pytest.raises(BufferOverrun) as exc_info:
        SMBParser().parse_header_bytes(data)
    assert exc_info.value.what == "submesh header"


def test_walker_matches_parser_without_geometry():
    built = build_smb(["a", "bb", "ccc"], [SubmeshSpec(name="x"), SubmeshSpec(name="y")])
    header = SMBParser().parse_header_bytes(built.data)
    assert LayoutWalker(built.data).header_end() == header.header_end
