"""Type definitions for the SMB mesh container format."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


UNKNOWN_MATERIAL = "Unknown"


class SMBError(ValueError):
    """Base class for fatal SMB decoding errors."""


class TruncatedHeader(SMBError):
    """Buffer is shorter than the fixed SMB header."""

    def __init__(self, size: int, minimum: int):
        self.size = size
        self.minimum = minimum
        super().__init__(
            f"File too small to contain valid header ({size} < {minimum} bytes)"
        )


class BufferOverrun(SMBError):
    """A read would run past the end of the buffer."""

    def __init__(self, offset: int, size: int, limit: int, what: str = "data"):
        self.offset = offset
        self.size = size
        self.limit = limit
        self.what = what
        super().__init__(
            f"Reading {what} at 0x{offset:x} ({size} bytes) "
            f"exceeds buffer length 0x{limit:x}"
        )


class DiagnosticKind(Enum):
    UNKNOWN_STRIDE_MARKER = "unknown-stride-marker"
    UNRESOLVED_MATERIAL_INDEX = "unresolved-material-index"
    TAG_COLLISION_AMBIGUITY = "tag-collision-ambiguity"


@dataclass
class Diagnostic:
    """Non-fatal condition met while decoding."""

    kind: DiagnosticKind
    message: str
    submesh: Optional[int] = None

    def __str__(self) -> str:
        if self.submesh is None:
            return self.message
        return f"submesh {self.submesh}: {self.message}"


@dataclass
class SubmeshDescriptor:
    """Per-submesh header record."""

    name: str
    material_index: int
    material_name: str
    vertex_count: int
    face_count: int
    vertex_stride: int
    stride_marker: int = 0


@dataclass
class SMBHeader:
    """Everything that precedes the vertex data."""

    submesh_count: int
    collision_mesh_count: int
    tag_count: int
    materials_count: int
    materials: List[str] = field(default_factory=list)
    submeshes: List[SubmeshDescriptor] = field(default_factory=list)
    header_end: int = 0  # cursor after the last submesh header, unaligned
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class Vertex:
    position: Tuple[float, float, float]
    normal: Tuple[float, float, float]
    uv: Tuple[float, float]


# (i1, i2, i3), local to the owning submesh
Triangle = Tuple[int, int, int]


@dataclass
class SubmeshGeometry:
    """Decoded geometry for one submesh."""

    name: str
    material_name: str
    vertices: List[Vertex] = field(default_factory=list)
    triangles: List[Triangle] = field(default_factory=list)
    vertex_offset: int = 0
    index_offset: int = 0


@dataclass
class MeshDocument:
    """Decoded result of one SMB file."""

    name: str
    materials: List[str] = field(default_factory=list)
    submeshes: List[SubmeshGeometry] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return sum(len(s.vertices) for s in self.submeshes)

    @property
    def triangle_count(self) -> int:
        return sum(len(s.triangles) for s in self.submeshes)
