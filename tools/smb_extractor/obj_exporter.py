"""Wavefront OBJ exporter for decoded SMB meshes."""
from pathlib import Path
from typing import Iterator, TextIO, Union

from smb_types import MeshDocument

GENERATOR = "smb2obj"


def object_name(name: str, index: int) -> str:
    """Unique OBJ object name: spaces become underscores, index appended."""
    return f"{name.replace(' ', '_')}_{index}"


def _fmt(value: float) -> str:
    return f"{value:.6f}"


class OBJExporter:
    """Writes a MeshDocument as OBJ text.

    OBJ indices are 1-based and global to the file, so each submesh's
    faces are offset by the vertices written before it. V is flipped.
    """

    def __init__(self, document: MeshDocument):
        self.document = document

    def lines(self) -> Iterator[str]:
        yield f"# Exported by {GENERATOR}"
        vertex_offset = 0

        for i, submesh in enumerate(self.document.submeshes):
            yield f"o {object_name(submesh.name, i)}"
            yield f"# material: {submesh.material_name}"

            for vertex in submesh.vertices:
                yield "v " + " ".join(_fmt(c) for c in vertex.position)
            for vertex in submesh.vertices:
                u, v = vertex.uv
                yield f"vt {_fmt(u)} {_fmt(1.0 - v)}"
            for vertex in submesh.vertices:
                yield "vn " + " ".join(_fmt(c) for c in vertex.normal)

            for triangle in submesh.triangles:
                refs = [str(idx + 1 + vertex_offset) for idx in triangle]
                yield "f " + " ".join(f"{r}/{r}/{r}" for r in refs)

            vertex_offset += len(submesh.vertices)

    def to_text(self) -> str:
        return "\n".join(self.lines()) + "\n"

    def write(self, file: TextIO):
        for line in self.lines():
            file.write(line)
            file.write("\n")

    def export(self, output_path: Union[str, Path]):
        """Export the document to an .obj file.

        Args:
            output_path: Path for output .obj file
        """
        with open(output_path, "w", encoding="latin-1", newline="\n") as f:
            self.write(f)
