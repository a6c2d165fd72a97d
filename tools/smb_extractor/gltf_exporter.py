"""glTF exporter for decoded SMB meshes."""
import struct
from pathlib import Path
from typing import Dict, List, Tuple, Union

from pygltflib import (
    GLTF2,
    Buffer,
    BufferView,
    Accessor,
    Attributes,
    Material,
    Mesh,
    Primitive,
    Node,
    Scene,
    Asset,
)

from obj_exporter import object_name
from smb_types import MeshDocument

ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963
FLOAT = 5126
UNSIGNED_SHORT = 5123
TRIANGLES = 4


class GLTFExporter:
    """Exports a MeshDocument to glTF/GLB format.

    One glTF mesh and node per submesh. UVs are written as decoded since
    glTF and SMB share a top-left texture origin.
    """

    def __init__(self, document: MeshDocument):
        self.document = document
        self._buffer_data = b""

    def _compute_bounds(self, positions: List[Tuple[float, float, float]]) -> Tuple[List[float], List[float]]:
        """Compute min/max bounds for vertices."""
        if not positions:
            return [0, 0, 0], [0, 0, 0]

        min_bounds = [float("inf")] * 3
        max_bounds = [float("-inf")] * 3

        for p in positions:
            for i in range(3):
                min_bounds[i] = min(min_bounds[i], p[i])
                max_bounds[i] = max(max_bounds[i], p[i])

        return min_bounds, max_bounds

    def _add_view(self, gltf: GLTF2, data: bytes, target: int) -> int:
        """Append data to the binary blob and return its buffer view index."""
        offset = len(self._buffer_data)
        self._buffer_data += data
        # Keep every view 4-byte aligned
        if len(self._buffer_data) % 4 != 0:
            self._buffer_data += b"\x00" * (4 - len(self._buffer_data) % 4)

        gltf.bufferViews.append(
            BufferView(
                buffer=0,
                byteOffset=offset,
                byteLength=len(data),
                target=target,
            )
        )
        return len(gltf.bufferViews) - 1

    def _add_accessor(self, gltf: GLTF2, accessor: Accessor) -> int:
        gltf.accessors.append(accessor)
        return len(gltf.accessors) - 1

    def _material_indices(self, gltf: GLTF2) -> Dict[str, int]:
        """Create one untextured glTF material per material name."""
        names = list(self.document.materials)
        for submesh in self.document.submeshes:
            if submesh.material_name not in names:
                names.append(submesh.material_name)

        indices = {}
        for name in names:
            if name in indices:
                continue
            gltf.materials.append(Material(name=name))
            indices[name] = len(gltf.materials) - 1
        return indices

    def build(self) -> GLTF2:
        """Build the glTF document with its binary blob attached.

        Raises:
            ValueError: If the document holds no vertices
        """
        if self.document.vertex_count == 0:
            raise ValueError("No mesh data found in SMB file")

        self._buffer_data = b""
        gltf = GLTF2()
        gltf.asset = Asset(version="2.0", generator="SMB Extractor")
        materials = self._material_indices(gltf)

        for i, submesh in enumerate(self.document.submeshes):
            if not submesh.vertices:
                continue

            positions = [v.position for v in submesh.vertices]
            position_data = b"".join(struct.pack("<3f", *p) for p in positions)
            normal_data = b"".join(struct.pack("<3f", *v.normal) for v in submesh.vertices)
            uv_data = b"".join(struct.pack("<2f", *v.uv) for v in submesh.vertices)
            min_bounds, max_bounds = self._compute_bounds(positions)

            attributes = Attributes(
                POSITION=self._add_accessor(gltf, Accessor(
                    bufferView=self._add_view(gltf, position_data, ARRAY_BUFFER),
                    componentType=FLOAT,
                    count=len(positions),
                    type="VEC3",
                    max=max_bounds,
                    min=min_bounds,
                )),
                NORMAL=self._add_accessor(gltf, Accessor(
                    bufferView=self._add_view(gltf, normal_data, ARRAY_BUFFER),
                    componentType=FLOAT,
                    count=len(positions),
                    type="VEC3",
                )),
                TEXCOORD_0=self._add_accessor(gltf, Accessor(
                    bufferView=self._add_view(gltf, uv_data, ARRAY_BUFFER),
                    componentType=FLOAT,
                    count=len(positions),
                    type="VEC2",
                )),
            )

            primitive = Primitive(
                attributes=attributes,
                material=materials[submesh.material_name],
                mode=TRIANGLES,
            )
            if submesh.triangles:
                index_data = b"".join(struct.pack("<3H", *t) for t in submesh.triangles)
                primitive.indices = self._add_accessor(gltf, Accessor(
                    bufferView=self._add_view(gltf, index_data, ELEMENT_ARRAY_BUFFER),
                    componentType=UNSIGNED_SHORT,
                    count=len(submesh.triangles) * 3,
                    type="SCALAR",
                ))

            name = object_name(submesh.name, i)
            gltf.meshes.append(Mesh(name=name, primitives=[primitive]))
            gltf.nodes.append(Node(mesh=len(gltf.meshes) - 1, name=name))

        gltf.buffers = [Buffer(byteLength=len(self._buffer_data))]
        gltf.scenes = [Scene(nodes=list(range(len(gltf.nodes))))]
        gltf.scene = 0
        gltf.set_binary_blob(self._buffer_data)
        return gltf

    def export(self, output_path: Union[str, Path]):
        """Export the document to a .glb file.

        Args:
            output_path: Path for output .glb file

        Raises:
            ValueError: If the document holds no vertices
        """
        self.build().save(str(output_path))
