#!/usr/bin/env python3
"""Convert SMB mesh containers to OBJ or glTF.

Usage:
    python extract_models.py <input> [-o <output>] [-f obj|glb] [-v] [--strict]

Examples:
    # Convert a single file into ./output/model.obj
    python extract_models.py model.smb

    # Convert to an explicit file
    python extract_models.py model.smb -o model.obj

    # Convert all SMB files from a directory to GLB
    python extract_models.py ./meshes/ -o ./output -f glb
"""
import argparse
import os
import sys
from pathlib import Path

from gltf_exporter import GLTFExporter
from obj_exporter import OBJExporter
from smb_mesh import SMBMeshExtractor
from smb_types import SMBError

FORMATS = {
    "obj": OBJExporter,
    "glb": GLTFExporter,
}


def print_header(extractor: SMBMeshExtractor):
    """Print file and submesh details ahead of geometry extraction."""
    header = extractor.get_header()
    print(f"Loaded file: {extractor.name} ({extractor.size} bytes)")
    print(f"Submeshes: {header.submesh_count}, Materials: {header.materials_count}")
    for i, submesh in enumerate(header.submeshes):
        print(
            f"  Submesh {i + 1}: {submesh.name} "
            f"(verts: {submesh.vertex_count}, faces: {submesh.face_count}, "
            f"stride: {submesh.vertex_stride}, material: {submesh.material_name})"
        )
    print(f"Vertex data starts at offset: 0x{extractor.get_vertex_data_offset():x}")


def convert(input_path: Path, output_path: Path, fmt: str, verbose: bool = False,
            strict: bool = False):
    """Decode one SMB file and write it in the requested format.

    Raises:
        SMBError: If the file cannot be decoded, or has diagnostics in strict mode
    """
    extractor = SMBMeshExtractor(input_path)
    if verbose:
        print_header(extractor)

    document = extractor.get_document()
    for diagnostic in document.diagnostics:
        print(f"Warning: {extractor.name}: {diagnostic}", file=sys.stderr)

    if strict and document.diagnostics:
        raise SMBError(f"{len(document.diagnostics)} warning(s) in strict mode")

    FORMATS[fmt](document).export(output_path)
    if verbose:
        print(
            f"Exported: {input_path} -> {output_path} "
            f"({len(document.submeshes)} submeshes, {document.vertex_count} vertices, "
            f"{document.triangle_count} triangles)"
        )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Convert SMB mesh containers to OBJ or glTF"
    )
    parser.add_argument(
        "input",
        help="Input SMB file or directory containing SMB files",
    )
    parser.add_argument(
        "-o", "--output",
        default="./output",
        help="Output directory, or output file for a single input (default: ./output)",
    )
    parser.add_argument(
        "-f", "--format",
        choices=sorted(FORMATS),
        help="Output format (default: obj, or the suffix of an output file)",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail files that produce warnings",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args(argv)

    input_path = Path(args.input)
    output = Path(args.output)

    output_format = output.suffix.lower().lstrip(".")
    if output_format not in FORMATS:
        output_format = None
    if args.format and output_format and args.format != output_format:
        parser.error(f"--format {args.format} conflicts with output file {output}")
    fmt = args.format or "obj"

    # Collect input/output pairs
    if input_path.is_file():
        if output_format:
            fmt = output_format
            jobs = [(input_path, output)]
        else:
            jobs = [(input_path, output / f"{input_path.stem}.{fmt}")]
    elif input_path.is_dir():
        files = sorted(input_path.glob("**/*.smb"))
        if not files:
            print(f"No SMB files found in {input_path}", file=sys.stderr)
            return 1
        jobs = [(f, output / f"{f.stem}.{fmt}") for f in files]
    else:
        print(f"Input not found: {args.input}", file=sys.stderr)
        return 1

    success_count = 0
    fail_count = 0

    for smb_file, output_file in jobs:
        os.makedirs(output_file.parent, exist_ok=True)

        try:
            convert(smb_file, output_file, fmt, verbose=args.verbose, strict=args.strict)
            success_count += 1
        except (ValueError, OSError) as e:
            print(f"Failed: {smb_file} - {e}", file=sys.stderr)
            fail_count += 1

    # Summary
    total = success_count + fail_count
    print(f"\nConverted {success_count}/{total} files to {output}")

    return 0 if fail_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
