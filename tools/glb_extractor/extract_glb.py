#!/usr/bin/env python3
"""Extract glTF documents and buffers from GLB files.

Handles both JSON and FLA2 document chunks.

Usage:
    python extract_glb.py <input> [-o <output>] [--format json|glb] [--strict-alignment]

Examples:
    # Dump a single file as <name>.gltf plus <name>_<n>.bin buffers
    python extract_glb.py model.glb -o ./output

    # Rewrite FLA2 containers as standard JSON-chunk GLB files
    python extract_glb.py ./models/ -o ./output --format glb
"""
import argparse
import json
import logging
import os
import sys
from pathlib import Path

from glb_parser import GlbParser
from glb_types import GlbData


def write_json(data: GlbData, output_dir: Path, stem: str) -> Path:
    """Write the document as <stem>.gltf and each buffer as <stem>_<n>.bin."""
    output_file = output_dir / f"{stem}.gltf"
    with open(output_file, "w", encoding="utf-8") as f:
        json.dump(data.document, f, indent=2)

    for i, buffer in enumerate(data.buffers):
        with open(output_dir / f"{stem}_{i}.bin", "wb") as f:
            f.write(buffer)

    return output_file


def write_glb(data: GlbData, output_dir: Path, stem: str) -> Path:
    """Write a standard GLB with a JSON chunk through pygltflib."""
    if len(data.buffers) > 1:
        raise ValueError(
            f"GLB output supports a single binary buffer, found {len(data.buffers)}"
        )
    output_file = output_dir / f"{stem}.glb"
    gltf = data.to_gltf()
    # save() stamps a fresh Asset unless one is passed in
    gltf.save(str(output_file), asset=gltf.asset)
    return output_file


def main():
    parser = argparse.ArgumentParser(
        description="Extract glTF documents and buffers from GLB files"
    )
    parser.add_argument(
        "input",
        help="Input GLB file or directory containing GLB files",
    )
    parser.add_argument(
        "-o", "--output",
        default="./output",
        help="Output directory (default: ./output)",
    )
    parser.add_argument(
        "--format",
        choices=["json", "glb"],
        default="json",
        help="Output format (default: json)",
    )
    parser.add_argument(
        "--strict-alignment",
        action="store_true",
        help="Reject chunks whose length is not a multiple of 4",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    os.makedirs(args.output, exist_ok=True)

    input_path = Path(args.input)
    if input_path.is_file():
        files = [input_path]
    elif input_path.is_dir():
        files = sorted(input_path.glob("**/*.glb"))
        if not files:
            print(f"No GLB files found in {input_path}", file=sys.stderr)
            return 1
    else:
        print(f"Input not found: {args.input}", file=sys.stderr)
        return 1

    glb_parser = GlbParser(strict_alignment=args.strict_alignment)
    writer = write_glb if args.format == "glb" else write_json
    output_dir = Path(args.output)

    success_count = 0
    fail_count = 0

    for glb_file in files:
        try:
            data = glb_parser.extract_file(glb_file)
            output_file = writer(data, output_dir, glb_file.stem)
            if args.verbose:
                print(f"Extracted: {glb_file} -> {output_file}")
            success_count += 1
        except Exception as e:
            print(f"Failed: {glb_file} - {e}", file=sys.stderr)
            fail_count += 1

    total = success_count + fail_count
    print(f"\nExtracted {success_count}/{total} files to {args.output}")

    return 0 if fail_count == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
