"""Tests for GLB type definitions."""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from glb_types import ChunkType, GlbChunk, GlbData


def test_chunk_kind():
    """Known tags map to ChunkType, others to None."""
    assert GlbChunk(offset=20, length=4, type=0x4E4F534A).kind == ChunkType.JSON
    assert GlbChunk(offset=20, length=4, type=0x32414C46).kind == ChunkType.FLA2
    assert GlbChunk(offset=20, length=4, type=0x004E4942).kind == ChunkType.BIN
    assert GlbChunk(offset=20, length=4, type=0x12345678).kind is None


def test_chunk_end():
    assert GlbChunk(offset=20, length=16, type=0).end == 36


def test_to_gltf():
    """Should convert to a pygltflib GLTF2 with the first buffer attached."""
    data = GlbData(
        document={
            "asset": {"generator": "x", "version": "2.0"},
            "buffers": [{"byteLength": 4}],
            "bufferViews": [{"buffer": 0, "byteOffset": 0, "byteLength": 4}],
            "scene": 0,
            "scenes": [{"nodes": [0]}],
            "nodes": [{"name": "root"}],
        },
        buffers=[b"\x01\x02\x03\x04"],
    )

    gltf = data.to_gltf()

    assert gltf.asset.generator == "x"
    assert gltf.asset.version == "2.0"
    assert gltf.buffers[0].byteLength == 4
    assert gltf.bufferViews[0].byteLength == 4
    assert gltf.scene == 0
    assert gltf.nodes[0].name == "root"
    assert gltf.binary_blob() == b"\x01\x02\x03\x04"


def test_to_gltf_without_buffers():
    """Documents without buffers convert without a binary blob."""
    data = GlbData(document={"asset": {"generator": "x", "version": "2.0"}})

    gltf = data.to_gltf()

    assert gltf.asset.generator == "x"
    assert not gltf.binary_blob()
