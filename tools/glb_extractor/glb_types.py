"""Type definitions for the GLB container format."""
import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pygltflib import GLTF2


class ChunkType(IntEnum):
    """Known chunk type tags (little-endian ASCII)."""

    JSON = 0x4E4F534A  # "JSON"
    FLA2 = 0x32414C46  # "FLA2"
    BIN = 0x004E4942  # "BIN\0"


@dataclass
class GlbHeader:
    """GLB file header."""

    magic: int
    version: int
    length: int


@dataclass
class GlbChunk:
    """GLB chunk descriptor. Offset points at the payload, not the chunk header."""

    offset: int
    length: int
    type: int

    @property
    def kind(self) -> Optional[ChunkType]:
        try:
            return ChunkType(self.type)
        except ValueError:
            return None

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass
class GlbData:
    """Decoded glTF document plus binary buffers in chunk order."""

    document: Dict[str, Any]
    buffers: List[bytes] = field(default_factory=list)
    header: Optional[GlbHeader] = None
    chunks: List[GlbChunk] = field(default_factory=list)

    def to_gltf(self) -> GLTF2:
        """Convert to a pygltflib GLTF2 object.

        The first buffer becomes the binary blob, matching how a
        standard GLB stores its single BIN chunk.

        Returns:
            GLTF2 built from the document
        """
        gltf = GLTF2.from_json(json.dumps(self.document), infer_missing=True)
        if self.buffers:
            gltf.set_binary_blob(self.buffers[0])
        return gltf
