"""Parser for GLB (binary glTF) containers with JSON or FLA2 documents."""
import logging
import struct
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Union

from fla2_decoder import Fla2Decoder
from glb_errors import (
    ChunkAlignmentError,
    ChunkBoundsError,
    HeaderValidationError,
    MissingDocumentError,
)
from glb_types import ChunkType, GlbChunk, GlbData, GlbHeader
from json_document import decode_json_document

logger = logging.getLogger(__name__)


class GlbParser:
    """Parses GLB containers into a glTF document and binary buffers."""

    GLB_MAGIC = 0x46546C67  # "glTF" as uint32 little-endian
    GLB_VERSION = 2
    HEADER_SIZE = 12
    CHUNK_HEADER_SIZE = 8

    def __init__(self, strict_alignment: bool = False, fla2_decoder: Optional[Fla2Decoder] = None):
        """Initialize parser.

        Args:
            strict_alignment: Reject chunk lengths that are not a multiple
                of 4. The format asks for padding, but many writers skip it,
                so this is off by default.
            fla2_decoder: Decoder used for FLA2 chunks
        """
        self.strict_alignment = strict_alignment
        self.fla2_decoder = fla2_decoder or Fla2Decoder()

    def validate_header(self, data: bytes) -> GlbHeader:
        """Parse and check the 12-byte GLB header.

        Args:
            data: Complete GLB file contents

        Returns:
            GlbHeader with parsed data

        Raises:
            HeaderValidationError: If magic, version or length do not match
        """
        if len(data) < self.HEADER_SIZE:
            raise HeaderValidationError(
                "length", f"at least {self.HEADER_SIZE} bytes", len(data)
            )

        magic, version, length = struct.unpack_from("<III", data, 0)

        if magic != self.GLB_MAGIC:
            raise HeaderValidationError("magic", hex(self.GLB_MAGIC), hex(magic))
        if version != self.GLB_VERSION:
            raise HeaderValidationError("version", self.GLB_VERSION, version)
        if length != len(data):
            raise HeaderValidationError("length", len(data), length)

        return GlbHeader(magic=magic, version=version, length=length)

    def walk_chunks(self, data: bytes) -> List[GlbChunk]:
        """Walk the chunk sequence following the header.

        Args:
            data: Complete GLB file contents

        Returns:
            List of GlbChunk in file order

        Raises:
            ChunkBoundsError: If a chunk header or payload is truncated
        """
        total = len(data)
        chunks = []
        cursor = self.HEADER_SIZE
        while cursor < total:
            if cursor + self.CHUNK_HEADER_SIZE > total:
                raise ChunkBoundsError(
                    "Truncated chunk header", cursor, self.CHUNK_HEADER_SIZE, total
                )

            length, chunk_type = struct.unpack_from("<II", data, cursor)
            start = cursor + self.CHUNK_HEADER_SIZE

            if start + length > total:
                raise ChunkBoundsError("Truncated chunk", start, length, total)
            if self.strict_alignment and length % 4:
                raise ChunkAlignmentError("Unaligned chunk", start, length, total)

            chunk = GlbChunk(offset=start, length=length, type=chunk_type)
            logger.debug("chunk %#010x at %d, %d bytes", chunk_type, start, length)
            chunks.append(chunk)
            cursor = start + length

        return chunks

    def extract_buffer(self, data: bytes, chunk: GlbChunk) -> bytes:
        """Copy a chunk payload out of the container."""
        return bytes(data[chunk.offset:chunk.end])

    def decode_document(self, data: bytes, chunk: GlbChunk) -> Dict[str, Any]:
        """Decode a JSON or FLA2 chunk into a glTF document."""
        payload = memoryview(data)[chunk.offset:chunk.end]
        if chunk.kind == ChunkType.FLA2:
            return self.fla2_decoder.decode(payload)
        return decode_json_document(payload)

    def extract(self, data: bytes) -> GlbData:
        """Extract the document and buffers from GLB bytes.

        The first JSON or FLA2 chunk provides the document; later
        document chunks are ignored. Every BIN chunk becomes a buffer, in
        file order. Other chunk types are skipped.

        Args:
            data: Complete GLB file contents

        Returns:
            GlbData with the document and buffers

        Raises:
            GlbError: Subclass describing the first problem found
        """
        header = self.validate_header(data)
        chunks = self.walk_chunks(data)

        document = None
        buffers = []
        for chunk in chunks:
            kind = chunk.kind
            if kind in (ChunkType.JSON, ChunkType.FLA2):
                if document is None:
                    document = self.decode_document(data, chunk)
                else:
                    logger.debug("ignoring extra %s chunk at %d", kind.name, chunk.offset)
            elif kind == ChunkType.BIN:
                buffers.append(self.extract_buffer(data, chunk))
            else:
                logger.debug("skipping unknown chunk %#010x at %d", chunk.type, chunk.offset)

        if document is None:
            raise MissingDocumentError("No JSON or FLA2 chunk found in glb")

        return GlbData(document=document, buffers=buffers, header=header, chunks=chunks)

    def extract_file(self, source: Union[str, Path, BinaryIO]) -> GlbData:
        """Extract the document and buffers from a GLB file.

        Args:
            source: Path to GLB file or file-like object

        Returns:
            GlbData with the document and buffers
        """
        if isinstance(source, (str, Path)):
            with open(source, "rb") as f:
                data = f.read()
        else:
            source.seek(0)
            data = source.read()
        return self.extract(data)


def extract_document_and_buffers(data: bytes, strict_alignment: bool = False) -> GlbData:
    """Extract the document and buffers from GLB bytes."""
    return GlbParser(strict_alignment=strict_alignment).extract(data)
