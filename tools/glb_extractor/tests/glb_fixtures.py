"""Builders for synthetic GLB and FLA2 test data."""
import json
import struct

import flatbuffers
from flatbuffers import flexbuffers

from fla2_schema import (
    BLOB,
    FILE_IDENTIFIER,
    ROOT_TABLE,
    SCALAR,
    SCHEMA,
    STRING,
    STRINGS,
    TABLE,
    TABLES,
    VECTOR,
)

GLB_MAGIC = 0x46546C67
JSON_CHUNK = 0x4E4F534A
FLA2_CHUNK = 0x32414C46
BIN_CHUNK = 0x004E4942


def make_glb(chunks, version=2, length=None, magic=GLB_MAGIC):
    """Create a GLB file from (chunk_type, payload) pairs.

    Payloads are written as given, without alignment padding.
    """
    body = b""
    for chunk_type, payload in chunks:
        body += struct.pack("<II", len(payload), chunk_type)
        body += payload

    if length is None:
        length = 12 + len(body)

    header = struct.pack("<III", magic, version, length)
    return header + body


def json_chunk(document):
    return (JSON_CHUNK, json.dumps(document).encode("utf-8"))


def fla2_chunk(root):
    return (FLA2_CHUNK, build_fla2(root))


def bin_chunk(payload):
    return (BIN_CHUNK, payload)


def build_fla2(root):
    """Build a finished FLA2 buffer from nested dicts keyed by schema field names.

    Blob fields take either raw bytes or a value to encode as a FlexBuffer.
    """
    builder = flatbuffers.Builder(1024)
    offset = _build_table(builder, ROOT_TABLE, root)
    builder.Finish(offset, file_identifier=FILE_IDENTIFIER)
    return bytes(builder.Output())


def _build_table(builder, table_name, values):
    fields = SCHEMA[table_name]

    # Children must be complete before the table itself is started
    offsets = {}
    for name, value in values.items():
        field = fields[name]
        if field.kind == STRING:
            offsets[name] = builder.CreateString(value)
        elif field.kind == VECTOR:
            offsets[name] = _scalar_vector(builder, field.flags, value)
        elif field.kind == STRINGS:
            offsets[name] = _offset_vector(builder, [builder.CreateString(s) for s in value])
        elif field.kind == TABLE:
            offsets[name] = _build_table(builder, field.table, value)
        elif field.kind == TABLES:
            offsets[name] = _offset_vector(
                builder, [_build_table(builder, field.table, v) for v in value]
            )
        elif field.kind == BLOB:
            blob = value if isinstance(value, bytes) else bytes(flexbuffers.Dumps(value))
            offsets[name] = builder.CreateByteVector(blob)

    builder.StartObject(len(fields))
    for name, value in values.items():
        field = fields[name]
        if field.kind == SCALAR:
            builder.PrependSlot(field.flags, field.slot, value, field.default)
        else:
            builder.PrependUOffsetTRelativeSlot(field.slot, offsets[name], 0)
    return builder.EndObject()


def _scalar_vector(builder, flags, values):
    builder.StartVector(flags.bytewidth, len(values), flags.bytewidth)
    for value in reversed(values):
        builder.Prepend(flags, value)
    return builder.EndVector()


def _offset_vector(builder, offsets):
    builder.StartVector(4, len(offsets), 4)
    for offset in reversed(offsets):
        builder.PrependUOffsetTRelative(offset)
    return builder.EndVector()


MINIMAL_ASSET = {"generator": "x", "version": "2.0"}
