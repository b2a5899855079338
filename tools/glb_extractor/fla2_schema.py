"""FLA2 table layout and a bounds-checked reader on top of flatbuffers.

Slot numbers and defaults mirror fla2.fbs. Every read goes through
Fla2Table, which checks table positions, vtables, indirect offsets and
vector/string extents against the buffer before handing the actual
decoding to flatbuffers.table.Table.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pygltflib
from flatbuffers import number_types as N
from flatbuffers.table import Table

from glb_errors import CompactDecodeError

SCALAR = "scalar"
STRING = "string"
VECTOR = "vector"
STRINGS = "strings"
TABLE = "table"
TABLES = "tables"
BLOB = "blob"

# Enum tables, indexed by the stored value
ACCESSOR_TYPES = (
    pygltflib.SCALAR,
    pygltflib.VEC2,
    pygltflib.VEC3,
    pygltflib.VEC4,
    pygltflib.MAT2,
    pygltflib.MAT3,
    pygltflib.MAT4,
)
TARGET_PATHS = ("translation", "rotation", "scale", "weights")
INTERPOLATIONS = ("LINEAR", "STEP", "CUBICSPLINE")

COMPONENT_TYPES = {
    pygltflib.BYTE: "BYTE",
    pygltflib.UNSIGNED_BYTE: "UNSIGNED_BYTE",
    pygltflib.SHORT: "SHORT",
    pygltflib.UNSIGNED_SHORT: "UNSIGNED_SHORT",
    pygltflib.UNSIGNED_INT: "UNSIGNED_INT",
    pygltflib.FLOAT: "FLOAT",
}

WRAP_REPEAT = 10497  # REPEAT
NO_INDEX = -1


@dataclass(frozen=True)
class Fla2Field:
    """One field of an FLA2 table."""

    slot: int
    kind: str
    flags: Any = None
    default: Any = None
    table: Optional[str] = None

    @property
    def vtable_offset(self) -> int:
        # vtable starts with its own size and the object size (2 bytes each)
        return 4 + 2 * self.slot


def _scalar(slot, flags, default=0):
    return Fla2Field(slot, SCALAR, flags, default)


def _index(slot):
    return Fla2Field(slot, SCALAR, N.Int32Flags, NO_INDEX)


def _string(slot):
    return Fla2Field(slot, STRING)


def _vector(slot, flags):
    return Fla2Field(slot, VECTOR, flags)


def _table(slot, name):
    return Fla2Field(slot, TABLE, table=name)


def _tables(slot, name):
    return Fla2Field(slot, TABLES, table=name)


def _blob(slot):
    return Fla2Field(slot, BLOB, N.Uint8Flags)


SCHEMA: Dict[str, Dict[str, Fla2Field]] = {
    "AccessorSparseIndices": {
        "buffer_view": _index(0),
        "byte_offset": _scalar(1, N.Uint32Flags),
        "component_type": _scalar(2, N.Uint32Flags),
    },
    "AccessorSparseValues": {
        "buffer_view": _index(0),
        "byte_offset": _scalar(1, N.Uint32Flags),
    },
    "AccessorSparse": {
        "count": _scalar(0, N.Uint32Flags),
        "indices": _table(1, "AccessorSparseIndices"),
        "values": _table(2, "AccessorSparseValues"),
    },
    "Accessor": {
        "buffer_view": _index(0),
        "byte_offset": _scalar(1, N.Uint32Flags),
        "component_type": _scalar(2, N.Uint32Flags),
        "normalized": _scalar(3, N.BoolFlags, False),
        "count": _scalar(4, N.Uint32Flags),
        "type": _scalar(5, N.Uint8Flags),
        "max": _vector(6, N.Float32Flags),
        "min": _vector(7, N.Float32Flags),
        "sparse": _table(8, "AccessorSparse"),
        "name": _string(9),
    },
    "AnimationChannelTarget": {
        "node": _index(0),
        "path": _scalar(1, N.Uint8Flags),
    },
    "AnimationChannel": {
        "sampler": _scalar(0, N.Int32Flags),
        "target": _table(1, "AnimationChannelTarget"),
    },
    "AnimationSampler": {
        "input": _scalar(0, N.Int32Flags),
        "interpolation": _scalar(1, N.Uint8Flags),
        "output": _scalar(2, N.Int32Flags),
    },
    "Animation": {
        "channels": _tables(0, "AnimationChannel"),
        "samplers": _tables(1, "AnimationSampler"),
        "name": _string(2),
    },
    "Asset": {
        "copyright": _string(0),
        "generator": _string(1),
        "version": _string(2),
        "min_version": _string(3),
    },
    "Buffer": {
        "uri": _string(0),
        "byte_length": _scalar(1, N.Uint32Flags),
        "name": _string(2),
    },
    "BufferView": {
        "buffer": _index(0),
        "byte_offset": _scalar(1, N.Uint32Flags),
        "byte_length": _scalar(2, N.Uint32Flags),
        "byte_stride": _scalar(3, N.Uint8Flags),
        "target": _scalar(4, N.Uint32Flags),
        "name": _string(5),
    },
    "Image": {
        "uri": _string(0),
        "mime_type": _string(1),
        "buffer_view": _index(2),
        "name": _string(3),
    },
    "Material": {
        "extensions": _blob(0),
        "name": _string(1),
    },
    "MeshPrimitive": {
        "attributes": _blob(0),
        "indices": _index(1),
        "material": _index(2),
        "mode": _scalar(3, N.Uint8Flags, 4),
        "targets": _blob(4),
    },
    "Mesh": {
        "primitives": _tables(0, "MeshPrimitive"),
        "weights": _vector(1, N.Float32Flags),
        "name": _string(2),
    },
    "Node": {
        "camera": _index(0),
        "children": _vector(1, N.Int32Flags),
        "skin": _index(2),
        "matrix": _vector(3, N.Float32Flags),
        "mesh": _index(4),
        "rotation": _vector(5, N.Float32Flags),
        "scale": _vector(6, N.Float32Flags),
        "translation": _vector(7, N.Float32Flags),
        "weights": _vector(8, N.Float32Flags),
        "name": _string(9),
    },
    "Sampler": {
        "mag_filter": _scalar(0, N.Uint32Flags),
        "min_filter": _scalar(1, N.Uint32Flags),
        "wrap_s": _scalar(2, N.Uint32Flags, WRAP_REPEAT),
        "wrap_t": _scalar(3, N.Uint32Flags, WRAP_REPEAT),
        "name": _string(4),
    },
    "Scene": {
        "nodes": _vector(0, N.Int32Flags),
        "name": _string(1),
    },
    "Skin": {
        "inverse_bind_matrices": _index(0),
        "skeleton": _index(1),
        "joints": _vector(2, N.Int32Flags),
        "name": _string(3),
    },
    "Texture": {
        "sampler": _index(0),
        "source": _index(1),
        "name": _string(2),
    },
    "FLA2Chunk": {
        "extensions_used": Fla2Field(0, STRINGS),
        "extensions_required": Fla2Field(1, STRINGS),
        "accessors": _tables(2, "Accessor"),
        "animations": _tables(3, "Animation"),
        "asset": _table(4, "Asset"),
        "buffers": _tables(5, "Buffer"),
        "buffer_views": _tables(6, "BufferView"),
        "images": _tables(7, "Image"),
        "materials": _tables(8, "Material"),
        "meshes": _tables(9, "Mesh"),
        "nodes": _tables(10, "Node"),
        "samplers": _tables(11, "Sampler"),
        "scene": _index(12),
        "scenes": _tables(13, "Scene"),
        "skins": _tables(14, "Skin"),
        "textures": _tables(15, "Texture"),
    },
}

ROOT_TABLE = "FLA2Chunk"
FILE_IDENTIFIER = b"FLA2"

_UOFFSET = N.UOffsetTFlags.bytewidth


class Fla2Table:
    """Bounds-checked view of one table inside an FLA2 buffer."""

    def __init__(self, buf: bytes, pos: int, table_name: str, path: str = ""):
        self.table_name = table_name
        self.fields = SCHEMA[table_name]
        self.path = path
        self._buf = buf

        where = path or table_name
        self._check(pos, N.SOffsetTFlags.bytewidth, where, "table")
        self._tab = Table(buf, pos)

        vtable = pos - self._tab.Get(N.SOffsetTFlags, pos)
        self._check(vtable, 4, where, "vtable header")
        vtable_size = self._tab.Get(N.VOffsetTFlags, vtable)
        if vtable_size < 4 or vtable_size % 2:
            raise CompactDecodeError(where, f"invalid vtable size {vtable_size}")
        self._check(vtable, vtable_size, where, "vtable")

    @classmethod
    def root(cls, buf: bytes) -> "Fla2Table":
        """Open the FLA2Chunk root table of a finished buffer."""
        if len(buf) < _UOFFSET:
            raise CompactDecodeError(
                ROOT_TABLE, f"buffer of {len(buf)} bytes has no root offset"
            )
        pos = N.UOffsetTFlags.py_type(Table(buf, 0).Get(N.UOffsetTFlags, 0))
        return cls(buf, pos, ROOT_TABLE)

    def _check(self, start: int, size: int, where: str, what: str):
        if start < 0 or start + size > len(self._buf):
            raise CompactDecodeError(
                where,
                f"{what} at [{start}, {start + size}) lies outside buffer of {len(self._buf)} bytes",
            )

    def field_path(self, name: str) -> str:
        return f"{self.path}.{name}" if self.path else name

    def _field_pos(self, name: str) -> Optional[int]:
        """Absolute position of a field, or None when it is not stored."""
        o = self._tab.Offset(self.fields[name].vtable_offset)
        if o == 0:
            return None
        return self._tab.Pos + o

    def _indirect(self, pos: int, where: str) -> int:
        self._check(pos, _UOFFSET, where, "offset")
        return self._tab.Indirect(pos)

    def _vector_extent(self, pos: int, width: int, where: str):
        start = self._indirect(pos, where)
        self._check(start, _UOFFSET, where, "vector length")
        length = self._tab.Get(N.UOffsetTFlags, start)
        start += _UOFFSET
        self._check(start, length * width, where, "vector data")
        return start, length

    def _read_string(self, pos: int, where: str) -> str:
        target = self._indirect(pos, where)
        self._check(target, _UOFFSET, where, "string length")
        length = self._tab.Get(N.UOffsetTFlags, target)
        self._check(target + _UOFFSET, length, where, "string data")
        try:
            return self._tab.String(pos).decode("utf-8")
        except UnicodeDecodeError as e:
            raise CompactDecodeError(where, f"string is not valid UTF-8: {e}") from e

    def has(self, name: str) -> bool:
        return self._field_pos(name) is not None

    def scalar(self, name: str):
        """Read a scalar field, falling back to its schema default."""
        field = self.fields[name]
        pos = self._field_pos(name)
        if pos is None:
            return field.default
        self._check(pos, field.flags.bytewidth, self.field_path(name), "scalar")
        return self._tab.Get(field.flags, pos)

    def string(self, name: str) -> Optional[str]:
        pos = self._field_pos(name)
        if pos is None:
            return None
        return self._read_string(pos, self.field_path(name))

    def vector_length(self, name: str) -> int:
        field = self.fields[name]
        pos = self._field_pos(name)
        if pos is None:
            return 0
        width = field.flags.bytewidth if field.flags else _UOFFSET
        return self._vector_extent(pos, width, self.field_path(name))[1]

    def vector(self, name: str) -> List:
        """Read a vector of scalars; absent vectors read as empty."""
        field = self.fields[name]
        pos = self._field_pos(name)
        if pos is None:
            return []
        width = field.flags.bytewidth
        start, length = self._vector_extent(pos, width, self.field_path(name))
        return [self._tab.Get(field.flags, start + i * width) for i in range(length)]

    def strings(self, name: str) -> List[str]:
        pos = self._field_pos(name)
        if pos is None:
            return []
        where = self.field_path(name)
        start, length = self._vector_extent(pos, _UOFFSET, where)
        return [
            self._read_string(start + i * _UOFFSET, f"{where}[{i}]")
            for i in range(length)
        ]

    def table(self, name: str) -> Optional["Fla2Table"]:
        pos = self._field_pos(name)
        if pos is None:
            return None
        where = self.field_path(name)
        target = self._indirect(pos, where)
        return Fla2Table(self._buf, target, self.fields[name].table, where)

    def tables(self, name: str) -> List["Fla2Table"]:
        pos = self._field_pos(name)
        if pos is None:
            return []
        where = self.field_path(name)
        element_type = self.fields[name].table
        start, length = self._vector_extent(pos, _UOFFSET, where)
        elements = []
        for i in range(length):
            element_path = f"{where}[{i}]"
            target = self._indirect(start + i * _UOFFSET, element_path)
            elements.append(Fla2Table(self._buf, target, element_type, element_path))
        return elements

    def blob(self, name: str) -> bytes:
        """Copy out the exact bytes of a [ubyte] field."""
        pos = self._field_pos(name)
        if pos is None:
            return b""
        start, length = self._vector_extent(pos, 1, self.field_path(name))
        return bytes(self._buf[start:start + length])
