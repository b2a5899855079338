"""Translation of FLA2 chunks into glTF JSON documents.

FLA2 stores "absent" in several ways, and each is mapped back to an
omitted JSON key:
- indices use -1
- vectors use length 0 (an empty vector is never emitted)
- booleans use False
- strings are missing or empty

A few fields also carry glTF defaults that are dropped on output:
sampler wrap modes equal to REPEAT and buffer view strides outside
[4, 252].

Material extensions and primitive attributes are FlexBuffer blobs and are
passed through the generic value decoder unchanged.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from flatbuffers import flexbuffers

from fla2_schema import (
    ACCESSOR_TYPES,
    COMPONENT_TYPES,
    INTERPOLATIONS,
    NO_INDEX,
    TARGET_PATHS,
    WRAP_REPEAT,
    Fla2Table,
)
from glb_errors import CompactDecodeError

logger = logging.getLogger(__name__)

MIN_BYTE_STRIDE = 4
MAX_BYTE_STRIDE = 252


def decode_flexbuffer(blob: bytes) -> Any:
    """Decode a FlexBuffer blob into plain Python values."""
    return flexbuffers.Loads(blob)


class Fla2Decoder:
    """Decodes FLA2 chunk payloads into glTF documents."""

    def __init__(self, value_decoder: Optional[Callable[[bytes], Any]] = None):
        """Initialize decoder.

        Args:
            value_decoder: Decoder for FlexBuffer blobs, defaults to
                flatbuffers.flexbuffers
        """
        self.value_decoder = value_decoder or decode_flexbuffer

    def decode(self, data: bytes) -> Dict[str, Any]:
        """Decode an FLA2 chunk payload.

        Args:
            data: Raw chunk payload (a finished FlatBuffer)

        Returns:
            glTF document as a dict

        Raises:
            CompactDecodeError: If any offset, length or enum value is invalid
        """
        root = Fla2Table.root(bytes(data))
        json = {}

        extensions_used = root.strings("extensions_used")
        if extensions_used:
            json["extensionsUsed"] = extensions_used
        extensions_required = root.strings("extensions_required")
        if extensions_required:
            json["extensionsRequired"] = extensions_required

        self._add_list(json, "accessors", root.tables("accessors"), self._accessor)
        self._add_list(json, "animations", root.tables("animations"), self._animation)
        json["asset"] = self._asset(root)
        self._add_list(json, "buffers", root.tables("buffers"), self._buffer)
        self._add_list(json, "bufferViews", root.tables("buffer_views"), self._buffer_view)
        self._add_list(json, "images", root.tables("images"), self._image)
        self._add_list(json, "materials", root.tables("materials"), self._material)
        self._add_list(json, "meshes", root.tables("meshes"), self._mesh)
        self._add_list(json, "nodes", root.tables("nodes"), self._node)
        self._add_list(json, "samplers", root.tables("samplers"), self._sampler)
        self._add_index(json, "scene", root.scalar("scene"))
        self._add_list(json, "scenes", root.tables("scenes"), self._scene)
        self._add_list(json, "skins", root.tables("skins"), self._skin)
        self._add_list(json, "textures", root.tables("textures"), self._texture)

        return json

    # Emission helpers

    @staticmethod
    def _add_list(json: Dict, key: str, tables: List[Fla2Table], build: Callable):
        if tables:
            json[key] = [build(t) for t in tables]

    @staticmethod
    def _add_index(json: Dict, key: str, value: int):
        if value != NO_INDEX:
            json[key] = value

    @staticmethod
    def _add_vector(json: Dict, key: str, table: Fla2Table, name: str):
        values = table.vector(name)
        if values:
            json[key] = values

    @staticmethod
    def _add_string(json: Dict, key: str, table: Fla2Table, name: str):
        # an empty string is stored the same way as a missing one
        value = table.string(name)
        if value is not None and value != "":
            json[key] = value

    @staticmethod
    def _enum(table: Fla2Table, name: str, names: Sequence[str]) -> str:
        value = table.scalar(name)
        if value >= len(names):
            raise CompactDecodeError(table.field_path(name), f"unknown enum value {value}")
        return names[value]

    def _blob_value(self, table: Fla2Table, name: str) -> Any:
        blob = table.blob(name)
        # the value decoder is pluggable, so any failure counts as a bad blob
        try:
            return self.value_decoder(blob)
        except Exception as e:
            raise CompactDecodeError(
                table.field_path(name), f"invalid FlexBuffer blob: {e}"
            ) from e

    # Element builders

    def _accessor(self, a: Fla2Table) -> Dict[str, Any]:
        accessor = {}
        self._add_index(accessor, "bufferView", a.scalar("buffer_view"))
        accessor["byteOffset"] = a.scalar("byte_offset")

        component_type = a.scalar("component_type") & 0xFFFF
        if component_type not in COMPONENT_TYPES:
            raise CompactDecodeError(
                a.field_path("component_type"),
                f"unknown component type {component_type}, expected one of "
                + ", ".join(f"{k} ({v})" for k, v in sorted(COMPONENT_TYPES.items())),
            )
        accessor["componentType"] = component_type

        if a.scalar("normalized"):
            accessor["normalized"] = True
        accessor["count"] = a.scalar("count")
        accessor["type"] = self._enum(a, "type", ACCESSOR_TYPES)
        self._add_vector(accessor, "max", a, "max")
        self._add_vector(accessor, "min", a, "min")

        if a.has("sparse"):
            logger.warning("%s: sparse accessor data is not supported, skipped", a.path)

        self._add_string(accessor, "name", a, "name")
        return accessor

    def _animation(self, a: Fla2Table) -> Dict[str, Any]:
        animation = {}
        self._add_list(animation, "channels", a.tables("channels"), self._channel)
        self._add_list(animation, "samplers", a.tables("samplers"), self._animation_sampler)
        self._add_string(animation, "name", a, "name")
        return animation

    def _channel(self, c: Fla2Table) -> Dict[str, Any]:
        channel = {"sampler": c.scalar("sampler")}
        t = c.table("target")
        if t is None:
            raise CompactDecodeError(c.field_path("target"), "missing channel target")
        target = {}
        self._add_index(target, "node", t.scalar("node"))
        target["path"] = self._enum(t, "path", TARGET_PATHS)
        channel["target"] = target
        return channel

    def _animation_sampler(self, s: Fla2Table) -> Dict[str, Any]:
        return {
            "input": s.scalar("input"),
            "interpolation": self._enum(s, "interpolation", INTERPOLATIONS),
            "output": s.scalar("output"),
        }

    def _asset(self, root: Fla2Table) -> Dict[str, Any]:
        a = root.table("asset")
        if a is None:
            raise CompactDecodeError(root.field_path("asset"), "missing asset")
        asset = {"generator": a.string("generator"), "version": a.string("version")}
        self._add_string(asset, "copyright", a, "copyright")
        self._add_string(asset, "minVersion", a, "min_version")
        return asset

    def _buffer(self, b: Fla2Table) -> Dict[str, Any]:
        buffer = {"byteLength": b.scalar("byte_length")}
        self._add_string(buffer, "uri", b, "uri")
        self._add_string(buffer, "name", b, "name")
        return buffer

    def _buffer_view(self, b: Fla2Table) -> Dict[str, Any]:
        buffer_view = {}
        self._add_index(buffer_view, "buffer", b.scalar("buffer"))
        buffer_view["byteOffset"] = b.scalar("byte_offset")
        buffer_view["byteLength"] = b.scalar("byte_length")
        byte_stride = b.scalar("byte_stride")
        if MIN_BYTE_STRIDE <= byte_stride <= MAX_BYTE_STRIDE:
            buffer_view["byteStride"] = byte_stride
        target = b.scalar("target")
        if target:
            buffer_view["target"] = target
        self._add_string(buffer_view, "name", b, "name")
        return buffer_view

    def _image(self, i: Fla2Table) -> Dict[str, Any]:
        image = {}
        self._add_string(image, "uri", i, "uri")
        self._add_string(image, "mimeType", i, "mime_type")
        self._add_index(image, "bufferView", i.scalar("buffer_view"))
        self._add_string(image, "name", i, "name")
        return image

    def _material(self, m: Fla2Table) -> Dict[str, Any]:
        material = {}
        if m.vector_length("extensions"):
            material["extensions"] = self._blob_value(m, "extensions")
        self._add_string(material, "name", m, "name")
        return material

    def _mesh(self, m: Fla2Table) -> Dict[str, Any]:
        mesh = {}
        self._add_list(mesh, "primitives", m.tables("primitives"), self._primitive)
        self._add_vector(mesh, "weights", m, "weights")
        self._add_string(mesh, "name", m, "name")
        return mesh

    def _primitive(self, p: Fla2Table) -> Dict[str, Any]:
        primitive = {}
        if p.vector_length("attributes"):
            primitive["attributes"] = self._blob_value(p, "attributes")
        self._add_index(primitive, "indices", p.scalar("indices"))
        self._add_index(primitive, "material", p.scalar("material"))
        primitive["mode"] = p.scalar("mode")

        if p.vector_length("targets"):
            logger.warning("%s: morph targets are not supported, skipped", p.path)

        return primitive

    def _node(self, n: Fla2Table) -> Dict[str, Any]:
        node = {}
        self._add_index(node, "camera", n.scalar("camera"))
        self._add_vector(node, "children", n, "children")
        self._add_index(node, "skin", n.scalar("skin"))
        self._add_vector(node, "matrix", n, "matrix")
        self._add_index(node, "mesh", n.scalar("mesh"))
        self._add_vector(node, "rotation", n, "rotation")
        self._add_vector(node, "scale", n, "scale")
        self._add_vector(node, "translation", n, "translation")
        self._add_vector(node, "weights", n, "weights")
        self._add_string(node, "name", n, "name")
        return node

    def _sampler(self, s: Fla2Table) -> Dict[str, Any]:
        sampler = {
            "magFilter": s.scalar("mag_filter"),
            "minFilter": s.scalar("min_filter"),
        }
        # REPEAT is the glTF default
        wrap_s = s.scalar("wrap_s")
        if wrap_s != WRAP_REPEAT:
            sampler["wrapS"] = wrap_s
        wrap_t = s.scalar("wrap_t")
        if wrap_t != WRAP_REPEAT:
            sampler["wrapT"] = wrap_t
        self._add_string(sampler, "name", s, "name")
        return sampler

    def _scene(self, s: Fla2Table) -> Dict[str, Any]:
        scene = {}
        self._add_vector(scene, "nodes", s, "nodes")
        self._add_string(scene, "name", s, "name")
        return scene

    def _skin(self, s: Fla2Table) -> Dict[str, Any]:
        skin = {}
        self._add_index(skin, "inverseBindMatrices", s.scalar("inverse_bind_matrices"))
        # glTF ids have "minimum": 0
        skeleton = s.scalar("skeleton")
        if skeleton >= 0:
            skin["skeleton"] = skeleton
        self._add_vector(skin, "joints", s, "joints")
        self._add_string(skin, "name", s, "name")
        return skin

    def _texture(self, t: Fla2Table) -> Dict[str, Any]:
        texture = {}
        self._add_index(texture, "sampler", t.scalar("sampler"))
        self._add_index(texture, "source", t.scalar("source"))
        self._add_string(texture, "name", t, "name")
        return texture
