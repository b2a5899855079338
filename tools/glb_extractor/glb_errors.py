"""Exceptions raised while reading GLB containers."""
from typing import Any


class GlbError(ValueError):
    """Base class for every GLB parse failure."""


class HeaderValidationError(GlbError):
    """The 12-byte container header does not match what we support."""

    def __init__(self, field: str, expected: Any, actual: Any):
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Invalid glb {field}: expected {expected}, but was {actual}"
        )


class ChunkBoundsError(GlbError):
    """A chunk header or payload reaches past the end of the input."""

    def __init__(self, message: str, offset: int, length: int, total: int):
        self.offset = offset
        self.length = length
        self.total = total
        super().__init__(
            f"{message} at offset {offset} (length {length}, input is {total} bytes)"
        )


class ChunkAlignmentError(ChunkBoundsError):
    """Chunk length is not a multiple of 4 (strict mode only)."""


class TextDecodeError(GlbError):
    """JSON chunk is not valid UTF-8 or not a JSON object."""


class CompactDecodeError(GlbError):
    """FLA2 chunk is malformed at a specific field."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid FLA2 field {path}: {reason}")


class MissingDocumentError(GlbError):
    """Container holds no JSON or FLA2 chunk."""
