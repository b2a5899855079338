"""Decoding of GLB JSON chunks."""
import json
from typing import Any, Dict

from glb_errors import TextDecodeError


def decode_json_document(data: bytes) -> Dict[str, Any]:
    """Decode a JSON chunk payload into a glTF document.

    Args:
        data: Raw chunk payload

    Returns:
        The parsed top-level JSON object

    Raises:
        TextDecodeError: If the payload is not UTF-8 or not a JSON object
    """
    try:
        text = bytes(data).decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise TextDecodeError(f"JSON chunk is not valid UTF-8: {e}") from e

    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise TextDecodeError(f"Malformed JSON chunk: {e}") from e
    except RecursionError as e:
        raise TextDecodeError("JSON chunk is nested too deeply") from e

    if not isinstance(document, dict):
        raise TextDecodeError(
            f"JSON chunk must hold an object, got {type(document).__name__}"
        )

    return document
