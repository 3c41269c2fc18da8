"""
Value codec.

Explicit encode/decode step between the schema-less value mappings the
strategies work with and the text the stores persist.
"""

import json
from typing import Any, Dict, Mapping, Optional

from .exceptions import CacheSerializationException


def encode_value(value: Any, key: Optional[str] = None) -> str:
    """Encode a value as JSON text."""
    try:
        return json.dumps(value, default=str, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise CacheSerializationException(
            f"Failed to encode value: {e}", key=key, original_error=e
        ) from e


def decode_value(raw: Any, key: Optional[str] = None) -> Any:
    """Decode JSON text produced by ``encode_value``."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CacheSerializationException(
                "Stored value is not valid UTF-8", key=key, original_error=e
            ) from e
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        raise CacheSerializationException(
            f"Failed to decode stored value: {e}", key=key, original_error=e
        ) from e


def decode_mapping(raw: Any, key: Optional[str] = None) -> Dict[str, Any]:
    """Decode a value that must be a JSON object."""
    decoded = decode_value(raw, key=key)
    if not isinstance(decoded, dict):
        raise CacheSerializationException(
            f"Stored value is a {type(decoded).__name__}, expected an object",
            key=key,
        )
    return decoded


def encode_fields(fields: Mapping[str, Any], key: Optional[str] = None) -> Dict[str, Any]:
    """Flatten a field mapping for hash storage.

    Scalars are stored as-is; anything structured is stored as JSON text.
    """
    encoded: Dict[str, Any] = {}
    for name, value in fields.items():
        if isinstance(value, (str, bytes, int, float)) and not isinstance(value, bool):
            encoded[name] = value
        else:
            encoded[name] = encode_value(value, key=key)
    return encoded
