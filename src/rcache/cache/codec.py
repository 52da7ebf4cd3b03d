"""
Codec for values held in the storage medium.

Values are serialized with orjson and prefixed with the UTF-8 byte length
of the JSON payload:

    <byte-length>|<json>

A stored string whose declared length disagrees with the payload, or
whose payload does not parse, decodes to None. Upstream layers treat
that exactly like a key that was never written.
"""

from __future__ import annotations

from typing import Any

import orjson

from rcache.exceptions import SerializationError

DELIMITER = "|"


def encode(value: Any) -> str:
    """Serialize a JSON-compatible value to a length-prefixed string.

    Raises:
        SerializationError: If the value cannot be represented as JSON
            (cyclic structures, unsupported types, non-string dict keys).
    """
    try:
        payload = orjson.dumps(value)
    except (orjson.JSONEncodeError, TypeError) as e:
        raise SerializationError(
            "Value is not JSON serializable",
            context={"type": type(value).__name__, "error": str(e)},
        ) from e
    return f"{len(payload)}{DELIMITER}{payload.decode('utf-8')}"


def decode(raw: str | None) -> Any | None:
    """Parse a string produced by encode().

    Returns:
        The decoded value, or None for missing, truncated or corrupt input.
    """
    if not raw:
        return None

    declared, sep, payload = raw.partition(DELIMITER)
    if not sep or not (declared.isascii() and declared.isdigit()):
        return None

    body = payload.encode("utf-8")
    if int(declared) != len(body):
        return None

    try:
        return orjson.loads(body)
    except orjson.JSONDecodeError:
        return None
