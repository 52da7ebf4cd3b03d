"""
Canonical cache keys for request descriptors.

A key is the request path followed by "-" and the sorted, stringified
parameters that identify the result:

    https://api.example.com/list-?page=2&size=10

Parameters that vary per call without changing the result (cache
busters, tokens, JSONP callbacks, timestamps), cache directives, and any
name containing "__" never take part in the key.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl, quote

import orjson

# Consumed by the cache; never part of identity, never sent onward
DIRECTIVE_PARAMS: frozenset[str] = frozenset({
    "dtExpireTime",
    "dtMaxAge",
    "__disableCache",
    "__forceToCache",
    "__fallbackToCache",
    "__showLog",
})

# Request-volatile or security-sensitive names; sent onward but not cached on
VOLATILE_PARAMS: frozenset[str] = frozenset({
    "_",
    "_t",
    "t",
    "timestamp",
    "callback",
    "jsonp",
    "jsonpCallback",
    "token",
    "access_token",
    "_tb_token_",
    "ctoken",
    "csrfToken",
    "_csrf",
    "nonce",
})

RESERVED_MARKER = "__"


def split_url(url: str) -> tuple[str, dict[str, str]]:
    """Split a URL into its path part and the parameters of its query string."""
    without_fragment = url.split("#", 1)[0]
    path, _, query = without_fragment.partition("?")
    return path, dict(parse_qsl(query, keep_blank_values=True))


def stringify(value: Any) -> str:
    """Render a parameter value the way it would appear in a query string.

    Type information is not preserved: 1, 1.0 and "1" all render as "1".
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, dict):
        return orjson.dumps(value, option=orjson.OPT_SORT_KEYS).decode("utf-8")
    return str(value)


def is_reserved(name: str) -> bool:
    """True for directive names and any name carrying the "__" marker."""
    return name in DIRECTIVE_PARAMS or RESERVED_MARKER in name


def merge_params(url: str, params: Mapping[str, Any] | None = None) -> tuple[str, dict[str, Any]]:
    """Merge the URL's embedded query with explicit params.

    Explicit params win; embedded values only fill in missing names.
    """
    path, embedded = split_url(url)
    merged: dict[str, Any] = dict(embedded)
    merged.update(params or {})
    return path, merged


def outbound_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Params to send with the actual request: everything but cache directives."""
    return {name: value for name, value in (params or {}).items() if not is_reserved(name)}


def canonical_key(
    url: str,
    params: Mapping[str, Any] | None = None,
    *,
    volatile: Iterable[str] = VOLATILE_PARAMS,
) -> str:
    """Derive the cache key for a request.

    Args:
        url: Request path, optionally with an embedded query string.
        params: Explicit request parameters.
        volatile: Names excluded from identity.

    Returns:
        "<path>-" optionally followed by "?k1=v1&k2=v2" in name order.
    """
    path, merged = merge_params(url, params)
    excluded = frozenset(volatile)
    names = sorted(
        name for name in merged if name not in excluded and not is_reserved(name)
    )
    if not names:
        return f"{path}-"

    query = "&".join(
        f"{quote(name, safe='')}={quote(stringify(merged[name]), safe='')}" for name in names
    )
    return f"{path}-?{query}"
