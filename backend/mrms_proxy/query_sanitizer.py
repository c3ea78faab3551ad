"""
Export Query Sanitizer

Builds the canonical upstream export URL from an untrusted client query.

- Only allow-listed parameters are forwarded, everything else is dropped
- Output encoding parameters are always forced
- Spatial references default to geographic bbox / web-mercator image

The resulting URL is also the cache key for the image, so the same
allowed parameters always produce byte-identical output.
"""

from typing import Any, Dict, Mapping, Union
from urllib.parse import parse_qsl, urlencode

ALLOWED_PARAMS = (
    "bbox",
    "size",
    "time",
    "bboxSR",
    "imageSR",
    "format",
    "layers",
    "layerDefs",
    "dpi",
)

FORCED_PARAMS = (
    ("format", "png32"),
    ("transparent", "true"),
    ("f", "image"),
)

DEFAULT_PARAMS = (
    ("bboxSR", "4326"),
    ("imageSR", "3857"),
)

QueryInput = Union[str, Mapping[str, Any]]


def _first_values(query: QueryInput) -> Dict[str, str]:
    """Collapse the incoming query to one string value per key (first wins)."""
    if isinstance(query, str):
        pairs = parse_qsl(query.lstrip("?"), keep_blank_values=True)
    else:
        pairs = []
        for key, value in query.items():
            if isinstance(value, (list, tuple)):
                if not value:
                    continue
                value = value[0]
            if value is None:
                continue
            pairs.append((str(key), str(value)))

    values: Dict[str, str] = {}
    for key, value in pairs:
        values.setdefault(key, value)
    return values


def sanitize_export_params(query: QueryInput) -> Dict[str, str]:
    """
    Reduce a client query to the parameters forwarded upstream.

    Args:
        query: Raw query string or mapping of parameter names to values

    Returns:
        Ordered dict: allowed params in allow-list order, then forced
        params, then any spatial-reference defaults that were missing.
    """
    raw = _first_values(query)

    params: Dict[str, str] = {}
    for key in ALLOWED_PARAMS:
        value = raw.get(key)
        if value:
            params[key] = value

    # Assigning an existing key keeps its position
    for key, value in FORCED_PARAMS:
        params[key] = value

    for key, value in DEFAULT_PARAMS:
        if not params.get(key):
            params[key] = value

    return params


def build_export_url(base_url: str, query: QueryInput) -> str:
    """Return the fully-qualified upstream export URL for a client query."""
    return f"{base_url}?{urlencode(sanitize_export_params(query))}"
