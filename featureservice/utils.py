from __future__ import annotations

import re
from typing import Any, NamedTuple, Optional

_SERVICE_RE = re.compile(r"^(.+?/(?:feature|map)server)(?:/(\d+))?", re.IGNORECASE)
_HOSTED_RE = re.compile(r"services(\d)?(qa|dev)?\.arcgis\.com")
_LAYER_RE = re.compile(r"/?(\d+)")


class ServiceUrl(NamedTuple):
    server: str
    layer: Optional[int]
    hosted: bool


def parse_url(url: str) -> ServiceUrl:
    """Split a FeatureServer/MapServer url into server root and optional layer index."""
    match = _SERVICE_RE.match(url or "")
    if match is None:
        raise ValueError(f"unable to parse {url} as a mapserver or featureserver with optional layer")
    layer = int(match.group(2)) if match.group(2) is not None else None
    return ServiceUrl(server=match.group(1), layer=layer, hosted=bool(_HOSTED_RE.search(url)))


def sanitize_layer(raw: Any) -> Optional[int]:
    """Accept 3, "3" or "/3"; anything else yields None."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if not isinstance(raw, str):
        return None
    match = _LAYER_RE.search(raw)
    return int(match.group(1)) if match else None


def default_concurrency(hosted: bool, geometry_type: Optional[str] = None) -> int:
    """Suggested request concurrency for a host and geometry type.

    ArcGIS Online can take far more parallel requests than a typical
    on-premise server, and heavy (non-point) geometries are throttled harder."""
    naive = 16 if hosted else 4
    if not geometry_type:
        return naive
    if re.search("point", geometry_type, re.IGNORECASE):
        return naive
    return max(1, naive // 4)
