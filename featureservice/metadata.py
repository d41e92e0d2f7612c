from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, Optional

from .errors import MetadataError, MetadataErrorReason, RequestError, TransportError
from .models import LayerMetadata

if TYPE_CHECKING:
    from .service import FeatureService

logger = logging.getLogger(__name__)


def object_id_field(info: Dict[str, Any]) -> Optional[str]:
    """objectIdField if declared, else the first esriFieldTypeOID field."""
    if info.get("objectIdField"):
        return info["objectIdField"]
    for field in info.get("fields") or []:
        if isinstance(field, dict) and field.get("type") == "esriFieldTypeOID":
            return field.get("name")
    return None


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _advanced(info: Dict[str, Any]) -> Dict[str, Any]:
    caps = info.get("advancedQueryCapabilities")
    return caps if isinstance(caps, dict) else {}


class MetadataResolver:
    """Resolves and memoizes the paging-relevant facts about one layer.

    Layers without a currentVersion (ArcGIS Server 10.0 and older) cannot
    answer count queries; for those the count is left unknown."""

    def __init__(self, client: "FeatureService", log: Optional[logging.Logger] = None) -> None:
        self._client = client
        self._log = log or logger
        self._lock = threading.Lock()
        self._metadata: Optional[LayerMetadata] = None

    def resolve(self) -> LayerMetadata:
        with self._lock:
            if self._metadata is None:
                self._metadata = self._resolve()
            return self._metadata

    def _resolve(self) -> LayerMetadata:
        try:
            info = self._client.layer_info()
        except RequestError as exc:
            raise self._error(exc, "Unable to get layer metadata") from exc
        if not isinstance(info, dict):
            raise MetadataError(MetadataErrorReason.INVALID_PAYLOAD, "Unable to get layer metadata: not a JSON object")

        legacy = not info.get("currentVersion")
        count: Optional[int] = None
        if not legacy:
            try:
                count = self._client.feature_count()
            except RequestError as exc:
                raise MetadataError(
                    MetadataErrorReason.UNREACHABLE,
                    f"Request for feature count failed: {exc}",
                    url=exc.url,
                    code=exc.code,
                    body=exc.body,
                ) from exc
            if count < 1:
                raise MetadataError(MetadataErrorReason.ZERO_COUNT, "Service returned count of 0")

        advanced = _advanced(info)
        metadata = LayerMetadata(
            record_id_field=object_id_field(info),
            declared_page_size=_int_or_none(info.get("maxRecordCount")),
            supports_offset_paging=bool(advanced.get("supportsPagination")),
            supports_statistics=bool(info.get("supportsStatistics") or advanced.get("supportsStatistics")),
            is_legacy_server=legacy,
            total_count=count,
            geometry_type=info.get("geometryType"),
            name=info.get("name"),
            layer_info=info,
        )
        self._log.info(
            json.dumps(
                {
                    "event": "metadata",
                    "layer": metadata.name,
                    "oid": metadata.record_id_field,
                    "max_record_count": metadata.declared_page_size,
                    "count": count,
                    "legacy": legacy,
                },
                ensure_ascii=False,
            )
        )
        return metadata

    @staticmethod
    def _error(exc: RequestError, prefix: str) -> MetadataError:
        reason = (
            MetadataErrorReason.UNREACHABLE
            if isinstance(exc, TransportError)
            else MetadataErrorReason.INVALID_PAYLOAD
        )
        return MetadataError(reason, f"{prefix}: {exc}", url=exc.url, code=exc.code, body=exc.body)
