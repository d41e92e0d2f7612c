from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from .errors import PlanningError, PlanningErrorReason, RequestError, StrategyFailed
from .models import IdRange, IdRangePage, LayerMetadata, OffsetPage, PageDescriptor, WholeLayerPage

if TYPE_CHECKING:
    from .service import FeatureService


class PagingStrategy(ABC):
    """One way of splitting a layer into pages.

    The planner asks each strategy in priority order whether it can run
    against the resolved metadata, and moves on to the next one only when
    build() raises StrategyFailed."""

    name = "strategy"

    @abstractmethod
    def is_viable(self, metadata: LayerMetadata) -> bool:
        """Return True if the layer advertises what this strategy needs."""
        raise NotImplementedError

    @abstractmethod
    def build(self, metadata: LayerMetadata, page_size: int) -> List[PageDescriptor]:
        """Return the page descriptors, or raise StrategyFailed."""
        raise NotImplementedError


class OffsetStrategy(PagingStrategy):
    """Server-native paging with resultOffset / resultRecordCount."""

    name = "offset"

    def is_viable(self, metadata: LayerMetadata) -> bool:
        return metadata.supports_offset_paging and bool(metadata.total_count)

    def build(self, metadata: LayerMetadata, page_size: int) -> List[PageDescriptor]:
        return offset_pages(metadata.total_count or 0, page_size)


class StatisticsRangeStrategy(PagingStrategy):
    """Object id ranges derived from a min/max outStatistics query."""

    name = "statistics_range"

    def __init__(self, client: "FeatureService") -> None:
        self._client = client

    def is_viable(self, metadata: LayerMetadata) -> bool:
        return metadata.supports_statistics and bool(metadata.record_id_field)

    def build(self, metadata: LayerMetadata, page_size: int) -> List[PageDescriptor]:
        field = metadata.record_id_field or ""
        try:
            response = self._client.statistics(field, ["min", "max"])
        except RequestError as exc:
            raise StrategyFailed(f"Request for statistics failed: {exc}", url=exc.url, code=exc.code) from exc

        id_range = find_min_max(response, field)
        if id_range is None:
            raise PlanningError(
                PlanningErrorReason.ALL_STRATEGIES_EXHAUSTED,
                f"Statistics query returned no range for {field}",
            )
        return range_pages(field, id_range, page_size)


class IdListStrategy(PagingStrategy):
    """Every object id fetched up front and cut into fixed-size slices."""

    name = "id_list"

    def __init__(self, client: "FeatureService") -> None:
        self._client = client

    def is_viable(self, metadata: LayerMetadata) -> bool:
        return bool(metadata.record_id_field)

    def build(self, metadata: LayerMetadata, page_size: int) -> List[PageDescriptor]:
        try:
            ids = self._client.layer_ids()
        except RequestError as exc:
            raise StrategyFailed(f"Request for object IDs failed: {exc}", url=exc.url, code=exc.code) from exc
        if not ids:
            raise StrategyFailed("Request for object IDs returned no ids")
        return id_pages(metadata.record_id_field or "", ids, page_size)


def offset_pages(total_count: int, page_size: int) -> List[PageDescriptor]:
    n_pages = math.ceil(total_count / page_size)
    if n_pages <= 1:
        return [WholeLayerPage()]
    return [
        OffsetPage(offset=i * page_size, count=min(page_size, total_count - i * page_size))
        for i in range(n_pages)
    ]


def range_pages(field: str, id_range: IdRange, page_size: int) -> List[PageDescriptor]:
    n_pages = max(math.ceil((id_range.max - id_range.min) / page_size), 1)
    pages: List[PageDescriptor] = []
    for i in range(n_pages):
        lo = id_range.min + i * page_size
        # servers reject an upper bound past the real max id, so clamp the last page
        hi = id_range.max if i == n_pages - 1 else id_range.min + (i + 1) * page_size - 1
        pages.append(IdRangePage(field=field, lo=lo, hi=hi))
    return pages


def id_pages(field: str, ids: Sequence[int], page_size: int) -> List[PageDescriptor]:
    ordered = sorted(ids)
    return [
        IdRangePage(field=field, lo=chunk[0], hi=chunk[-1])
        for chunk in (ordered[i:i + page_size] for i in range(0, len(ordered), page_size))
    ]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _pick_stat(attributes: Dict[str, Any], stat: str, field: str) -> tuple[bool, Any]:
    lowered = {str(k).lower(): v for k, v in attributes.items()}
    for key in (f"{stat}_{field}".lower(), stat):
        if key in lowered:
            return True, lowered[key]
    for key, value in lowered.items():
        if key.startswith(stat):
            return True, value
    return False, None


def find_min_max(response: Any, field: str) -> Optional[IdRange]:
    """Pull min/max object ids out of a statistics response.

    Field names are matched loosely since servers differ in casing and
    aliasing. Returns None for a well-formed response that carries no
    values; raises StrategyFailed when nothing usable can be matched."""
    invalid = "Response from statistics was invalid"
    features = response.get("features") if isinstance(response, dict) else None
    if not isinstance(features, list):
        raise StrategyFailed(invalid, body=response)
    if not features:
        return None
    first = features[0]
    attributes = first.get("attributes") if isinstance(first, dict) else None
    if not isinstance(attributes, dict) or not attributes:
        return None

    found_min, low = _pick_stat(attributes, "min", field)
    found_max, high = _pick_stat(attributes, "max", field)
    if not (found_min and found_max):
        values = [v for v in attributes.values() if _is_number(v)]
        if len(values) != 2:
            raise StrategyFailed(invalid, body=response)
        low, high = sorted(values)

    if low is None and high is None:
        return None
    if not (_is_number(low) and _is_number(high)) or low > high:
        raise StrategyFailed(invalid, body=response)
    return IdRange(min=int(low), max=int(high))
