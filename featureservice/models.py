from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_OUT_SR = 4326

# Parameters every feature page request carries regardless of strategy.
_PAGE_QUERY = {
    "outFields": "*",
    "returnGeometry": "true",
    "geometry": "",
    "geometryPrecision": "",
    "f": "json",
}


@dataclass(frozen=True)
class ServiceOptions:
    layer: Optional[int] = None
    max_page_size: int = 5000
    max_concurrency: Optional[int] = None
    backoff_unit: float = 1.0
    request_timeout: float = 90.0
    impersonate: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    out_sr: int = DEFAULT_OUT_SR


@dataclass(frozen=True)
class LayerMetadata:
    record_id_field: Optional[str]
    declared_page_size: Optional[int]
    supports_offset_paging: bool
    supports_statistics: bool
    is_legacy_server: bool
    total_count: Optional[int]
    geometry_type: Optional[str] = None
    name: Optional[str] = None
    layer_info: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class IdRange:
    min: int
    max: int

    def __post_init__(self) -> None:
        if self.min > self.max:
            raise ValueError(f"IdRange min {self.min} is greater than max {self.max}")


@dataclass(frozen=True)
class PageDescriptor:
    """One page's request parameters. Subclasses pick the paging mechanism."""

    def where(self) -> str:
        return "1=1"

    def extra_params(self) -> Dict[str, Any]:
        return {}

    def query_params(self, out_sr: int = DEFAULT_OUT_SR) -> Dict[str, Any]:
        params: Dict[str, Any] = {"where": self.where(), "outSR": out_sr}
        params.update(_PAGE_QUERY)
        params.update(self.extra_params())
        return params


@dataclass(frozen=True)
class WholeLayerPage(PageDescriptor):
    pass


@dataclass(frozen=True)
class OffsetPage(PageDescriptor):
    offset: int
    count: int

    @property
    def upper(self) -> int:
        return self.offset + self.count

    def extra_params(self) -> Dict[str, Any]:
        return {"resultOffset": self.offset, "resultRecordCount": self.count}


@dataclass(frozen=True)
class IdRangePage(PageDescriptor):
    field: str
    lo: int
    hi: int

    def where(self) -> str:
        return f"{self.field}>={self.lo} AND {self.field}<={self.hi}"


class TaskState(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED_TERMINAL = "failed_terminal"


@dataclass
class Task:
    descriptor: PageDescriptor
    index: int
    attempt: int = 0
    state: TaskState = TaskState.PENDING


@dataclass
class ThrottleState:
    current: float
    max: int


@dataclass(frozen=True)
class RawResponse:
    body: bytes
    content_encoding: str
    status_code: Optional[int]
    url: str


@dataclass(frozen=True)
class FeaturePage:
    index: int
    descriptor: PageDescriptor
    payload: Any

    @property
    def features(self) -> List[Dict[str, Any]]:
        if isinstance(self.payload, dict):
            return self.payload.get("features") or []
        return []


@dataclass(frozen=True)
class AttemptOutcome:
    index: int
    state: TaskState
    page: Optional[FeaturePage] = None
    error: Optional[Exception] = None
    delay: float = 0.0


@dataclass(frozen=True)
class AttemptRecord:
    index: int
    attempt: int
    success: bool
    latency_ms: int
    error_type: Optional[str]


@dataclass(frozen=True)
class FetchStats:
    total_attempts: int
    success_count: int
    failure_count: int
    timeout_count: int
    retry_count: int
    avg_latency_ms: float
    timestamp: float
