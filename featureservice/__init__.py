"""Paged download of ArcGIS FeatureServer / MapServer layers.

Works out how a layer can be split into pages (native offsets, object id
ranges from statistics, or the full object id list), then fetches the pages
on an adaptively throttled thread pool with per-page retries.

Key modules:
    service         -- FeatureService handle (metadata accessors, plan, fetch_all)
    metadata        -- MetadataResolver for memoized layer capabilities
    planner         -- PagingPlanner trying strategies in priority order
    strategies      -- PagingStrategy and the offset / statistics / id-list strategies
    controller      -- PageQueue, the throttled execution queue
    throttle        -- ThrottleController for adaptive concurrency
    executor        -- RequestExecutor running one attempt with retry policy
    backoff         -- LinearBackoff retry delays
    transport       -- BaseTransport, RequestsTransport, CurlTransport
    factory         -- TransportFactory choosing a transport from options
    codec           -- response decompression, JSON decoding and error checks
    metrics         -- MetricsCollector for per-attempt statistics
    storage         -- StorageBase and JsonlStorage output sinks
    models          -- dataclasses shared by the modules above
    errors          -- exception hierarchy
    utils           -- url parsing and concurrency defaults
"""
from .errors import (
    DecodeError,
    FeatureServiceError,
    MetadataError,
    MetadataErrorReason,
    PagingAborted,
    PlanningError,
    PlanningErrorReason,
    TransportError,
)
from .models import FeaturePage, LayerMetadata, ServiceOptions
from .service import FeatureService

__all__ = [
    "DecodeError",
    "FeaturePage",
    "FeatureService",
    "FeatureServiceError",
    "LayerMetadata",
    "MetadataError",
    "MetadataErrorReason",
    "PagingAborted",
    "PlanningError",
    "PlanningErrorReason",
    "ServiceOptions",
    "TransportError",
]
