from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence

from .backoff import LinearBackoff
from .codec import parse_response
from .controller import PageQueue
from .errors import DecodeError
from .executor import RequestExecutor
from .factory import TransportFactory
from .metadata import MetadataResolver
from .metrics import MetricsCollector
from .models import FeaturePage, LayerMetadata, PageDescriptor, ServiceOptions
from .planner import PagingPlanner
from .strategies import IdListStrategy, OffsetStrategy, PagingStrategy, StatisticsRangeStrategy
from .throttle import ThrottleController
from .transport import BaseTransport
from .utils import default_concurrency, parse_url, sanitize_layer

logger = logging.getLogger(__name__)


class FeatureService:
    """Handle on one layer of an ArcGIS FeatureServer or MapServer.

    Usage:
        service = FeatureService("https://.../FeatureServer/0")
        for page in service.fetch_all():
            handle(page.features)

    fetch_all() resolves metadata and plans pages before returning, so
    MetadataError and PlanningError surface immediately. Iterating the
    returned generator runs the page queue and may raise PagingAborted.
    """

    def __init__(
        self,
        url: str,
        options: Optional[ServiceOptions] = None,
        transport: Optional[BaseTransport] = None,
        log: Optional[logging.Logger] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        parsed = parse_url(url)
        self.options = options or ServiceOptions()
        self.server = parsed.server
        self.hosted = parsed.hosted

        layer = sanitize_layer(self.options.layer) if self.options.layer is not None else None
        if layer is None:
            layer = parsed.layer if parsed.layer is not None else 0
        self.layer = layer

        self._log = log or logger
        self._transport = transport or TransportFactory(self.options).create_transport()
        self.metrics = metrics or MetricsCollector()
        self._resolver = MetadataResolver(self, log=self._log)
        self._service_info: Optional[Dict[str, Any]] = None

    @property
    def layer_url(self) -> str:
        return f"{self.server}/{self.layer}"

    @property
    def query_url(self) -> str:
        return f"{self.layer_url}/query"

    def request(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """One GET returning parsed JSON; embedded server errors raise DecodeError."""
        return parse_response(self._transport.fetch(url, params))

    def service_info(self) -> Dict[str, Any]:
        if self._service_info is None:
            self._service_info = self.request(self.server, {"f": "json"})
        return self._service_info

    def layer_info(self) -> Dict[str, Any]:
        return self.request(self.layer_url, {"f": "json"})

    def feature_count(self) -> int:
        payload = self.request(self.query_url, {"where": "1=1", "returnCountOnly": "true", "f": "json"})
        count = payload.get("count") if isinstance(payload, dict) else None
        if isinstance(count, bool) or not isinstance(count, int):
            raise DecodeError(DecodeError.MALFORMED, "Response did not contain a feature count", url=self.query_url)
        return count

    def statistics(self, field: str, stats: Sequence[str]) -> Any:
        out_statistics = [
            {"statisticType": stat, "onStatisticField": field, "outStatisticFieldName": f"{stat}_{field}"}
            for stat in stats
        ]
        params = {
            "f": "json",
            "outFields": "",
            "outStatistics": json.dumps(out_statistics, separators=(",", ":")),
        }
        return self.request(self.query_url, params)

    def layer_ids(self) -> List[int]:
        payload = self.request(self.query_url, {"where": "1=1", "returnIdsOnly": "true", "f": "json"})
        if not isinstance(payload, dict) or "objectIds" not in payload:
            raise DecodeError(DecodeError.MALFORMED, "Response did not contain objectIds", url=self.query_url)
        return sorted(payload["objectIds"] or [])

    def resolve_metadata(self) -> LayerMetadata:
        return self._resolver.resolve()

    def strategies(self) -> List[PagingStrategy]:
        return [OffsetStrategy(), StatisticsRangeStrategy(self), IdListStrategy(self)]

    def plan(self) -> List[PageDescriptor]:
        planner = PagingPlanner(self.strategies(), max_page_size=self.options.max_page_size, log=self._log)
        return planner.plan(self.resolve_metadata())

    def concurrency(self) -> int:
        if self.options.max_concurrency:
            return max(1, int(self.options.max_concurrency))
        return default_concurrency(self.hosted, self.resolve_metadata().geometry_type)

    def page_queue(self) -> PageQueue:
        executor = RequestExecutor(
            self._transport,
            self.query_url,
            backoff=LinearBackoff(self.options.backoff_unit),
            metrics=self.metrics,
            out_sr=self.options.out_sr,
            log=self._log,
        )
        return PageQueue(executor, ThrottleController(self.concurrency(), log=self._log), log=self._log)

    def fetch_all(self, descriptors: Optional[Sequence[PageDescriptor]] = None) -> Iterator[FeaturePage]:
        pages = list(descriptors) if descriptors is not None else self.plan()
        queue = self.page_queue()
        self._log.info("Fetching %s pages from %s with concurrency %s", len(pages), self.layer_url, queue.throttle.max)
        return queue.submit(pages)

    def features(self) -> Iterator[Dict[str, Any]]:
        for page in self.fetch_all():
            yield from page.features
