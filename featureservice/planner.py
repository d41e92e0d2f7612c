from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional

from .errors import PlanningError, PlanningErrorReason, StrategyFailed
from .models import LayerMetadata, PageDescriptor, WholeLayerPage
from .strategies import PagingStrategy

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000
DEFAULT_MAX_PAGE_SIZE = 5000


def page_size(declared: Any, ceiling: Optional[int] = DEFAULT_MAX_PAGE_SIZE) -> int:
    """min(declared, 1000), falling back to 1000, then capped by the caller's ceiling."""
    try:
        size = min(int(float(declared)), DEFAULT_PAGE_SIZE)
    except (TypeError, ValueError, OverflowError):
        size = DEFAULT_PAGE_SIZE
    if size <= 0:
        size = DEFAULT_PAGE_SIZE
    if ceiling and ceiling > 0:
        size = min(size, int(ceiling))
    return size


class PagingPlanner:
    """Turns resolved layer metadata into the list of pages that covers it.

    Strategies are tried in the order given; the first one that is viable
    and builds without raising StrategyFailed wins."""

    def __init__(
        self,
        strategies: Iterable[PagingStrategy],
        max_page_size: int = DEFAULT_MAX_PAGE_SIZE,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._strategies = list(strategies)
        self._max_page_size = max_page_size
        self._log = log or logger

    def plan(self, metadata: LayerMetadata) -> List[PageDescriptor]:
        if self._fits_one_page(metadata):
            self._emit("single_page", metadata, pages=1)
            return [WholeLayerPage()]

        size = page_size(metadata.declared_page_size, self._max_page_size)
        last_error: Optional[StrategyFailed] = None
        attempted = False
        for strat in self._strategies:
            if not strat.is_viable(metadata):
                continue
            attempted = True
            try:
                pages = strat.build(metadata, size)
            except StrategyFailed as exc:
                self._log.warning(
                    json.dumps({"event": "strategy_failed", "strategy": strat.name, "error": str(exc)}, ensure_ascii=False)
                )
                last_error = exc
                continue
            self._emit(strat.name, metadata, pages=len(pages), page_size=size)
            return pages

        if not attempted and not metadata.record_id_field:
            raise PlanningError(
                PlanningErrorReason.NO_IDENTIFIER_FIELD,
                "ObjectID type field not found, unable to page",
            )
        raise PlanningError(
            PlanningErrorReason.ALL_STRATEGIES_EXHAUSTED,
            f"Unable to build pages: {last_error or 'no viable paging strategy'}",
        ) from last_error

    def _fits_one_page(self, metadata: LayerMetadata) -> bool:
        count = metadata.total_count
        declared = metadata.declared_page_size
        if count is None or declared is None:
            return False
        return count < declared and count < self._max_page_size

    def _emit(self, strategy: str, metadata: LayerMetadata, **fields: Any) -> None:
        record = {"event": "plan", "strategy": strategy, "layer": metadata.name, "count": metadata.total_count}
        record.update(fields)
        self._log.info(json.dumps(record, ensure_ascii=False))
