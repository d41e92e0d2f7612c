from __future__ import annotations

import time
from enum import Enum
from typing import Any, Optional


class MetadataErrorReason(str, Enum):
    UNREACHABLE = "unreachable"
    INVALID_PAYLOAD = "invalid_payload"
    ZERO_COUNT = "zero_count"


class PlanningErrorReason(str, Enum):
    NO_IDENTIFIER_FIELD = "no_identifier_field"
    ALL_STRATEGIES_EXHAUSTED = "all_strategies_exhausted"


class FeatureServiceError(Exception):
    """Base class for every error raised by this package.

    Carries the request url (when known), a numeric code in the style of
    the server's own error objects, the raw error body and a timestamp."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        code: Optional[int] = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.code = code
        self.body = body
        self.timestamp = time.time()


class MetadataError(FeatureServiceError):
    def __init__(self, reason: MetadataErrorReason, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason


class PlanningError(FeatureServiceError):
    def __init__(self, reason: PlanningErrorReason, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.reason = reason


class RequestError(FeatureServiceError):
    """A single request failed; retryable at the page level."""

    kind = "request"


class TransportError(RequestError):
    TIMEOUT = "timeout"
    CONNECTION = "connection"

    def __init__(self, kind: str, message: str, **kwargs: Any) -> None:
        if kind == self.TIMEOUT and kwargs.get("code") is None:
            kwargs["code"] = 504
        super().__init__(message, **kwargs)
        self.kind = kind


class DecodeError(RequestError):
    EMPTY = "empty"
    MALFORMED = "malformed"
    SERVER_ERROR = "server_error"

    def __init__(self, kind: str, message: str, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.kind = kind


class StrategyFailed(FeatureServiceError):
    """Raised by a paging strategy to hand over to the next one."""


class PagingAborted(FeatureServiceError):
    """The page queue gave up after a page exhausted its retries.

    Pages yielded before this was raised are valid; the enumeration is
    incomplete."""

    @classmethod
    def from_error(cls, error: FeatureServiceError) -> "PagingAborted":
        aborted = cls(
            f"Paging aborted: {error}",
            url=error.url,
            code=error.code,
            body=error.body,
        )
        aborted.__cause__ = error
        return aborted
