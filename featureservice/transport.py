from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

import requests
import urllib3
from curl_cffi import requests as curl_requests
from curl_cffi.requests import exceptions as curl_exceptions

from .errors import TransportError
from .models import RawResponse

USER_AGENT = "featureservice-python"
DEFAULT_TIMEOUT = 90.0


class BaseTransport(ABC):
    """Performs one HTTP GET and hands back the undecoded body.

    Subclasses only implement _send(); failures must surface as
    TransportError with kind "timeout" or "connection"."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, headers: Optional[Mapping[str, str]] = None) -> None:
        self._timeout = timeout
        self._headers: Dict[str, str] = {"User-Agent": USER_AGENT}
        self._headers.update(headers or {})

    def fetch(self, url: str, params: Optional[Mapping[str, Any]] = None) -> RawResponse:
        self.validate(url)
        return self._send(url, dict(params or {}))

    def validate(self, url: str) -> None:
        if not url:
            raise ValueError("url is required")

    @property
    def timeout(self) -> float:
        return self._timeout

    @abstractmethod
    def _send(self, url: str, params: Dict[str, Any]) -> RawResponse:
        ...


class RequestsTransport(BaseTransport):
    """Plain requests transport. Leaves Content-Encoding to the codec."""

    def _send(self, url: str, params: Dict[str, Any]) -> RawResponse:
        headers = dict(self._headers)
        headers.setdefault("Accept-Encoding", "gzip, deflate")
        try:
            resp = requests.get(url, params=params or None, headers=headers, timeout=self._timeout, stream=True)
            try:
                body = resp.raw.read(decode_content=False)
            finally:
                resp.close()
        except (requests.Timeout, urllib3.exceptions.ReadTimeoutError) as exc:
            raise TransportError(TransportError.TIMEOUT, f"Request timed out: {exc}", url=url) from exc
        except (requests.RequestException, urllib3.exceptions.HTTPError) as exc:
            raise TransportError(TransportError.CONNECTION, f"Request failed: {exc}", url=url) from exc

        return RawResponse(
            body=body or b"",
            content_encoding=resp.headers.get("Content-Encoding", "identity"),
            status_code=resp.status_code,
            url=resp.url or url,
        )


class CurlTransport(BaseTransport):
    """curl_cffi transport impersonating a browser TLS fingerprint.

    Some gateways in front of ArcGIS servers reject non-browser clients.
    libcurl decompresses the body itself, so the result is always identity."""

    def __init__(self, impersonate: str = "chrome120", *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._impersonate = impersonate

    def _send(self, url: str, params: Dict[str, Any]) -> RawResponse:
        # Sessions are not shared between worker threads.
        session = curl_requests.Session()
        try:
            resp = session.get(
                url,
                params=params or None,
                headers=self._headers,
                impersonate=self._impersonate,
                timeout=self._timeout,
            )
        except curl_exceptions.Timeout as exc:
            raise TransportError(TransportError.TIMEOUT, f"Request timed out: {exc}", url=url) from exc
        except curl_exceptions.RequestException as exc:
            raise TransportError(TransportError.CONNECTION, f"Request failed: {exc}", url=url) from exc
        finally:
            session.close()

        return RawResponse(
            body=resp.content or b"",
            content_encoding="identity",
            status_code=resp.status_code,
            url=str(resp.url or url),
        )
