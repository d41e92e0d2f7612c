from __future__ import annotations

from typing import Optional

from .models import ServiceOptions
from .transport import BaseTransport, CurlTransport, RequestsTransport


class TransportFactory:
    """Builds the transport a service handle talks through.

    - requests by default; curl_cffi when options.impersonate names a browser.
    - The built transport is cached: both implementations open a fresh
      connection per call, so one instance is safe to share across workers.
    """

    def __init__(self, options: ServiceOptions) -> None:
        self._options = options
        self._cache: Optional[BaseTransport] = None

    def create_transport(self) -> BaseTransport:
        if self._cache is not None:
            return self._cache

        opts = self._options
        if opts.impersonate:
            transport: BaseTransport = CurlTransport(
                impersonate=opts.impersonate,
                timeout=opts.request_timeout,
                headers=opts.headers,
            )
        else:
            transport = RequestsTransport(timeout=opts.request_timeout, headers=opts.headers)

        self._cache = transport
        return transport
