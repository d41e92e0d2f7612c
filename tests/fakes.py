"""In-memory stand-ins for the network used across the test suite."""

import json
import re
import threading

from featureservice.errors import TransportError
from featureservice.models import RawResponse
from featureservice.transport import BaseTransport

SERVER = "https://services1.arcgis.com/abc/arcgis/rest/services/Roads/FeatureServer"
LAYER_URL = SERVER + "/0"
QUERY_URL = LAYER_URL + "/query"

_RANGE_RE = re.compile(r"(\w+)>=(-?\d+) AND \w+<=(-?\d+)")


def json_response(payload, url=QUERY_URL, status=200) -> RawResponse:
    """Wrap a JSON-serialisable payload as an identity-encoded response."""
    return RawResponse(body=json.dumps(payload).encode("utf-8"), content_encoding="identity", status_code=status, url=url)


class FakeTransport(BaseTransport):
    """Transport whose responses come from a handler(url, params) callable.

    The handler may return a RawResponse or an exception instance to raise."""

    def __init__(self, handler):
        super().__init__(timeout=1.0)
        self._handler = handler
        self._lock = threading.Lock()
        self.calls = []

    def _send(self, url, params):
        with self._lock:
            self.calls.append((url, dict(params)))
        result = self._handler(url, params)
        if isinstance(result, Exception):
            raise result
        return result


class FakeLayerServer:
    """Answers layer info, count, statistics, id and page queries for one layer."""

    def __init__(self, ids, info=None, stats_error=False, ids_error=False, stats_attributes=None):
        self.ids = sorted(ids)
        self.info = info if info is not None else {
            "name": "Roads",
            "currentVersion": 10.81,
            "objectIdField": "OBJECTID",
            "maxRecordCount": 1000,
            "geometryType": "esriGeometryPolyline",
            "supportsStatistics": True,
            "advancedQueryCapabilities": {"supportsPagination": False},
        }
        self.stats_error = stats_error
        self.ids_error = ids_error
        self.stats_attributes = stats_attributes

    def __call__(self, url, params):
        if url == LAYER_URL:
            return json_response(self.info, url=url)
        if url != QUERY_URL:
            return TransportError(TransportError.CONNECTION, f"unexpected url {url}", url=url)
        if params.get("returnCountOnly") == "true":
            return json_response({"count": len(self.ids)})
        if params.get("returnIdsOnly") == "true":
            if self.ids_error:
                return json_response({"error": {"code": 500, "message": "ids unavailable"}})
            return json_response({"objectIdFieldName": "OBJECTID", "objectIds": list(reversed(self.ids))})
        if "outStatistics" in params:
            if self.stats_error:
                return json_response({"error": {"code": 400, "message": "statistics unsupported"}})
            attributes = self.stats_attributes
            if attributes is None:
                attributes = {"MIN_OBJECTID": self.ids[0], "MAX_OBJECTID": self.ids[-1]}
            return json_response({"features": [{"attributes": attributes}]})
        return json_response({"features": [{"attributes": {"OBJECTID": i}} for i in self.select(params)]})

    def select(self, params):
        if "resultOffset" in params:
            offset = int(params["resultOffset"])
            return self.ids[offset:offset + int(params["resultRecordCount"])]
        match = _RANGE_RE.search(params.get("where", ""))
        if match:
            lo, hi = int(match.group(2)), int(match.group(3))
            return [i for i in self.ids if lo <= i <= hi]
        return list(self.ids)
