from __future__ import annotations

import gzip
import json
import re
import zlib
from typing import Any, Optional

from .errors import DecodeError
from .models import RawResponse

# Bare NaN/Infinity tokens outside of strings. ArcGIS emits these for
# empty numeric statistics and some attribute values.
_NON_FINITE_RE = re.compile(r'("(?:[^"\\]|\\.)*")|(-?Infinity|NaN)\b')
_STARTS_LIKE_JSON_RE = re.compile(r"^\s*[\[{]")


def decompress(body: bytes, content_encoding: str = "identity") -> bytes:
    """Undo a Content-Encoding. Handles identity, gzip and deflate (zlib or raw)."""
    encoding = (content_encoding or "identity").strip().lower()
    if encoding in ("", "identity"):
        return body
    try:
        if encoding in ("gzip", "x-gzip"):
            return gzip.decompress(body)
        if encoding == "deflate":
            try:
                return zlib.decompress(body)
            except zlib.error:
                return zlib.decompress(body, -zlib.MAX_WBITS)
    except (OSError, EOFError, zlib.error) as exc:
        raise DecodeError(DecodeError.MALFORMED, f"Failed to decompress {encoding} response: {exc}") from exc
    raise DecodeError(DecodeError.MALFORMED, f"Unsupported content encoding: {content_encoding}")


def normalize_non_finite(text: str) -> str:
    """Replace bare NaN / Infinity / -Infinity tokens with null, leaving strings alone."""

    def _sub(match: "re.Match[str]") -> str:
        if match.group(1) is not None:
            return match.group(1)
        return "null"

    return _NON_FINITE_RE.sub(_sub, text)


def decode(body: bytes, content_encoding: str = "identity") -> Any:
    """Turn a raw response body into parsed JSON.

    Raises DecodeError("empty") for a blank body and DecodeError("malformed")
    for anything that is not JSON, calling out HTML/plain text separately."""
    raw = decompress(body or b"", content_encoding)
    text = raw.decode("utf-8", errors="replace")
    if not text.strip():
        raise DecodeError(DecodeError.EMPTY, "Received an empty response body")
    try:
        return json.loads(normalize_non_finite(text))
    except ValueError as exc:
        if not _STARTS_LIKE_JSON_RE.match(text):
            raise DecodeError(
                DecodeError.MALFORMED,
                "Received HTML or plain text when expecting JSON",
                body=text[:1000],
            ) from exc
        raise DecodeError(DecodeError.MALFORMED, "Failed to parse server response", body=text[:1000]) from exc


def check_payload(payload: Any, url: Optional[str] = None) -> Any:
    """Raise if a JSON body is missing or carries an embedded {"error": ...} object."""
    if payload is None:
        raise DecodeError(DecodeError.EMPTY, "Response contained no JSON payload", url=url, code=500)
    # any error member counts, including an empty {}
    if isinstance(payload, dict) and payload.get("error") is not None:
        error = payload["error"]
        code = error.get("code") if isinstance(error, dict) else None
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise DecodeError(
            DecodeError.SERVER_ERROR,
            f"Server returned an error: {message or 'unknown error'}",
            url=url,
            code=code or 500,
            body=error,
        )
    return payload


def parse_response(raw: RawResponse) -> Any:
    """decode() + check_payload() for a transport response.

    A 4xx/5xx status with an otherwise clean JSON body is still a server error."""
    try:
        payload = decode(raw.body, raw.content_encoding)
    except DecodeError as exc:
        exc.url = exc.url or raw.url
        exc.code = exc.code or raw.status_code
        raise
    check_payload(payload, url=raw.url)
    if raw.status_code is not None and raw.status_code >= 400:
        raise DecodeError(
            DecodeError.SERVER_ERROR,
            f"Server responded with HTTP {raw.status_code}",
            url=raw.url,
            code=raw.status_code,
            body=payload,
        )
    return payload
