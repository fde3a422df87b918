"""Turn a raw HTTP response into an immutable :class:`FetchResult`.

All cache metadata is derived once, from the response headers, when the
result is built:

* ``valid_until``: receipt time plus the lifetime read from ``Cache-Control``
  (``no-cache`` means zero, ``max-age=N`` means N seconds, otherwise the
  configured default of seven days). Directives apply left to right and the
  last one that parses wins.
* ``revalidation_token``: the raw ``ETag`` value, or ``None``.
* ``file_extension``: the registry extension for the ``Content-Type`` media
  type, or ``""``.

Malformed headers never raise; they fall back to the defaults above.
"""

import logging
import mimetypes
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Mapping, Optional

from urllib3 import HTTPHeaderDict

from .config import DEFAULT_MAX_AGE
from .stream import ContentStream
from .types import FetchResult, MimeRegistry


logger = logging.getLogger(__name__)

_MAX_AGE_RE = re.compile(r"max-age=([+-]?[0-9]+)")

# Built-in table only, so the host's mime.types files do not change results.
DEFAULT_MIME_REGISTRY: MimeRegistry = mimetypes.MimeTypes()


def _as_headers(headers: Optional[Mapping[str, str]]) -> HTTPHeaderDict:
    if isinstance(headers, HTTPHeaderDict):
        return headers
    return HTTPHeaderDict(headers or {})


def freshness_lifetime(cache_control: Optional[str], default: timedelta = DEFAULT_MAX_AGE) -> timedelta:
    age = default
    if cache_control is None:
        return age
    for setting in cache_control.split(","):
        directive = setting.strip().lower()
        if directive == "no-cache":
            age = timedelta(0)
            continue
        m = _MAX_AGE_RE.fullmatch(directive)
        if m:
            seconds = int(m.group(1))
            if seconds > 0:
                try:
                    age = timedelta(seconds=seconds)
                except OverflowError:
                    # Beyond timedelta range; ignored like any unparsable value.
                    continue
    return age


def compute_valid_until(
    headers: Optional[Mapping[str, str]],
    received_at: datetime,
    default: timedelta = DEFAULT_MAX_AGE,
) -> datetime:
    lifetime = freshness_lifetime(_as_headers(headers).get("Cache-Control"), default)
    try:
        return received_at + lifetime
    except OverflowError:
        # Past the last representable instant; clamp.
        return datetime.max.replace(tzinfo=received_at.tzinfo)


def revalidation_token(headers: Optional[Mapping[str, str]]) -> Optional[str]:
    return _as_headers(headers).get("ETag")


def media_type(content_type: Optional[str]) -> str:
    """Return the lower-cased ``type/subtype`` part of a Content-Type value."""
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def file_extension(content_type: Optional[str], registry: Optional[MimeRegistry] = None) -> str:
    mtype = media_type(content_type)
    if not mtype:
        return ""
    registry = registry or DEFAULT_MIME_REGISTRY
    return registry.guess_extension(mtype) or ""


def content_length(headers: Optional[Mapping[str, str]], decoded: bool = True) -> Optional[int]:
    h = _as_headers(headers)
    if decoded and h.get("Content-Encoding", "identity").strip().lower() != "identity":
        # The stream yields decoded bytes; the announced length is for the encoded body.
        return None
    raw = h.get("Content-Length")
    if raw is None:
        return None
    raw = raw.strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    return int(raw)


def revalidation_headers(result: FetchResult) -> Dict[str, str]:
    """Headers for a conditional re-fetch of the resource behind ``result``."""
    if result.revalidation_token is None:
        return {}
    return {"If-None-Match": result.revalidation_token}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def wrap_response(
    response,
    received_at: Optional[datetime] = None,
    *,
    url: str = "",
    chunk_size: int = 64 * 1024,
    default_max_age: timedelta = DEFAULT_MAX_AGE,
    registry: Optional[MimeRegistry] = None,
    decode_content: bool = True,
    on_chunk: Optional[Callable[[int], None]] = None,
) -> FetchResult:
    """Build a :class:`FetchResult` from a streamed urllib3-style response.

    ``response`` needs ``status``, ``headers``, ``stream(chunk_size)``,
    ``close()`` and ``release_conn()``. Its body must not have been preloaded.
    """
    if received_at is None:
        received_at = utc_now()

    def on_close(completed: bool) -> None:
        if not completed:
            response.close()
        response.release_conn()

    try:
        headers = _as_headers(response.headers)
        length = content_length(headers, decoded=decode_content)
        status_code = int(response.status)
        valid_until = compute_valid_until(headers, received_at, default_max_age)
        token = revalidation_token(headers)
        extension = file_extension(headers.get("Content-Type"), registry)
    except Exception:
        # Nobody else owns the body yet.
        on_close(False)
        raise

    result = FetchResult(
        content=ContentStream(
            response.stream(chunk_size, decode_content=decode_content),
            on_close=on_close,
            url=url,
            on_chunk=on_chunk,
        ),
        content_length=length,
        status_code=status_code,
        valid_until=valid_until,
        revalidation_token=token,
        file_extension=extension,
        received_at=received_at,
    )
    logger.debug(
        "Wrapped %s: status=%d valid_until=%s etag=%s ext=%r",
        url or "response",
        result.status_code,
        result.valid_until.isoformat(),
        result.revalidation_token,
        result.file_extension,
    )
    return result
