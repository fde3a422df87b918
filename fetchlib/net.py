import logging
import time
from datetime import datetime
from typing import Callable, Mapping, Optional

import urllib3
from urllib3 import HTTPHeaderDict
from urllib3 import exceptions as urllib3_exc
from urllib3.util import parse_url
from urllib3.util.retry import Retry

from .adapter import utc_now, wrap_response
from .config import FetchConfig
from .exceptions import InvalidUrlError, TransportError
from .metrics import Metrics
from .types import FetchRequest, FetchResult, MimeRegistry


logger = logging.getLogger(__name__)


def _check_url(url: str) -> None:
    try:
        parsed = parse_url(url)
    except urllib3_exc.LocationParseError as e:
        raise InvalidUrlError(url) from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidUrlError(url)


class HttpFetchService:
    """Default FetchService: one streamed GET per call, no retries."""

    def __init__(
        self,
        config: FetchConfig | None = None,
        http: urllib3.PoolManager | None = None,
        clock: Callable[[], datetime] | None = None,
        registry: MimeRegistry | None = None,
        metrics: Metrics | None = None,
    ):
        self.config = config or FetchConfig()
        self.timeout = urllib3.Timeout(connect=self.config.connect_timeout, read=self.config.read_timeout)
        self.http = http or urllib3.PoolManager(
            num_pools=self.config.num_pools,
            maxsize=self.config.max_connections,
        )
        self.retries = Retry(
            total=None,
            connect=0,
            read=0,
            status=0,
            other=0,
            redirect=self.config.max_redirects,
            raise_on_redirect=False,
            raise_on_status=False,
        )
        self._clock = clock or utc_now
        self.registry = registry
        self.metrics = metrics

    def _request_headers(self, request: FetchRequest) -> HTTPHeaderDict:
        headers = HTTPHeaderDict(request.headers)
        if "User-Agent" not in headers:
            headers["User-Agent"] = self.config.user_agent
        return headers

    def send(self, request: FetchRequest) -> FetchResult:
        _check_url(request.url)
        logger.debug("GET %s", request.url)
        t0 = time.perf_counter()
        try:
            response = self.http.request(
                "GET",
                request.url,
                headers=self._request_headers(request),
                timeout=self.timeout,
                retries=self.retries,
                preload_content=False,
                decode_content=self.config.decode_content,
            )
        except urllib3_exc.HTTPError as e:
            if self.metrics:
                self.metrics.record_fetch(False, (time.perf_counter() - t0) * 1000.0)
            logger.warning("Transport error for %s: %s", request.url, e)
            raise TransportError(request.url, e) from e
        # Headers are available now; this instant anchors valid_until.
        received_at = self._clock()
        if self.metrics:
            self.metrics.record_fetch(True, (time.perf_counter() - t0) * 1000.0)
        logger.debug("Response %d for %s", response.status, request.url)
        return wrap_response(
            response,
            received_at,
            url=request.url,
            chunk_size=self.config.chunk_size,
            default_max_age=self.config.default_max_age,
            registry=self.registry,
            decode_content=self.config.decode_content,
            on_chunk=self.metrics.record_bytes if self.metrics else None,
        )

    def fetch(self, url: str, headers: Optional[Mapping[str, str]] = None) -> FetchResult:
        return self.send(FetchRequest(url, headers or {}))

    def close(self) -> None:
        self.http.clear()

    def __enter__(self) -> "HttpFetchService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
