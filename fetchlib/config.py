from dataclasses import dataclass
from datetime import timedelta


DEFAULT_USER_AGENT = "fetchlib/1.0 (+https://example.com; contact: fetchlib@example.com)"

# Retention applied when a response carries no usable cache-control directive.
DEFAULT_MAX_AGE = timedelta(days=7)


@dataclass(frozen=True)
class FetchConfig:
    user_agent: str = DEFAULT_USER_AGENT
    connect_timeout: float = 5.0
    read_timeout: float = 15.0
    num_pools: int = 8
    max_connections: int = 16
    max_redirects: int = 5
    chunk_size: int = 64 * 1024
    default_max_age: timedelta = DEFAULT_MAX_AGE
    decode_content: bool = True
