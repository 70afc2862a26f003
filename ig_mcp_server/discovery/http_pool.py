"""
Pooled HTTP sessions for package index lookups.
"""

import threading
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ig_mcp_server import __version__

DEFAULT_TIMEOUT = 5.0
USER_AGENT = f"ig-mcp-server/{__version__}"

_lock = threading.Lock()
_sessions: dict[str, requests.Session] = {}


def _origin(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def _index_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})

    # Index lookups are read-only; rate limiting and gateway errors are retried
    adapter = HTTPAdapter(
        max_retries=Retry(
            total=3,
            backoff_factor=0.5,
            status_forcelist=[429, 502, 503, 504],
            allowed_methods=["GET"],
            respect_retry_after_header=True,
            raise_on_status=False,
        ),
        pool_connections=4,
        pool_maxsize=4,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def get_session(url: str) -> requests.Session:
    """Shared session for the origin (scheme + host) of `url`.

    Callers pass DEFAULT_TIMEOUT per request.
    """
    origin = _origin(url)
    with _lock:
        session = _sessions.get(origin)
        if session is None:
            session = _sessions[origin] = _index_session()
        return session


def close_all() -> None:
    with _lock:
        for session in _sessions.values():
            session.close()
        _sessions.clear()
