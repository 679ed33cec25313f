import logging
from contextlib import contextmanager
from typing import Iterator, Optional

import requests
from requests.adapters import HTTPAdapter

from .config import APTSYNC_USER_AGENT, CONNECT_TIMEOUT, DOWNLOAD_TIMEOUT
from .errors import OriginError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024**2


class Origin:
    """HTTP access to the upstream repository."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout=(CONNECT_TIMEOUT, DOWNLOAD_TIMEOUT), pool_size: int = 10):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size)
            session.mount('http://', adapter)
            session.mount('https://', adapter)
            session.headers['User-Agent'] = APTSYNC_USER_AGENT
        self.session = session

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    @contextmanager
    def open(self, path: str, chunk_size: int = CHUNK_SIZE) -> Iterator[Iterator[bytes]]:
        """Stream the body of ``path`` as an iterator of byte chunks.

        The connection is released when the context exits, whether or not
        the body was read to the end.
        """
        url = self.url_for(path)
        logger.debug("GET %s", url)
        try:
            r = self.session.get(url, stream=True, timeout=self.timeout)
        except requests.RequestException as e:
            raise OriginError(f"Failed to fetch {url}: {e}") from e
        with r:
            if not r.ok:
                raise OriginError(f"Failed to fetch {url}: HTTP {r.status_code}")
            yield self._iter_body(r, url, chunk_size)

    @staticmethod
    def _iter_body(r: requests.Response, url: str, chunk_size: int) -> Iterator[bytes]:
        try:
            for chunk in r.iter_content(chunk_size=chunk_size):
                if not chunk:
                    continue  # filter out keep-alive new chunks
                yield chunk
        except requests.RequestException as e:
            raise OriginError(f"Error while reading {url}: {e}") from e
