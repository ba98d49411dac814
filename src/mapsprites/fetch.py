"""HTTP retrieval with an on-disk cache.

Cache files are written atomically (temporary file in the target
directory, then ``replace``) so concurrent or interrupted runs never
leave a truncated file behind.
"""
import json
import logging
import pathlib
import tempfile

import requests

from . import config
from .errors import RetrievalError, StorageError

logger = logging.getLogger(__name__)


def atomic_write_bytes(path, data):
    """Write `data` to `path` via a temporary file and an atomic replace."""
    path = pathlib.Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="wb",
            prefix=f".{path.name}.",
            suffix=".tmp",
            dir=path.parent,
            delete=False,
        ) as f:
            f.write(data)
            temp_path = pathlib.Path(f.name)
        temp_path.replace(path)
    except OSError as err:
        raise StorageError(f"Cannot write {path}: {err}") from err


def atomic_write_json(path, obj):
    atomic_write_bytes(path, (json.dumps(obj, indent=2) + "\n").encode("utf-8"))


class ImageFetcher:
    """Fetch image-service descriptors and rasters over HTTP.

    Parameters
    ----------
    session : requests.Session, optional
        Session to reuse connections. A new one is created if omitted.
    timeout : float, optional
        Request timeout in seconds. If None, uses settings.
    """

    def __init__(self, session=None, timeout=None):
        self.session = session or requests.Session()
        self.timeout = timeout if timeout is not None else config.get("timeout")

    def fetch(self, url):
        """Download `url` and return the response body.

        Raises
        ------
        RetrievalError
            On connection failures, timeouts and non-success responses.
        """
        logger.debug("GET %s", url)
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as err:
            raise RetrievalError(f"Failed to fetch {url}: {err}") from err
        return response.content

    def fetch_cached(self, url, cache_path):
        """Return `url` from `cache_path`, downloading it on a cache miss."""
        cache_path = pathlib.Path(cache_path)
        if cache_path.is_file():
            logger.debug("Cache hit %s", cache_path)
            return cache_path.read_bytes()
        logger.info("Downloading %s", url)
        data = self.fetch(url)
        atomic_write_bytes(cache_path, data)
        return data

    def fetch_json(self, url, cache_path=None):
        """Fetch and decode a JSON document, optionally through the cache."""
        if cache_path is None:
            data = self.fetch(url)
        else:
            data = self.fetch_cached(url, cache_path)
        try:
            return json.loads(data)
        except ValueError as err:
            if cache_path is not None:
                pathlib.Path(cache_path).unlink(missing_ok=True)
            raise RetrievalError(f"{url} did not return valid JSON") from err
