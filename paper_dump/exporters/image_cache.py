"""Content-addressed on-disk cache of images referenced by exported docs."""

import base64
import errno
import hashlib
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import requests
import urllib3
from requests.adapters import HTTPAdapter

from ..fetchers.errors import ApiError, FetcherError, ServiceUnavailableError, TransientError
from ..fetchers.retrying_fetcher import RetryingFetcher
from ..models import ImageEntry

logger = logging.getLogger('paper_dump.exporters.image_cache')

CHUNK_SIZE = 64 * 1024


class ImageCacheError(Exception):
    """Resolving one image failed; the reference is left untouched."""
    pass


def hash_locator(url: str) -> str:
    """Fixed-length, filesystem-safe SHA-256 digest of ``url``."""
    digest = hashlib.sha256(url.encode('utf-8')).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')


def cache_filename(url: str) -> Tuple[str, str]:
    """
    Derive the cache file name for ``url``.

    Returns:
        Tuple of (readable name ``<base>__<hash>.<ext>``, hash-only fallback name)

    Raises:
        ImageCacheError: If ``url`` is not an absolute http(s) URL
    """
    parsed = urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ImageCacheError(f"invalid url {url}")

    digest = hash_locator(url)
    last_segment = parsed.path.rsplit('/', 1)[-1]

    base, dot, ext = last_segment.rpartition('.')
    if dot:
        return f"{base}__{digest}.{ext}", digest
    return f"{last_segment}__{digest}", digest


def build_image_session(verify_ssl: bool = True, pool_size: int = 10) -> requests.Session:
    """Unauthenticated session for image downloads, pooled for ``pool_size`` concurrent workers."""
    session = requests.Session()
    session.verify = verify_ssl
    if not verify_ssl:
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    # Retries are handled by RetryingFetcher, not by the adapter
    adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class ImageCache:
    """
    Maps image URLs to files under ``images_dir`` and downloads each URL once.

    Exclusive file creation is the only synchronization: the worker whose
    ``open(..., 'xb')`` succeeds downloads the image; every other caller,
    in this process or a later run, sees ``FileExistsError`` and reuses the
    path without touching the network.
    """

    def __init__(
        self,
        output_dir: Path,
        images_directory: str = 'images',
        session: Optional[requests.Session] = None,
        fetcher: Optional[RetryingFetcher] = None,
        timeout: float = 30
    ):
        """
        Initialize the image cache.

        Args:
            output_dir: Export output directory; returned paths are relative to it
            images_directory: Cache subdirectory name under ``output_dir``
            session: HTTP session used for image downloads
            fetcher: Retry policy for the download request
            timeout: HTTP request timeout in seconds
        """
        self.output_dir = Path(output_dir)
        self.images_directory = images_directory
        self.images_dir = self.output_dir / images_directory
        self.session = session or build_image_session()
        self.fetcher = fetcher or RetryingFetcher()
        self.timeout = timeout

        self._stats_lock = threading.Lock()
        self.stats = {
            'downloaded': 0,
            'reused': 0,
            'failed': 0,
        }

    @classmethod
    def from_config(cls, config: Dict[str, Any], **kwargs) -> 'ImageCache':
        export_config = config.get('export', {})
        if kwargs.get('session') is None:
            kwargs['session'] = build_image_session(
                verify_ssl=config.get('dropbox', {}).get('verify_ssl', True),
                pool_size=config.get('concurrency', {}).get('resource_workers', 10),
            )
        return cls(
            output_dir=Path(export_config.get('output_directory', 'docs')),
            images_directory=export_config.get('images_directory', 'images'),
            timeout=config.get('dropbox', {}).get('timeout', 30),
            **kwargs
        )

    def ensure_directory(self) -> None:
        self.images_dir.mkdir(parents=True, exist_ok=True)

    def resolve(self, url: str, log=None) -> ImageEntry:
        """
        Return the cached copy of ``url``, downloading it on first request.

        Args:
            url: Absolute image URL
            log: Logger-like sink for retry diagnostics

        Returns:
            ImageEntry whose ``cache_path`` is relative to the output directory

        Raises:
            ImageCacheError: If the image could not be cached
        """
        try:
            entry = self._resolve(url, log)
        except ImageCacheError:
            self._count('failed')
            raise
        self._count('downloaded' if entry.downloaded else 'reused')
        return entry

    def _resolve(self, url: str, log) -> ImageEntry:
        filename, fallback = cache_filename(url)

        while True:
            path = self.images_dir / filename
            try:
                handle = open(path, 'xb')
                break
            except FileExistsError:
                return ImageEntry(url, self._relative(filename), downloaded=False)
            except OSError as e:
                # Long readable names can exceed NAME_MAX; the bare hash always fits
                if filename != fallback:
                    logger.debug(
                        f"Cannot create {path} ({errno.errorcode.get(e.errno, e.errno)}); "
                        f"falling back to hash-only name"
                    )
                    filename = fallback
                    continue
                raise ImageCacheError(f"failed to create file {path}: {e}") from e

        completed = False
        try:
            with handle:
                self._download_into(handle, url, log)
            completed = True
        except (FetcherError, OSError, requests.RequestException) as e:
            raise ImageCacheError(f"failed to download {url}: {e}") from e
        finally:
            if not completed:
                path.unlink(missing_ok=True)

        return ImageEntry(url, self._relative(filename), downloaded=True)

    def _download_into(self, handle, url: str, log) -> None:
        response = self.fetcher.fetch(lambda: self._request(url), log=log)
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    handle.write(chunk)
        finally:
            response.close()

    def _request(self, url: str) -> requests.Response:
        """One GET attempt, classified for :class:`RetryingFetcher`."""
        response = self.session.get(url, stream=True, timeout=self.timeout)
        status = response.status_code

        if status >= 400:
            response.close()
            if status >= 500:
                raise ServiceUnavailableError(f"{url}: HTTP {status}", status_code=status)
            if status == 429:
                raise TransientError(f"{url}: rate limited (HTTP 429)", status_code=status)
            raise ApiError(f"failed to fetch {url}: HTTP {status}", status_code=status)

        content_type = response.headers.get('content-type', '')
        if not content_type.startswith('image/'):
            response.close()
            raise ImageCacheError(f"{url}: content type is {content_type!r}")

        return response

    def _relative(self, filename: str) -> str:
        return f"{self.images_directory}/{filename}"

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self.stats[key] += 1

    def get_stats(self) -> Dict[str, int]:
        """Get image cache statistics."""
        with self._stats_lock:
            return self.stats.copy()
