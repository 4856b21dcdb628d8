"""Dropbox Paper API client: doc listing and HTML export download."""

import json
import logging
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests
import urllib3
from requests.adapters import HTTPAdapter

from .fetchers.errors import ApiError, ServiceUnavailableError, TransientError
from .models import PaperDocument

logger = logging.getLogger('paper_dump.client')

DEFAULT_API_BASE_URL = "https://api.dropboxapi.com/2"
LIST_PAGE_SIZE = 1000


class PaperClient:
    """Dropbox Paper REST client with bearer authentication and classified errors."""

    def __init__(
        self,
        access_token: str,
        base_url: str = DEFAULT_API_BASE_URL,
        verify_ssl: bool = True,
        timeout: float = 30,
        pool_size: int = 10,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the Paper client.

        Args:
            access_token: OAuth2 bearer token
            base_url: API base URL (e.g., "https://api.dropboxapi.com/2")
            verify_ssl: Whether to verify SSL certificates
            timeout: HTTP request timeout in seconds
            pool_size: Connection pool size; should match the number of document workers
            session: Optional pre-built session (tests)
        """
        if not access_token:
            raise ValueError("An access token is required")

        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout

        self.session = session or requests.Session()
        self.session.headers['Authorization'] = f'Bearer {access_token}'
        self.session.verify = verify_ssl
        if not verify_ssl:
            logger.warning("SSL verification disabled - this is insecure!")
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        # Retries are handled by RetryingFetcher, not by the adapter
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

        logger.debug(f"Paper client configured for {self.base_url} with timeout={timeout}s")

    @classmethod
    def from_config(cls, config: Dict[str, Any], access_token: str) -> 'PaperClient':
        dropbox = config.get('dropbox', {})
        concurrency = config.get('concurrency', {})
        return cls(
            access_token=access_token,
            base_url=dropbox.get('api_base_url', DEFAULT_API_BASE_URL),
            verify_ssl=dropbox.get('verify_ssl', True),
            timeout=dropbox.get('timeout', 30),
            pool_size=concurrency.get('document_workers', 10),
        )

    def _post(self, endpoint: str, **kwargs) -> requests.Response:
        """
        POST to an API endpoint and classify a failed response.

        Raises:
            ApiError: 4xx other than 429; the request itself was rejected
            ServiceUnavailableError: 5xx
            TransientError: 429
            requests.RequestException: transport failures propagate unchanged
        """
        url = urljoin(self.base_url, endpoint)
        start_time = time.time()
        logger.debug(f"API Request: POST {url}")

        response = self.session.post(url, timeout=self.timeout, **kwargs)
        logger.debug(f"API Response: {response.status_code} {url} ({time.time() - start_time:.3f}s)")

        if response.status_code < 400:
            return response

        status = response.status_code
        try:
            if status >= 500:
                # The body is an HTML error page; keep it out of the logs
                raise ServiceUnavailableError(
                    f"{endpoint}: HTTP {status} {response.reason or ''}".rstrip(),
                    status_code=status
                )
            if status == 429:
                raise TransientError(f"{endpoint}: rate limited (HTTP 429)", status_code=status)

            summary = self._error_summary(response)
            raise ApiError(f"{endpoint}: {summary}", status_code=status, summary=summary)
        finally:
            response.close()

    @staticmethod
    def _error_summary(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text[:500]}"
        if isinstance(data, dict):
            return str(data.get('error_summary') or data.get('error') or data)
        return str(data)

    def list_doc_ids(self) -> List[str]:
        """
        Enumerate every Paper doc id visible to the user, following pagination.

        Returns:
            Doc ids in listing order, duplicates removed
        """
        response = self._post('paper/docs/list', json={'limit': LIST_PAGE_SIZE})
        data = response.json()
        doc_ids = list(data.get('doc_ids', []))

        while data.get('has_more'):
            cursor = data['cursor']['value']
            response = self._post('paper/docs/list/continue', json={'cursor': cursor})
            data = response.json()
            doc_ids.extend(data.get('doc_ids', []))
            logger.debug(f"Listed {len(doc_ids)} docs so far...")

        unique_ids = list(dict.fromkeys(doc_ids))
        logger.info(f"Listed {len(unique_ids)} total docs")
        return unique_ids

    def download_doc(self, doc_id: str, export: bool = True) -> PaperDocument:
        """
        Download a Paper doc as HTML.

        Args:
            doc_id: Paper doc id
            export: When False only the export metadata is fetched; the body is empty

        Returns:
            PaperDocument with title, owner and body bytes
        """
        headers = {
            'Dropbox-API-Arg': json.dumps({'doc_id': doc_id, 'export_format': 'html'}),
        }
        if not export:
            headers['Range'] = 'bytes=0-0'

        response = self._post('paper/docs/download', headers=headers, stream=True)
        try:
            try:
                result = json.loads(response.headers.get('Dropbox-API-Result', '{}'))
            except ValueError as e:
                raise ApiError(f"paper/docs/download: malformed Dropbox-API-Result header: {e}")
            body = response.content if export else b""
        finally:
            response.close()

        return PaperDocument(
            doc_id=doc_id,
            title=result.get('title', ''),
            owner=result.get('owner', ''),
            body=body,
            revision=result.get('revision'),
            mime_type=result.get('mime_type'),
        )


__all__ = ['PaperClient', 'DEFAULT_API_BASE_URL']
