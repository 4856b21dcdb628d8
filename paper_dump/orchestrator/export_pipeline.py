"""
Document export pipeline.

Each doc id moves through download, image extraction, image resolution,
splicing and writing on a fixed-size pool of document workers. Images of
all documents share a second pool. Per-document diagnostics are buffered
and flushed together when the document finishes.
"""

import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

from tqdm import tqdm

from ..exporters.document_writer import DocumentWriter, sanitize_filename
from ..exporters.image_cache import ImageCache
from ..exporters.image_pool import ImagePool
from ..exporters.reference_extractor import ReferenceExtractor
from ..exporters.splicer import splice
from ..fetchers.errors import ApiError, TooManyFailuresError
from ..fetchers.retrying_fetcher import RetryingFetcher
from ..logger import DocumentLog, ProgressTracker
from ..models import DocumentOutcome, ExportRecord, PaperDocument, doc_locator
from .doc_registry import DocRegistry

logger = logging.getLogger('paper_dump.orchestrator.export_pipeline')


class ExportPipeline:
    """Exports Paper docs concurrently, skipping docs already in the registry or on disk."""

    def __init__(
        self,
        config: Dict[str, Any],
        client,
        registry: DocRegistry,
        fetcher: Optional[RetryingFetcher] = None,
        image_cache: Optional[ImageCache] = None,
        image_pool: Optional[ImagePool] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the export pipeline.

        Args:
            config: Configuration dictionary
            client: PaperClient (anything with ``download_doc(doc_id, export)``)
            registry: Registry of previously exported docs; updated in place
            fetcher: Retry policy for doc downloads
            image_cache: Image cache; built from config when omitted
            image_pool: Shared image worker pool; built from config when omitted
            clock: Timestamp source for the export header
            logger: Logger instance
        """
        self.config = config
        self.client = client
        self.registry = registry
        self.logger = logger or logging.getLogger('paper_dump.orchestrator.export_pipeline')

        export_config = config.get('export', {})
        concurrency = config.get('concurrency', {})
        self.output_dir = Path(export_config.get('output_directory', 'docs'))
        self.metadata_only = export_config.get('metadata_only', False)
        self.show_progress = export_config.get('progress_bars', True)
        self.document_workers = concurrency.get('document_workers', 10)

        self.fetcher = fetcher or RetryingFetcher.from_config(config)
        self.image_cache = image_cache or ImageCache.from_config(config, fetcher=self.fetcher)
        self._owns_image_pool = image_pool is None
        self.image_pool = image_pool or ImagePool(
            self.image_cache,
            max_workers=concurrency.get('resource_workers', 10)
        )
        self.extractor = ReferenceExtractor()
        self.writer = DocumentWriter(self.output_dir)
        self.clock = clock

    def prepare_output(self) -> None:
        """Create the output directory, plus the image cache unless running metadata-only."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        if not self.metadata_only:
            self.image_cache.ensure_directory()

    def run(self, doc_ids: Iterable[str]) -> Dict[str, Any]:
        """
        Export every doc id on the document worker pool.

        Returns:
            Outcome counts keyed by DocumentOutcome value
        """
        doc_ids = list(doc_ids)
        self.prepare_output()

        with ProgressTracker(len(doc_ids), "documents") as tracker:
            with ThreadPoolExecutor(
                max_workers=self.document_workers,
                thread_name_prefix='document'
            ) as executor:
                future_to_id = {
                    executor.submit(self.export_document, doc_id): doc_id
                    for doc_id in doc_ids
                }

                futures = as_completed(future_to_id)
                if self._should_show_progress():
                    futures = tqdm(futures, desc="Exporting docs", total=len(future_to_id))

                for future in futures:
                    doc_id = future_to_id[future]
                    try:
                        outcome = future.result()
                    except Exception as e:
                        self.logger.error(f"Unexpected error exporting doc {doc_id}: {e}", exc_info=True)
                        outcome = DocumentOutcome.FAILED
                    tracker.increment(outcome.value)

            stats = tracker.get_stats()

        stats['images'] = self.image_cache.get_stats()
        return stats

    def export_document(self, doc_id: str) -> DocumentOutcome:
        """Export one doc, emitting its buffered log as a single block afterwards."""
        log = DocumentLog(doc_locator(doc_id), logger=self.logger)
        try:
            return self._export_document(doc_id, log)
        finally:
            log.flush()

    def _export_document(self, doc_id: str, log: DocumentLog) -> DocumentOutcome:
        url = doc_locator(doc_id)

        if self.registry.contains(url):
            log.info("already downloaded; skipping")
            return DocumentOutcome.SKIPPED_ALREADY_EXPORTED

        try:
            document = self.fetcher.fetch(
                lambda: self.client.download_doc(doc_id, export=not self.metadata_only),
                log=log
            )
        except ApiError:
            # Already logged by the fetcher
            return DocumentOutcome.FAILED
        except TooManyFailuresError:
            log.error("too many errors; skipping doc")
            return DocumentOutcome.FAILED

        log.info("title: %s", document.title)
        log.info("owner: %s", document.owner)

        if self.metadata_only:
            return DocumentOutcome.METADATA_ONLY

        filename = sanitize_filename(document.title, doc_id)
        try:
            reservation = self.writer.reserve(filename)
        except FileExistsError:
            log.info("file already downloaded; skipping")
            return DocumentOutcome.SKIPPED_ALREADY_ON_DISK
        except OSError as e:
            log.error("failed to create file %s: %s", self.output_dir / filename, e)
            return DocumentOutcome.FAILED

        with reservation:
            content = self._render(document, log)
            try:
                reservation.commit(content)
            except OSError as e:
                log.error("I/O error writing file %s: %s", reservation.path, e)
                return DocumentOutcome.FAILED

        self.registry.record(ExportRecord(
            url=url,
            name=document.title,
            owner=document.owner,
            path=filename,
        ))
        return DocumentOutcome.DONE

    def _render(self, document: PaperDocument, log: DocumentLog) -> bytes:
        """Rewrite the doc's image references to cached copies and wrap the result."""
        matches = self.extractor.extract(document.body, log=log)
        spans, attempted = self.image_pool.resolve_all(matches, log=log)
        log.info("downloaded %d of %d images", len(spans), attempted)

        body = splice(document.body, spans)
        now = self.clock() if self.clock else None
        return self.writer.assemble(document, body, now)

    def _should_show_progress(self) -> bool:
        return self.show_progress and sys.stdout.isatty()

    def close(self) -> None:
        if self._owns_image_pool:
            self.image_pool.shutdown()

    def __enter__(self) -> 'ExportPipeline':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
