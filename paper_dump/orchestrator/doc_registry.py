"""Run-spanning registry of exported docs, persisted as list.json."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional

from ..models import ExportRecord

logger = logging.getLogger('paper_dump.orchestrator.doc_registry')


class DocRegistry:
    """
    Thread-safe map from doc URL to its ExportRecord.

    Loaded once at startup, updated by document workers as each export
    completes, and saved once at the end of the run sorted by name.
    """

    def __init__(self, records: Optional[Dict[str, ExportRecord]] = None):
        self._records: Dict[str, ExportRecord] = dict(records or {})
        self._lock = threading.Lock()

    @classmethod
    def load(cls, path: Path) -> 'DocRegistry':
        """
        Load a registry file.

        A missing file yields an empty registry silently; an unreadable or
        malformed file is logged and also yields an empty registry.
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            records = {}
            for item in data['docs']:
                record = ExportRecord.from_dict(item)
                records[record.url] = record
        except FileNotFoundError:
            return cls()
        except OSError as e:
            logger.error(f"error opening {path}: {e}")
            return cls()
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"error deserializing {path}: {e}")
            return cls()

        logger.info(f"Loaded {len(records)} previously exported docs from {path}")
        return cls(records)

    def contains(self, url: str) -> bool:
        with self._lock:
            return url in self._records

    def record(self, record: ExportRecord) -> None:
        with self._lock:
            self._records[record.url] = record

    def get(self, url: str) -> Optional[ExportRecord]:
        with self._lock:
            return self._records.get(url)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def records(self) -> List[ExportRecord]:
        """All records sorted by name, for deterministic output."""
        with self._lock:
            snapshot = list(self._records.values())
        return sorted(snapshot, key=lambda r: r.name)

    def save(self, path: Path) -> None:
        """Write the registry to ``path`` via a temporary file and atomic rename."""
        path = Path(path)
        payload = {'docs': [record.to_dict() for record in self.records()]}
        tmp_path = path.with_name(path.name + '.tmp')

        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, path)

        logger.info(f"Saved {len(payload['docs'])} doc records to {path}")
