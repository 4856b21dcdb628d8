"""Paper Dump

Exports Dropbox Paper docs to local HTML files, downloading each embedded
image once into a shared on-disk cache and rewriting image references to
point at the cached copies. Re-running the export only fetches docs that
are not yet in the registry (docs/list.json) and never overwrites files.

Basic Usage:
    1. export DBX_OAUTH_TOKEN=<token>
    2. Run: paper-dump                (full export into ./docs)
    3. Or:  paper-dump --no-export    (titles and owners only)
"""

__version__ = "1.0.0"
__description__ = "Dropbox Paper export tool with image caching"

from .models import (
    DocumentOutcome,
    ExportRecord,
    ImageEntry,
    PaperDocument,
    ReferenceMatch,
    ReplacementSpan,
)
from .config_loader import ConfigLoader, get_nested
from .logger import setup_logging, DocumentLog, ProgressTracker, log_section, log_config

from .dump import main as cli_main

__all__ = [
    '__version__',
    '__description__',

    'DocumentOutcome',
    'ExportRecord',
    'ImageEntry',
    'PaperDocument',
    'ReferenceMatch',
    'ReplacementSpan',

    'ConfigLoader',
    'get_nested',

    'setup_logging',
    'DocumentLog',
    'ProgressTracker',
    'log_section',
    'log_config',

    'cli_main',
]
