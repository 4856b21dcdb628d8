"""Export package: turns a downloaded Paper doc into a local HTML file with cached images.

Package Structure:
- reference_extractor: finds <img src="..."> tags in raw HTML bytes
- image_cache: content-addressed, download-once image store on disk
- image_pool: shared worker pool resolving one doc's images concurrently
- splicer: byte-range substitution of rewritten tags into the body
- document_writer: output naming, header/footer wrapper, exclusive writes
- index_generator: index.html over all exported docs
"""

from .document_writer import DocumentWriter, OutputReservation, sanitize_filename
from .image_cache import ImageCache, ImageCacheError, cache_filename
from .image_pool import ImagePool, rewrite_src
from .index_generator import IndexGenerator
from .reference_extractor import ReferenceExtractor
from .splicer import sort_spans, splice

__all__ = [
    'DocumentWriter',
    'OutputReservation',
    'sanitize_filename',
    'ImageCache',
    'ImageCacheError',
    'cache_filename',
    'ImagePool',
    'rewrite_src',
    'IndexGenerator',
    'ReferenceExtractor',
    'sort_spans',
    'splice',
]
