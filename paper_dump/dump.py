#!/usr/bin/env python3
"""
Paper Dump - Main CLI Entry Point

Exports every Dropbox Paper doc visible to the user into a local folder as
HTML, with embedded images downloaded once into a shared image cache and
the docs' image tags rewritten to point at the cached copies.
"""

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import List, Optional

import requests
import yaml

from . import __version__
from .config_loader import ConfigLoader, get_nested
from .exporters.index_generator import IndexGenerator
from .fetchers.errors import FetcherError
from .fetchers.retrying_fetcher import RetryingFetcher
from .logger import log_config, log_section, setup_logging
from .orchestrator import DocRegistry, ExportPipeline
from .paper_client import PaperClient

logger = logging.getLogger('paper_dump.dump')


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='paper-dump',
        description="Export all Dropbox Paper docs to local HTML files with cached images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Unless --no-export is given, writes all docs to a folder 'docs' in the
current directory, images to 'docs/images', and an index to 'docs/index.html'.

Examples:
  # Full export
  paper-dump

  # Only list titles and owners
  paper-dump --no-export

  # Custom configuration and output folder
  paper-dump --config paper-dump.yaml --output-dir ./paper-backup -v
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--no-export',
        action='store_true',
        help='Only fetch and log each doc\'s title and owner; write no files'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration YAML file (default: paper-dump.yaml if present)'
    )

    parser.add_argument(
        '--output-dir',
        type=str,
        help='Output directory (default: docs)'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for DEBUG)'
    )

    parser.add_argument(
        '-q', '--quiet',
        action='count',
        default=0,
        help='Only log warnings and errors'
    )

    return parser


def resolve_access_token(config: dict) -> str:
    """
    Return the Dropbox access token from config or the environment, prompting if needed.

    Raises:
        ValueError: No token is configured and stdin is not interactive
    """
    token = get_nested(config, 'dropbox.access_token')
    if token and not ConfigLoader.has_unresolved_env_var(token):
        return token

    if not sys.stdin.isatty():
        raise ValueError("No Dropbox access token configured; set DBX_OAUTH_TOKEN")

    token = getpass.getpass("Dropbox OAuth2 access token: ").strip()
    if not token:
        raise ValueError("No Dropbox access token provided")
    return token


def run_export(config: dict, client, pipeline_factory=ExportPipeline) -> int:
    """
    List docs, export them, and persist the registry and index.

    The registry and index are written even when listing fails or the run is
    interrupted, so progress made by finished documents is never lost.

    Returns:
        Process exit code
    """
    export_config = config.get('export', {})
    output_dir = Path(export_config.get('output_directory', 'docs'))
    registry_path = output_dir / export_config.get('registry_file', 'list.json')

    output_dir.mkdir(parents=True, exist_ok=True)
    registry = DocRegistry.load(registry_path)
    exit_code = 0

    try:
        log_section("Listing Paper docs")
        doc_ids = RetryingFetcher.from_config(config).fetch(client.list_doc_ids)

        log_section("Exporting Paper docs")
        with pipeline_factory(config, client, registry) as pipeline:
            stats = pipeline.run(doc_ids)
        logger.info(f"Image cache: {stats.get('images', {})}")

    except (FetcherError, requests.RequestException) as e:
        logger.error(f"Listing Paper docs failed: {e}")
        exit_code = 1
    except KeyboardInterrupt:
        logger.error("Export interrupted by user")
        exit_code = 130
    finally:
        if not persist_results(registry, registry_path, output_dir, export_config.get('index_file', 'index.html')):
            exit_code = exit_code or 1

    return exit_code


def persist_results(registry: DocRegistry, registry_path: Path, output_dir: Path, index_file: str) -> bool:
    """
    Save the registry, then regenerate the index from it.

    Each step is attempted even if the other fails; failures are logged.

    Returns:
        True if both were written
    """
    ok = True
    try:
        registry.save(registry_path)
    except Exception as e:
        logger.error(f"Failed to save {registry_path}: {e}", exc_info=True)
        ok = False

    try:
        IndexGenerator(output_dir, index_file).write(registry.records())
    except Exception as e:
        logger.error(f"Failed to write index {output_dir / index_file}: {e}", exc_info=True)
        ok = False

    return ok


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)
    verbosity = args.verbose - args.quiet

    setup_logging(verbosity=verbosity)

    try:
        config = ConfigLoader.load(args.config, required=args.config is not None)
        config = ConfigLoader.merge_with_args(config, args)
        ConfigLoader.validate(config)
    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except (ValueError, yaml.YAMLError) as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(
        verbosity=verbosity,
        log_file=get_nested(config, 'logging.file'),
        level=get_nested(config, 'logging.level')
    )
    log_section("Paper Dump")
    logger.info(f"Version: {__version__}")
    log_config(config)

    try:
        token = resolve_access_token(config)
        client = PaperClient.from_config(config, token)
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2

    try:
        return run_export(config, client)
    except KeyboardInterrupt:
        print("\nExport interrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        logger.error(f"Export failed: {str(e)}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
