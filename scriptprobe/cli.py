"""
Command-line interface for ScriptProbe.

Scans one page and writes the JSON report to stdout or a file. Logs go
to stderr so the report stays machine-readable.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

import structlog
from dotenv import load_dotenv

from scriptprobe import __version__


def configure_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure structlog for CLI output."""
    import logging

    log_level = "DEBUG" if debug else "INFO" if verbose else "WARNING"

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level),
        stream=sys.stderr,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog="scriptprobe",
        description="ScriptProbe - detect client-side JavaScript libraries and their known vulnerabilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  scriptprobe https://example.com
  scriptprobe https://example.com --output report.json
  scriptprobe https://example.com --no-runtime --no-content-fetch
  scriptprobe https://example.com --signature-db jsrepository.json

Environment:
  SCRIPTPROBE_* variables (also read from .env) override the defaults,
  e.g. SCRIPTPROBE_SCAN_TIMEOUT=60 or SCRIPTPROBE_REGISTRY_URL=...
""",
    )

    parser.add_argument(
        "target",
        help="Target URL to scan (must include http:// or https://)",
    )

    parser.add_argument(
        "-o", "--output",
        default=None,
        help="Output file path for report (default: stdout)",
    )

    parser.add_argument(
        "--no-runtime",
        action="store_true",
        help="Skip headless browser detection",
    )

    parser.add_argument(
        "--no-content-fetch",
        action="store_true",
        help="Match signatures against script URLs only, never download bodies",
    )

    parser.add_argument(
        "--signature-db",
        default=None,
        help="Signature database in jsrepository.json format (default: bundled)",
    )

    parser.add_argument(
        "-t", "--timeout",
        type=float,
        default=None,
        help="Overall scan deadline in seconds (default: 45)",
    )

    parser.add_argument(
        "--no-verify-ssl",
        action="store_true",
        help="Disable SSL certificate verification",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"ScriptProbe {__version__}",
    )

    return parser


async def run_scan(args: argparse.Namespace) -> int:
    """
    Execute the scan.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    from scriptprobe.errors import PageFetchError, SignatureDatabaseError
    from scriptprobe.models import ScanConfig
    from scriptprobe.orchestrator import ScanOrchestrator
    from scriptprobe.reports import generate_json
    from scriptprobe.signatures import SignatureDatabase

    logger = structlog.get_logger(__name__)

    load_dotenv()

    try:
        config = ScanConfig.from_env(
            args.target,
            scan_timeout=args.timeout,
            signature_db_path=args.signature_db,
            runtime_detection=False if args.no_runtime else None,
            fetch_content=False if args.no_content_fetch else None,
            verify_ssl=False if args.no_verify_ssl else None,
        )
    except ValueError as e:
        logger.error("configuration_error", error=str(e))
        return 1

    try:
        signatures = SignatureDatabase.load(config.signature_db_path)
    except SignatureDatabaseError as e:
        logger.error("signature_database_error", error=str(e))
        return 1

    logger.info(
        "scan_starting",
        target=config.target_url,
        runtime=config.runtime_detection,
        fetch_content=config.fetch_content,
        signatures=len(signatures),
    )

    orchestrator = ScanOrchestrator(config, signatures=signatures)
    try:
        report = await orchestrator.scan()
    except PageFetchError as e:
        logger.error("scan_aborted", error=str(e))
        return 1

    if args.output:
        output_path = Path(args.output)
        generate_json(report, output_path)
        logger.info("report_saved", path=str(output_path.absolute()))
    else:
        print(generate_json(report))

    logger.info(
        "scan_summary",
        libraries=len(report.libraries),
        outdated=sum(1 for lib in report.libraries if lib.is_outdated),
        vulnerable=sum(1 for lib in report.libraries if lib.vulnerability_count),
        duration=f"{report.duration_ms / 1000:.2f}s",
    )
    return 0


def main() -> None:
    """Main entry point for CLI."""
    parser = create_parser()
    args = parser.parse_args()

    configure_logging(verbose=args.verbose, debug=args.debug)

    try:
        exit_code = asyncio.run(run_scan(args))
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nScan interrupted by user", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        logger = structlog.get_logger(__name__)
        logger.error("fatal_error", error=str(e))
        if args.debug:
            raise
        sys.exit(1)


if __name__ == "__main__":
    main()
