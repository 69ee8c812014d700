"""
fileshelf CLI - Command-line interface for the file service.

Provides subcommands:
- fileshelf start: Resolve the storage backend and start the HTTP server
- fileshelf version: Display version information
"""

import argparse
import dataclasses
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from fileshelf.config import Settings
from fileshelf.server import run_server


def get_version() -> str:
    """Get the package version."""
    try:
        from importlib.metadata import version

        return version("fileshelf")
    except Exception:
        return "0.1.0"


def cmd_version(args):
    """Handle the 'version' subcommand."""
    print(f"fileshelf version {get_version()}")
    print(f"Python {sys.version}")


def build_settings(args) -> Settings:
    settings = Settings.from_env()
    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if args.uploads_dir:
        overrides["uploads_dir"] = Path(args.uploads_dir).expanduser().resolve()
    if args.s3_bucket:
        overrides["s3_bucket"] = args.s3_bucket
    if args.s3_region:
        overrides["s3_region"] = args.s3_region
    if args.s3_prefix:
        overrides["s3_prefix"] = args.s3_prefix
    if args.s3_endpoint:
        overrides["s3_endpoint"] = args.s3_endpoint
    return dataclasses.replace(settings, **overrides)


def cmd_start(args):
    """Handle the 'start' subcommand."""
    settings = build_settings(args)

    print("=" * 50)
    print(f"fileshelf v{get_version()}")
    print(f"HTTP Server:    http://{settings.host}:{settings.port}")
    print(f"Uploads Directory: {settings.uploads_dir}")
    if settings.remote_configured:
        print(f"Remote Storage: s3://{settings.s3_bucket}/{settings.s3_prefix}")
    else:
        print("Remote Storage: not configured (local only)")
    print("=" * 50)

    try:
        run_server(settings)
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        sys.exit(1)


def main():
    """Main CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        prog="fileshelf",
        description="fileshelf - file listing, download and cache clearing over HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
    )

    start_parser = subparsers.add_parser(
        "start",
        help="Start the HTTP server",
        description="Resolve the storage backend and start the fileshelf HTTP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  fileshelf start                              # Local storage in ./uploads
  fileshelf start --port 9000                  # Custom HTTP port
  fileshelf start --s3-bucket=mybucket         # Prefer S3, fall back to local
  fileshelf start --s3-bucket=test --s3-endpoint=http://localhost:4566  # LocalStack
        """,
    )
    start_parser.add_argument(
        "--port", type=int, default=None, help="HTTP server port (default: 8001)"
    )
    start_parser.add_argument(
        "--host", type=str, default=None, help="Host to bind to (default: 0.0.0.0)"
    )
    start_parser.add_argument(
        "--uploads-dir",
        type=str,
        default=None,
        help="Local storage directory, also used as fallback (default: ./uploads)",
    )
    start_parser.add_argument(
        "--s3-bucket",
        type=str,
        default=None,
        help="S3 bucket name; remote storage is disabled when unset",
    )
    start_parser.add_argument(
        "--s3-region", type=str, default=None, help="S3 region (default: us-east-1)"
    )
    start_parser.add_argument(
        "--s3-prefix",
        type=str,
        default=None,
        help="S3 key prefix holding the files (default: uploads)",
    )
    start_parser.add_argument(
        "--s3-endpoint",
        type=str,
        default=None,
        help="S3 endpoint URL (for S3-compatible services like LocalStack)",
    )
    start_parser.set_defaults(func=cmd_start)

    version_parser = subparsers.add_parser(
        "version",
        help="Display version information",
        description="Display fileshelf version and Python version",
    )
    version_parser.set_defaults(func=cmd_version)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
