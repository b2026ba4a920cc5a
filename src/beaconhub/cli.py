"""
Script: cli.py
Created: 2026-10-18
Purpose: CLI entry point for BeaconHub server
Keywords: cli, argparse, uvicorn, entrypoint, beaconhub
Status: active
Prerequisites:
  - uvicorn
Changelog:
  - 2026-10-18: Arguments override env-derived Settings
"""

from dataclasses import replace

from . import __version__
from .config import load_settings


def main():
    """CLI entry point for beaconhub-server command."""
    import uvicorn
    import argparse

    settings = load_settings()

    parser = argparse.ArgumentParser(
        description="BeaconHub - users and receipts API server"
    )
    parser.add_argument("--host", default=settings.host, help=f"Host to bind (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port to bind (default: {settings.port})")
    parser.add_argument("--db", default=None, help=f"SQLite database path (default: {settings.db_path})")

    args = parser.parse_args()

    settings = replace(settings, host=args.host, port=args.port, db_path=args.db or settings.db_path)

    print(f"BeaconHub v{__version__}")
    print(f"Starting on {settings.host}:{settings.port}")
    print(f"Database: {settings.db_path}")
    print(f"Health check: http://{settings.host}:{settings.port}/api/health")
    print(f"API docs: http://{settings.host}:{settings.port}/docs")
    print(f"API key required for all endpoints except /api/health")
    if settings.ip_allowlist_enabled:
        print(f"IP allow-list: {', '.join(sorted(settings.ip_allowlist)) or '(empty, all allowed)'}")

    from .app import create_app
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, server_header=False)


if __name__ == "__main__":
    main()
