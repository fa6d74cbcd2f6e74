"""CLI entry point for nexusdav — WebDAV server for Nexus repositories."""

import argparse
import logging
import sys

from backend_nexus import NexusBackend
from config import Settings, describe, get_settings
from nexus_client import NexusClient
from server import make_server


def build_parser(settings: Settings | None = None) -> argparse.ArgumentParser:
    """Command line options, with defaults taken from the settings."""
    if settings is None:
        settings = get_settings()
    parser = argparse.ArgumentParser(
        description="nexusdav — browse Nexus Repository Manager repositories over WebDAV"
    )
    parser.add_argument("root", nargs="?", default="",
                        help="Repository (and optional path) to serve, e.g. maven-releases/org")
    parser.add_argument("--endpoint", default=settings.endpoint, help=describe("endpoint"))
    parser.add_argument("--username", default=settings.username, help=describe("username"))
    parser.add_argument("--password", default=settings.password, help=describe("password"))
    parser.add_argument("-p", "--port", type=int, default=8080, help="Port to listen on")
    parser.add_argument("--host", default="localhost", help="Host to bind to")
    parser.add_argument("--timeout", type=float, default=settings.timeout, help=describe("timeout"))
    parser.add_argument("--retries", type=int, default=settings.retries, help=describe("retries"))
    parser.add_argument("--no-details", dest="fetch_details", action="store_false",
                        help="Don't fetch per-asset details (faster, may lose dates and sizes)")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging")
    return parser


def make_backend(args: argparse.Namespace) -> NexusBackend:
    client = NexusClient(
        args.endpoint,
        username=args.username,
        password=args.password,
        timeout=args.timeout,
        retries=args.retries,
    )
    return NexusBackend(client, root=args.root, fetch_details=args.fetch_details)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    for option in ("endpoint", "username"):
        if not getattr(args, option):
            print(f"Error: --{option} is required (or set NEXUS_{option.upper()})", file=sys.stderr)
            sys.exit(1)

    backend = make_backend(args)
    server = make_server(backend, args.host, args.port)
    label = f"{args.endpoint}/{backend.root}" if backend.root else args.endpoint
    print(f"Serving {label} on http://{args.host}:{args.port}/")
    print("Press Ctrl+C to stop.")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down.")
        server.shutdown()


if __name__ == "__main__":
    main()
