# NeverGone command-line entry point.
# Created: 2026-10-17

"""NeverGone entry point.

Examples:
  nevergone serve                      Start the API server
  nevergone serve --dev                Start with auto-reload
  nevergone token alice                Print a bearer token for user "alice"
  nevergone chat --token T "Hello"     Stream a reply in a new session
"""

import argparse
import asyncio
import logging
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from nevergone.config import Settings, get_settings
from nevergone.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _version() -> str:
    try:
        return get_version("nevergone")
    except PackageNotFoundError:
        from nevergone import __version__

        return __version__


async def run_chat(settings: Settings, args: argparse.Namespace) -> int:
    """Stream one reply to stdout. Ctrl-C cancels the stream."""
    from nevergone.client import NeverGoneClient, StreamController, StreamingError
    from nevergone.sse import Failed, Fragment

    url = args.url or settings.server_url
    async with NeverGoneClient(url, args.token, read_timeout=settings.client_read_timeout) as client:
        try:
            session_id = args.session or (await client.create_session()).id
        except StreamingError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        controller = StreamController(client)
        try:
            async for event in controller.open(session_id, args.message):
                if isinstance(event, Fragment):
                    print(event.text, end="", flush=True)
                elif isinstance(event, Failed):
                    print(f"\nError: {event.error}", file=sys.stderr)
                    return 1
        except asyncio.CancelledError:
            controller.cancel()
            print(" [cancelled]")
            return 130
        finally:
            controller.cancel()
        print(f"\n(session {session_id})", file=sys.stderr)
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="NeverGone - streaming chat server and client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--version", "-v", action="version", version=f"%(prog)s {_version()}")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the API server")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: settings)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Port (default: settings)")
    serve.add_argument("--dev", action="store_true", help="Development mode with auto-reload")

    token = sub.add_parser("token", help="Issue a bearer token for a user ID")
    token.add_argument("user_id")

    chat = sub.add_parser("chat", help="Send a message and stream the reply")
    chat.add_argument("message")
    chat.add_argument("--token", "-t", required=True, help="Bearer token")
    chat.add_argument("--session", "-s", default=None, help="Session ID (default: new session)")
    chat.add_argument("--url", default=None, help="Server URL (default: settings)")

    args = parser.parse_args()
    setup_logging(level=args.log_level)
    settings = get_settings()

    try:
        if args.command == "serve":
            from nevergone.api import run_server

            run_server(
                host=args.host or settings.web_host,
                port=args.port or settings.web_port,
                dev=args.dev,
            )
        elif args.command == "token":
            from nevergone.auth import TokenAuthenticator

            authenticator = TokenAuthenticator(settings.auth_secret, settings.token_ttl_hours)
            print(authenticator.issue(args.user_id))
        elif args.command == "chat":
            raise SystemExit(asyncio.run(run_chat(settings, args)))
    except KeyboardInterrupt:
        logger.info("NeverGone stopped.")
        raise SystemExit(130)


if __name__ == "__main__":
    main()
