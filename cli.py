#!/usr/bin/env python3
"""
Command-line interface for the DigiTailor commerce session engine.

Usage:
    python cli.py [command] [options]

Commands:
    demo        Run demo scenarios
    test        Run the test suite
    serve       Start the API server

Examples:
    python cli.py demo cart-isolation
    python cli.py demo order-watch
    python cli.py demo all --log-level DEBUG
    python cli.py serve
"""

import argparse
import subprocess
import sys

from session.config import get_settings
from session.logging_setup import configure_logging


def run_demo(scenario: str) -> None:
    """Run a demo scenario."""
    from commerce.demo import run_cart_isolation_demo, run_order_watch_demo

    if scenario == "cart-isolation":
        run_cart_isolation_demo()
    elif scenario == "order-watch":
        run_order_watch_demo()
    elif scenario == "all":
        run_cart_isolation_demo()
        run_order_watch_demo()
    else:
        print(f"Unknown scenario: {scenario}")
        sys.exit(1)


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = [sys.executable, "-m", "pytest"] + args
    sys.exit(subprocess.run(cmd).returncode)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the API server."""
    cmd = [sys.executable, "-m", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="DigiTailor Commerce Session CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s demo cart-isolation
  %(prog)s demo order-watch
  %(prog)s demo all --log-level DEBUG
  %(prog)s test -v
  %(prog)s serve --reload
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Run demo scenarios")
    demo_parser.add_argument(
        "scenario",
        choices=["cart-isolation", "order-watch", "all"],
        help="Which scenario to run",
    )
    demo_parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (defaults to DIGITAILOR_LOG_LEVEL or INFO)",
    )

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    if args.command == "demo":
        configure_logging(args.log_level or get_settings().log_level)
        run_demo(args.scenario)
    elif args.command == "test":
        run_tests(args.pytest_args)
    elif args.command == "serve":
        run_server(args.host, args.port, args.reload)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
