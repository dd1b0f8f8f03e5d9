#!/usr/bin/env python3
"""
MockHub CLI

Command-line interface for MockHub listeners.

Commands:
    serve       - Start every listener of a mock file
    validate    - Validate a mock file
    send        - Publish a chunk to a running streaming mock

Examples:
    # Serve mocks
    mockhub serve mocks.yaml

    # Validate a mock file
    mockhub validate mocks.yaml

    # Push a chunk to the /events stream on port 8080
    mockhub send http://localhost:8080 /events "data: hello"
"""

import argparse
import logging
import sys
import time

import httpx
import yaml

from .config import ListenerConfig
from .mock import ListenerPool
from .mockfile import MockFile


def cmd_serve(args):
    """
    Start listeners for every port in a mock file and block until Ctrl+C.

    Args:
        args: Parsed command-line arguments
    """
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    print(f"🚀 MockHub starting...")
    print(f"   Mock file: {args.mock_file}")

    try:
        mock_file = MockFile.from_yaml(args.mock_file)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Failed to load mock file: {e}")
        sys.exit(1)

    config = ListenerConfig(
        host=args.host,
        log_level=args.log_level,
        admin_enabled=not args.no_admin
    )
    pool = ListenerPool(config=config)

    try:
        pool.load(mock_file)
    except (OSError, RuntimeError) as e:
        print(f"❌ Failed to start listeners: {e}")
        pool.destroy()
        sys.exit(1)

    for port, mocks in pool.snapshot().items():
        print(f"   Listener: http://{args.host}:{port}")
        for uri, methods in mocks.items():
            for method, mock in methods.items():
                print(f"     {method:7} {uri} ({mock['handler']})")
        if config.admin_enabled:
            print(f"     Admin API: http://{args.host}:{port}{config.admin_prefix}/mocks")
    print()

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n\n👋 MockHub stopped")
    finally:
        pool.destroy()


def cmd_validate(args):
    """
    Validate a mock file and report issues.

    Args:
        args: Parsed command-line arguments
    """
    print(f"✓ MockHub Mock File Validation")
    print(f"   Mock file: {args.mock_file}")

    try:
        with open(args.mock_file, 'r') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        print(f"❌ Failed to read mock file: {e}")
        sys.exit(1)

    errors = MockFile.validate(data)

    if errors:
        print("❌ Errors found:")
        for error in errors:
            print(f"   • {error}")
        print()
        print(f"📊 Errors: {len(errors)}")
        sys.exit(1)

    mock_file = MockFile.from_dict(data)
    print(f"   Listeners: {len(mock_file.listeners)}")
    print(f"   Mocks: {mock_file.mock_count}")
    print("✅ All validations passed!")


def cmd_send(args):
    """
    Publish a chunk through a listener's admin API.

    Args:
        args: Parsed command-line arguments
    """
    url = f"{args.listener_url.rstrip('/')}{args.admin_prefix}/chunks"

    try:
        response = httpx.post(url, json={'uri': args.uri, 'chunk': args.chunk}, timeout=args.timeout)
    except httpx.RequestError as e:
        print(f"❌ Failed to reach listener: {e}")
        sys.exit(1)

    if response.status_code != 200:
        print(f"❌ {response.status_code}: {response.text}")
        sys.exit(1)

    print(f"✅ Chunk sent to {args.uri} ({response.json().get('clients', 0)} clients)")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='mockhub',
        description="MockHub - Programmable mock HTTP endpoints",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve every listener in a mock file
  %(prog)s serve mocks.yaml

  # Validate a mock file
  %(prog)s validate mocks.yaml

  # Publish a chunk to a streaming mock
  %(prog)s send http://localhost:8080 /events "data: hello"
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # --- SERVE command ---
    serve_parser = subparsers.add_parser('serve', help='Start listeners from a mock file')
    serve_parser.add_argument('mock_file', help='YAML mock file')
    serve_parser.add_argument('--host', default='127.0.0.1', help='Host to bind (default: 127.0.0.1)')
    serve_parser.add_argument('--log-level', default='info', choices=['debug', 'info', 'warning', 'error'],
                              help='Log level (default: info)')
    serve_parser.add_argument('--no-admin', action='store_true', help='Disable admin API')

    # --- VALIDATE command ---
    validate_parser = subparsers.add_parser('validate', help='Validate a mock file')
    validate_parser.add_argument('mock_file', help='YAML mock file')

    # --- SEND command ---
    send_parser = subparsers.add_parser('send', help='Publish a chunk to a streaming mock')
    send_parser.add_argument('listener_url', help='Listener base URL (e.g., http://localhost:8080)')
    send_parser.add_argument('uri', help='Streaming mock uri (e.g., /events)')
    send_parser.add_argument('chunk', help='Chunk to publish')
    send_parser.add_argument('--admin-prefix', default='/__admin__', help='Admin API prefix (default: /__admin__)')
    send_parser.add_argument('--timeout', type=float, default=10.0, help='Request timeout in seconds (default: 10)')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        'serve': cmd_serve,
        'validate': cmd_validate,
        'send': cmd_send,
    }
    commands[args.command](args)


if __name__ == '__main__':
    main()
