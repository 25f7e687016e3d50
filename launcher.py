#!/usr/bin/env python3
"""
ShiftTrack launcher.

    python launcher.py client
    python launcher.py server [--host HOST] [--port PORT]

Add --debug before the command for verbose logs.
"""

import argparse
import sys
from pathlib import Path

# Run from a checkout without installing
sys.path.insert(0, str(Path(__file__).parent))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='shifttrack', description='ShiftTrack shift tracker')
    parser.add_argument('--debug', action='store_true', help='enable debug logging')

    commands = parser.add_subparsers(dest='command', required=True)
    commands.add_parser('client', help='run the desktop client')

    server = commands.add_parser('server', help='run the document-store server (waitress)')
    server.add_argument('--host', help='bind address, defaults to the stored setting')
    server.add_argument('--port', type=int, help='port, defaults to the stored setting')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.debug:
        from shared.logging_config import enable_debug_logging
        enable_debug_logging()

    if args.command == 'client':
        from client.gui_app import main as run_client
        run_client()
    else:
        from server import run_console_server
        run_console_server(host=args.host, port=args.port)


if __name__ == '__main__':
    main()
