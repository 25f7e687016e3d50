"""Server package for ShiftTrack application.

Provides the document-store REST API served by Waitress.
"""
from .server import app as flask_app
from .server import DEFAULT_SERVER_PORT, get_server_config, init_server_db, run_server

__all__ = ["run_server", "flask_app", "init_server_db", "run_console_server", "DEFAULT_SERVER_PORT"]


def run_console_server(host=None, port=None):
    """Initialize the database and run the server in console mode"""
    init_server_db()
    config = get_server_config()
    run_server(host=host or config['host'], port=port or config['port'])
