"""
ShiftTrack REST API Server
Document store for shift entries and per-user bus timetables.
"""

import sqlite3
import uuid
from datetime import datetime
from functools import wraps

from flask import Flask, g, jsonify, request
from flask_cors import CORS

import shared
from shared.logging_config import get_server_logger
from shared.models import ApiResponse
from shared.utils import (InvalidTimeFormat, format_datetime, format_instant,
                          get_data_path, now_utc, parse_instant, validate_hhmm)

# Setup standardized logging
logger = get_server_logger()

# Server configuration constants
DB_BUSY_TIMEOUT_MS: int = 5000
DEFAULT_SERVER_HOST: str = '127.0.0.1'
DEFAULT_SERVER_PORT: int = 5000
WAITRESS_CHANNEL_TIMEOUT: int = 60
WAITRESS_CLEANUP_INTERVAL: int = 30

app = Flask(__name__)
CORS(app)  # Enable CORS for all routes
app.config.setdefault('DATABASE', None)


def get_server_db_path() -> str:
    return app.config['DATABASE'] or str(get_data_path('server_shifttrack.db'))


def _connect() -> sqlite3.Connection:
    conn = sqlite3.connect(get_server_db_path())
    conn.execute(f"PRAGMA busy_timeout = {DB_BUSY_TIMEOUT_MS}")
    conn.row_factory = sqlite3.Row
    return conn


def get_db():
    """Get database connection (for Flask context)"""
    if 'db' not in g:
        g.db = _connect()
    return g.db


@app.teardown_appcontext
def close_db(error):
    db = g.pop('db', None)
    if db is not None:
        db.close()


def init_server_db():
    """Initialize server database"""
    conn = _connect()
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                display_name TEXT,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS api_keys (
                key TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                last_used TEXT DEFAULT CURRENT_TIMESTAMP,
                active BOOLEAN DEFAULT TRUE
            )
        """)

        # swap_in/swap_out are ISO-8601 UTC strings, so they sort chronologically
        conn.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                swap_in TEXT NOT NULL,
                swap_out TEXT,
                created_at TEXT,
                updated_at TEXT
            )
        """)
        conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_entries_user_swap_in
            ON entries (user_id, swap_in)
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS bus_times (
                user_id TEXT NOT NULL,
                id TEXT NOT NULL,
                time TEXT NOT NULL,
                PRIMARY KEY (user_id, id)
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)

        default_settings = [
            ('host', DEFAULT_SERVER_HOST),
            ('port', str(DEFAULT_SERVER_PORT)),
        ]
        for key, value in default_settings:
            conn.execute("INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?)", (key, value))

        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error(f"Failed to initialize server database: {e}")
        raise
    finally:
        conn.close()


def get_server_config():
    """Get host/port configuration from the settings table"""
    conn = _connect()
    try:
        rows = conn.execute("SELECT key, value FROM settings").fetchall()
    finally:
        conn.close()

    settings = {row['key']: row['value'] for row in rows}
    return {
        'host': settings.get('host', DEFAULT_SERVER_HOST),
        'port': int(settings.get('port', DEFAULT_SERVER_PORT)),
    }


def error_response(message: str, status: int):
    return jsonify(ApiResponse(False, error=message).to_dict()), status


def authenticate_request():
    """Authenticate API request using Bearer token, returning the user id"""
    auth_header = request.headers.get('Authorization')
    if not auth_header or not auth_header.startswith('Bearer '):
        logger.debug("Auth failed: No Bearer token in request")
        return None

    api_key = auth_header[7:]
    db = get_db()
    row = db.execute(
        "SELECT user_id, active FROM api_keys WHERE key = ?",
        (api_key,)
    ).fetchone()

    if not row:
        logger.warning(f"Auth failed: API key not found (key: {api_key[:8]}...)")
        return None

    if not row['active']:
        logger.warning("Auth failed: API key exists but is not active")
        return None

    db.execute("UPDATE api_keys SET last_used = CURRENT_TIMESTAMP WHERE key = ?", (api_key,))
    db.commit()
    return row['user_id']


def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = authenticate_request()
        if not user_id:
            return error_response("Unauthorized", 401)
        g.user_id = user_id
        return f(*args, **kwargs)
    return decorated_function


def _row_to_entry(row) -> dict:
    return {
        'id': row['id'],
        'userId': row['user_id'],
        'swapIn': row['swap_in'],
        'swapOut': row['swap_out'],
        'createdAt': row['created_at'],
    }


def _normalize_instant(value):
    """Re-encode a client instant as UTC ISO-8601, None if invalid"""
    parsed = parse_instant(value)
    return format_instant(parsed) if parsed else None


@app.errorhandler(400)
def bad_request(error):
    return error_response("Bad request", 400)


@app.errorhandler(404)
def not_found(error):
    return error_response("Not found", 404)


@app.errorhandler(405)
def method_not_allowed(error):
    return error_response("Method not allowed", 405)


@app.errorhandler(500)
def internal_error(error):
    logger.error(f"Internal error: {error}")
    return error_response("Internal server error", 500)


@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify(ApiResponse(True, data={
        "status": "healthy",
        "timestamp": format_datetime(datetime.now()),
        "version": shared.__VERSION__,
        "api_version": shared.__API_VERSION__,
    }).to_dict())


# User onboarding
@app.route('/api/v1/users/onboard', methods=['POST'])
def onboard_user():
    """Create a user identity and issue its API key"""
    data = request.get_json(silent=True) or {}
    display_name = (data.get('display_name') or '').strip()
    if not display_name:
        return error_response("display_name required", 400)

    user_id = uuid.uuid4().hex
    api_key = str(uuid.uuid4())
    now = format_datetime(datetime.now())

    try:
        db = get_db()
        db.execute("INSERT INTO users (user_id, display_name, created_at) VALUES (?, ?, ?)",
                   (user_id, display_name, now))
        db.execute("""
            INSERT INTO api_keys (key, user_id, created_at, last_used, active)
            VALUES (?, ?, ?, ?, 1)
        """, (api_key, user_id, now, now))
        db.commit()
    except sqlite3.Error as e:
        logger.error(f"Error onboarding user: {e}")
        return error_response("Internal server error", 500)

    logger.info(f"Onboarded user {user_id} ({display_name})")
    return jsonify(ApiResponse(True, data={
        "user_id": user_id,
        "api_key": api_key,
        "display_name": display_name,
    }).to_dict()), 201


# Entry endpoints
@app.route('/api/v1/entries', methods=['POST'])
@require_auth
def create_entry():
    """Create a shift entry document"""
    data = request.get_json(silent=True)
    if not data:
        return error_response("No data provided", 400)

    for required in ('userId', 'swapIn'):
        if not data.get(required):
            return error_response(f"Missing required field: {required}", 400)

    if data['userId'] != g.user_id:
        return error_response("Forbidden", 403)

    swap_in = _normalize_instant(data['swapIn'])
    if swap_in is None:
        return error_response("swapIn must be an ISO-8601 instant", 400)

    swap_out = None
    if data.get('swapOut'):
        swap_out = _normalize_instant(data['swapOut'])
        if swap_out is None:
            return error_response("swapOut must be an ISO-8601 instant", 400)

    created_at = _normalize_instant(data.get('createdAt')) or format_instant(now_utc())
    entry_id = uuid.uuid4().hex

    try:
        db = get_db()
        db.execute("""
            INSERT INTO entries (id, user_id, swap_in, swap_out, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (entry_id, g.user_id, swap_in, swap_out, created_at, created_at))
        db.commit()
    except sqlite3.Error as e:
        logger.error(f"Error creating entry: {e}")
        return error_response("Internal server error", 500)

    return jsonify(ApiResponse(True, data={"id": entry_id, "createdAt": created_at}).to_dict()), 201


def _owned_entry(entry_id: str):
    """Fetch an entry, returning (row, error_response)"""
    row = get_db().execute("SELECT * FROM entries WHERE id = ?", (entry_id,)).fetchone()
    if row is None:
        return None, error_response("Entry not found", 404)
    if row['user_id'] != g.user_id:
        return None, error_response("Forbidden", 403)
    return row, None


@app.route('/api/v1/entries/<entry_id>', methods=['PATCH'])
@require_auth
def patch_entry(entry_id):
    """Set swapOut on an existing entry"""
    data = request.get_json(silent=True)
    if not data or not data.get('swapOut'):
        return error_response("Missing required field: swapOut", 400)

    swap_out = _normalize_instant(data['swapOut'])
    if swap_out is None:
        return error_response("swapOut must be an ISO-8601 instant", 400)

    row, error = _owned_entry(entry_id)
    if error:
        return error

    db = get_db()
    db.execute("UPDATE entries SET swap_out = ?, updated_at = ? WHERE id = ?",
               (swap_out, format_instant(now_utc()), entry_id))
    db.commit()

    return jsonify(ApiResponse(True, data={"id": entry_id, "updated": True}).to_dict())


@app.route('/api/v1/entries/<entry_id>', methods=['DELETE'])
@require_auth
def delete_entry(entry_id):
    row, error = _owned_entry(entry_id)
    if error:
        return error

    db = get_db()
    db.execute("DELETE FROM entries WHERE id = ?", (entry_id,))
    db.commit()

    logger.info(f"Deleted entry {entry_id} for user {g.user_id}")
    return jsonify(ApiResponse(True, data={"id": entry_id, "deleted": True}).to_dict())


@app.route('/api/v1/entries', methods=['GET'])
@require_auth
def list_entries():
    """Entries of a user, newest swapIn first, optionally within [start, end)"""
    user_id = request.args.get('userId', g.user_id)
    if user_id != g.user_id:
        return error_response("Forbidden", 403)

    query = "SELECT * FROM entries WHERE user_id = ?"
    params = [user_id]

    for arg, op in (('start', '>='), ('end', '<')):
        value = request.args.get(arg)
        if value:
            bound = _normalize_instant(value)
            if bound is None:
                return error_response(f"{arg} must be an ISO-8601 instant", 400)
            query += f" AND swap_in {op} ?"
            params.append(bound)

    query += " ORDER BY swap_in DESC"

    limit = request.args.get('limit', type=int)
    if limit:
        query += " LIMIT ?"
        params.append(limit)

    rows = get_db().execute(query, params).fetchall()
    return jsonify(ApiResponse(True, data={"entries": [_row_to_entry(r) for r in rows]}).to_dict())


# Bus time endpoints
def _check_owner(user_id: str):
    if user_id != g.user_id:
        return error_response("Forbidden", 403)
    return None


@app.route('/api/v1/users/<user_id>/bus-times', methods=['GET'])
@require_auth
def list_bus_times(user_id):
    error = _check_owner(user_id)
    if error:
        return error

    rows = get_db().execute(
        "SELECT id, time FROM bus_times WHERE user_id = ? ORDER BY time", (user_id,)
    ).fetchall()
    return jsonify(ApiResponse(True, data={
        "bus_times": [{"id": r['id'], "time": r['time']} for r in rows]
    }).to_dict())


@app.route('/api/v1/users/<user_id>/bus-times/<bus_id>', methods=['PUT'])
@require_auth
def upsert_bus_time(user_id, bus_id):
    error = _check_owner(user_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        time = validate_hhmm(data.get('time', ''))
    except InvalidTimeFormat as e:
        return error_response(str(e), 400)

    db = get_db()
    db.execute("INSERT OR REPLACE INTO bus_times (user_id, id, time) VALUES (?, ?, ?)",
               (user_id, bus_id, time))
    db.commit()
    return jsonify(ApiResponse(True, data={"id": bus_id, "time": time}).to_dict())


@app.route('/api/v1/users/<user_id>/bus-times/<bus_id>', methods=['DELETE'])
@require_auth
def delete_bus_time(user_id, bus_id):
    error = _check_owner(user_id)
    if error:
        return error

    db = get_db()
    cursor = db.execute("DELETE FROM bus_times WHERE user_id = ? AND id = ?", (user_id, bus_id))
    db.commit()
    if cursor.rowcount == 0:
        return error_response("Bus time not found", 404)
    return jsonify(ApiResponse(True, data={"id": bus_id, "deleted": True}).to_dict())


def run_server(host=DEFAULT_SERVER_HOST, port=DEFAULT_SERVER_PORT):
    """Run server with Waitress WSGI server"""
    from waitress import serve

    logger.info(f"Starting ShiftTrack Server on {host}:{port}")
    serve(
        app,
        host=host,
        port=port,
        threads=6,
        channel_timeout=WAITRESS_CHANNEL_TIMEOUT,
        cleanup_interval=WAITRESS_CLEANUP_INTERVAL,
    )


if __name__ == '__main__':
    init_server_db()
    config = get_server_config()
    run_server(config['host'], config['port'])
