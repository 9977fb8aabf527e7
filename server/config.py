# server/config.py
# This file centralizes configuration settings for the dexcall signaling server.
# Every value can be overridden with a DEXCALL_* environment variable.

import os # Import the 'os' module for environment lookups and portable file paths.


def _env_flag(name, default):
    """Reads a boolean environment variable ('1', 'true', 'yes', 'on' count as True)."""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# BASE_DIR: Repository root (server/ -> ../). Default data and certificate paths hang off it.
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))

# --- Network Configuration ---

# HOST: The IP address the WebSocket server should listen on.
# - '0.0.0.0': Listen on all available network interfaces.
# - '127.0.0.1' or 'localhost': Listen only on the local machine.
HOST = os.environ.get('DEXCALL_HOST', '0.0.0.0')

# PORT: The TCP port number the WebSocket server should listen on.
# Browser clients connect to ws://<host>:<PORT> (or wss:// when SSL is enabled).
PORT = int(os.environ.get('DEXCALL_PORT', '8080'))

# MAX_MESSAGE_SIZE: Largest inbound WebSocket frame accepted, in bytes.
# Signaling frames carry an SDP blob or a single ICE candidate, so 64KB leaves plenty of room.
MAX_MESSAGE_SIZE = int(os.environ.get('DEXCALL_MAX_MESSAGE_SIZE', str(64 * 1024)))

# --- SSL Configuration ---

# CERT_DIR: Directory holding cert.pem and key.pem when Secure WebSockets (WSS) are used.
CERT_DIR = os.environ.get('DEXCALL_CERT_DIR', os.path.join(BASE_DIR, 'certs'))

# CERT_FILE / KEY_FILE: Certificate chain and private key loaded into the server's TLS context.
CERT_FILE = os.path.join(CERT_DIR, 'cert.pem')
KEY_FILE = os.path.join(CERT_DIR, 'key.pem')

# ENABLE_SSL: Serve wss:// instead of ws://. Usually off because a reverse proxy terminates TLS.
# If the files above cannot be loaded the server logs an error and falls back to ws://.
ENABLE_SSL = _env_flag('DEXCALL_ENABLE_SSL', False)

# --- Call Record Storage ---

# RECORDS_FILE: JSON file holding the list of completed call records.
# The whole file is rewritten on every append; its directory is created on first write.
RECORDS_FILE = os.environ.get('DEXCALL_RECORDS_FILE', os.path.join(BASE_DIR, 'data', 'calls.json'))

# --- Debugging Configuration ---

# DEBUG: Verbose server logging.
# - True: log raw inbound frames, every forward, dropped messages and session bookkeeping.
# - False: only connections, registrations, disconnects, call records, warnings and errors.
DEBUG = _env_flag('DEXCALL_DEBUG', False)
