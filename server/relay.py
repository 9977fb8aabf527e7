# server/relay.py
# This file contains the core logic for the dexcall signaling server.
# Responsibilities include:
# - Handling client connections and disconnections.
# - Registering clients under the identifier they choose.
# - Routing signaling messages (offer, answer, ice, end-call) to the addressed peer,
#   stamping the sender's identifier on each forwarded message.
# - Tracking active calls and saving a duration record when a call ends or a participant disconnects.
# - Setting up SSL context for Secure WebSockets (WSS) if configured.
#
# The relay is strictly best-effort: nothing is ever sent back to a client to report an error.
# Malformed or unroutable messages are logged and dropped.

import asyncio          # For the server's event loop.
import websockets       # The WebSocket library used for server implementation.
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK  # Closed-connection errors raised by send() and iteration.
import logging          # For logging server events, warnings, and errors.
import json             # For parsing and serializing JSON messages.
import ssl              # For creating SSL contexts for WSS.
import config           # Imports server configuration (HOST, PORT, SSL settings, RECORDS_FILE, DEBUG).
from registry import PeerRegistry
from records import RecordStore
from sessions import SessionTracker

# Message types that address another peer and carry a 'target' field.
SESSION_MESSAGE_TYPES = ("offer", "answer", "ice", "end-call")


def describe(connection):
    """Returns a printable address for log lines; fake or exotic connections may not expose one."""
    return getattr(connection, "remote_address", None) or repr(connection)


class SignalingRelay:
    """
    Routes signaling messages between registered peers and keeps call bookkeeping.

    Owns the three pieces of shared state: the peer registry, the session tracker and the
    record store. A connection only needs an awaitable `send(text)` method.
    """

    def __init__(self, registry=None, sessions=None, records=None):
        self.registry = registry if registry is not None else PeerRegistry()
        self.sessions = sessions if sessions is not None else SessionTracker()
        self.records = records if records is not None else RecordStore(config.RECORDS_FILE)
        # In-flight record appends. Held so the tasks are not garbage collected and can be awaited.
        self._pending_records = set()

    # --- Call Records ---
    def record_call(self, completed):
        """
        Saves a completed session without blocking the event loop.

        The append (a whole-file read and rewrite) runs in the default executor, where
        RecordStore's lock serializes it against other appends. Outside a running loop
        it is written synchronously.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self.records.append(completed.initiator, completed.target, completed.duration)
            return
        # Scheduled as a task so routing never waits on the disk.
        task = asyncio.create_task(
            asyncio.to_thread(self.records.append, completed.initiator, completed.target, completed.duration)
        )
        self._pending_records.add(task)
        task.add_done_callback(self._pending_records.discard)

    async def flush_records(self):
        """Waits for every scheduled record append to finish."""
        while self._pending_records:
            await asyncio.gather(*list(self._pending_records))

    # --- Outbound ---
    async def forward(self, target_id, message_type, payload, sender_id):
        """
        Sends `{type, payload, from}` to the connection registered as `target_id`.

        Returns True if a registered connection was found and the send did not fail.
        Send failures are logged and never propagated to the caller.
        """
        target_connection = self.registry.lookup(target_id)
        if target_connection is None:
            # Unknown target: the message is dropped without telling the sender.
            if config.DEBUG:
                logging.info(f"Target '{target_id}' not registered. Dropping '{message_type}' from '{sender_id}'.")
            return False

        message = json.dumps({"type": message_type, "payload": payload, "from": sender_id})
        try:
            if config.DEBUG:
                logging.info(f"Relaying '{message_type}' from '{sender_id}' to '{target_id}' ({describe(target_connection)})")
            await target_connection.send(message)
            return True
        except ConnectionClosed:
            # The target went away between lookup and send; its close handler will clean up.
            logging.warning(f"Relay failed: connection for '{target_id}' closed during send.")
        except Exception:
            logging.exception(f"Unexpected error relaying '{message_type}' to '{target_id}'")
        return False

    # --- Inbound ---
    async def handle_message(self, connection, raw_message):
        """
        Parses one inbound frame and applies it.

        Priority order:
            register  -> registry entry for payload.id, no reply.
            offer     -> begin a session, forward if the target is registered.
            end-call  -> end the session (recording it if one existed), forward if registered.
            answer/ice -> forward if registered.
        Anything malformed or unrecognized is logged and ignored; the connection stays open.
        """
        if config.DEBUG:
            logging.info(f"Raw message received from {describe(connection)}: {raw_message}")

        # --- Message Parsing and Structure Validation ---
        try:
            data = json.loads(raw_message)
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
            logging.warning(f"Invalid JSON received from {describe(connection)}. Ignoring.")
            return
        if not isinstance(data, dict):
            logging.warning(f"Received non-object data from {describe(connection)}. Ignoring: {data}")
            return

        message_type = data.get("type")
        target_id = data.get("target")
        payload = data.get("payload")
        if not isinstance(message_type, str):
            logging.warning(f"Missing or invalid 'type' in message from {describe(connection)}. Ignoring: {data}")
            return

        # --- Registration ---
        if message_type == "register":
            if not isinstance(payload, dict) or not isinstance(payload.get("id"), str):
                logging.warning(f"Register message without a string 'payload.id' from {describe(connection)}. Ignoring.")
                return
            self.registry.register(payload["id"], connection)
            return

        if message_type not in SESSION_MESSAGE_TYPES:
            logging.warning(f"Unrecognized message type '{message_type}' from {describe(connection)}. Ignoring.")
            return
        if not isinstance(target_id, str):
            logging.warning(f"Missing or invalid 'target' in '{message_type}' message from {describe(connection)}. Ignoring.")
            return

        sender_id = data.get("id")
        if sender_id is None and message_type in ("offer", "end-call"):
            # Without a sender there is no session to key; answer/ice are still relayed with from=null.
            logging.warning(f"Missing 'id' in '{message_type}' message from {describe(connection)}. Ignoring.")
            return
        if sender_id is not None and not isinstance(sender_id, str):
            logging.warning(f"Invalid 'id' (not a string) in '{message_type}' message from {describe(connection)}. Ignoring.")
            return

        # --- Session Tracking ---
        completed = None
        if message_type == "offer":
            # The session exists from the offer onwards, even if the target is not online.
            self.sessions.begin(sender_id, target_id)
        elif message_type == "end-call":
            completed = self.sessions.end(sender_id, target_id)

        # --- Relay ---
        # end-call is forwarded even without a tracked session so a declined call reaches the caller.
        await self.forward(target_id, message_type, payload, sender_id)

        if completed is not None:
            self.record_call(completed)

    # --- Disconnect Cleanup ---
    def connection_closed(self, connection):
        """
        Frees the identifier owned by a closed connection and records every call it was part of.

        The other participant of each call is not notified. Returns the completed sessions.
        """
        identifier = self.registry.remove_by_connection(connection)
        if identifier is None:
            # Never registered, or its identifier was taken over by a newer connection.
            logging.info(f"Client {describe(connection)} disconnected but had no registered ID.")
            return []

        logging.info(f"Peer disconnected: {identifier}")
        completed_sessions = self.sessions.end_all_for(identifier)
        for completed in completed_sessions:
            self.record_call(completed)
        if completed_sessions and config.DEBUG:
            logging.info(f"Closed {len(completed_sessions)} active session(s) involving '{identifier}'")
        return completed_sessions

    # --- Main Connection Handler ---
    async def connection_handler(self, websocket):
        """
        Handles one client connection for its whole lifetime.

        Messages are processed one at a time in arrival order. However the loop ends
        (clean close, network error, unexpected exception) the lifecycle cleanup runs.
        """
        logging.info(f"Connection accepted from {describe(websocket)}")
        try:
            async for message in websocket:
                try:
                    await self.handle_message(websocket, message)
                except Exception:
                    # A bug in routing one message must not take the connection down.
                    logging.exception(f"Unexpected error handling message from {describe(websocket)}")
        except ConnectionClosedOK:
            logging.info(f"Client {describe(websocket)} disconnected gracefully.")
        except ConnectionClosedError as e:
            logging.info(f"Client {describe(websocket)} disconnected with error: {e}")
        except Exception:
            logging.exception(f"An unexpected error occurred handling client {describe(websocket)}")
        finally:
            self.connection_closed(websocket)
            logging.info(f"Connection closed for {describe(websocket)}")


def create_ssl_context():
    """
    Builds the TLS context for WSS from config.CERT_FILE / config.KEY_FILE.
    Returns None (plain WS) when SSL is disabled or the files cannot be loaded.
    """
    if not config.ENABLE_SSL:
        return None
    try:
        logging.info(f"Attempting to load SSL cert: {config.CERT_FILE}")
        logging.info(f"Attempting to load SSL key: {config.KEY_FILE}")
        ssl_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        ssl_context.load_cert_chain(config.CERT_FILE, config.KEY_FILE)
        logging.info("SSL context created successfully. Server will use WSS.")
        return ssl_context
    except FileNotFoundError:
        logging.error(f"SSL Error: Certificate or Key file not found (Cert: '{config.CERT_FILE}', Key: '{config.KEY_FILE}'). Disabling SSL, falling back to WS.")
    except (ssl.SSLError, OSError):
        logging.exception("SSL Error: Failed to create SSL context. Disabling SSL, falling back to WS.")
    return None


# --- Server Startup Function ---
async def start_server(host, port, relay=None):
    """
    Starts the signaling server on host:port and runs until the process is stopped.

    Args:
        host (str): The hostname or IP address to bind the server to.
        port (int): The port number to bind the server to.
        relay (SignalingRelay | None): Relay to serve; one backed by config.RECORDS_FILE is built if omitted.
    """
    if relay is None:
        relay = SignalingRelay()
    ssl_context = create_ssl_context()
    effective_protocol = "wss" if ssl_context else "ws"

    logging.info(f"Starting server on {effective_protocol}://{host}:{port}")
    logging.info(f"Call records file: {relay.records.path} ({len(relay.records.load_all())} records)")
    logging.info(f"Maximum WebSocket message size set to: {config.MAX_MESSAGE_SIZE} bytes")
    logging.info(f"Server Debug Logging: {'ENABLED' if config.DEBUG else 'DISABLED'}")

    try:
        async with websockets.serve(
            relay.connection_handler,
            host,
            port,
            ssl=ssl_context,
            max_size=config.MAX_MESSAGE_SIZE,
        ):
            await asyncio.Future()  # Run forever.
    except OSError:
        logging.exception(f"OSError starting server on {host}:{port} - Is the port already in use?")
    except Exception:
        logging.exception(f"Unexpected error occurred during server startup or runtime ({effective_protocol})")
        raise
