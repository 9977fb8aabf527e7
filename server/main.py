# server/main.py
# This script serves as the main entry point for starting the dexcall signaling server.
# It sets up logging, reads settings from the 'config' module and runs the asynchronous
# server startup defined in the 'relay' module.

import asyncio  # Runs the server's event loop.
import config   # Server configuration (HOST, PORT, SSL settings, RECORDS_FILE, DEBUG).
import relay    # Signaling relay and the start_server coroutine.
import logging  # Standard logging for server events and errors.

# Timestamp, level and message for every log line; DEBUG-only detail is gated by config.DEBUG, not the log level.
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')


def run():
    logging.info("Attempting to start signaling server from main.py...")
    try:
        logging.info(f"Using HOST={config.HOST}, PORT={config.PORT}")
        asyncio.run(relay.start_server(config.HOST, config.PORT))
    except KeyboardInterrupt:
        logging.info("Server stopped manually via KeyboardInterrupt.")
    except Exception:
        # Anything re-raised by start_server ends up here with its traceback.
        logging.exception("Server failed to start or crashed in main.py")


if __name__ == "__main__":
    run()
