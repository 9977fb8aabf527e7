# server/records.py
# Record store for completed calls.
# The log is a single JSON array on disk. Each append reads the whole array, adds one
# record and rewrites the file. Failures are logged and swallowed: losing a call record
# must never interrupt signaling.

import json         # For reading and writing the record log.
import logging      # For reporting I/O failures without raising them.
import os           # For creating the log's parent directory.
import random       # For the record id suffix.
import threading    # Serializes the read-modify-write cycle.
import time         # Default clock.
from datetime import datetime, timedelta, timezone

BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _iso(moment):
    """Formats an aware datetime as ISO-8601 UTC with millisecond precision, e.g. 2024-05-01T12:00:00.000Z."""
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def _random_suffix(length=9):
    return ''.join(random.choice(BASE36_DIGITS) for _ in range(length))


class RecordStore:
    """
    Append-only log of completed calls.

    Each record looks like::

        {"id": "1714564800000k3j9x0a1b", "caller": "alice", "callee": "bob",
         "startTime": "2024-05-01T12:00:00.000Z", "duration": 5,
         "endTime": "2024-05-01T12:00:05.000Z"}

    `startTime` is the moment the record is written and `endTime` is derived from it by
    adding the duration; neither is the observed wall-clock time of the call itself.
    """

    def __init__(self, path, clock=time.time):
        self.path = path
        self._clock = clock
        self._lock = threading.Lock()

    def load_all(self):
        """Returns every stored record in append order; a missing or unreadable log yields []."""
        with self._lock:
            try:
                return self._read()
            except OSError as e:
                logging.warning(f"Could not read call records from {self.path}: {e}")
                return []

    def append(self, caller, callee, duration_seconds):
        """
        Appends one record and returns it, or returns None if the log could not be written.

        Args:
            caller (str): Identifier of the participant who sent the offer.
            callee (str): Identifier of the participant who received it.
            duration_seconds (int): Whole seconds the session lasted.
        """
        now = self._clock()
        start = datetime.fromtimestamp(now, tz=timezone.utc)
        record = {
            "id": f"{int(now * 1000)}{_random_suffix()}",
            "caller": caller,
            "callee": callee,
            "startTime": _iso(start),
            "duration": duration_seconds,
            "endTime": _iso(start + timedelta(seconds=duration_seconds)),
        }
        try:
            with self._lock:
                records = self._read()
                records.append(record)
                self._write(records)
        except (OSError, TypeError, ValueError):
            logging.exception(f"Failed to save call record {caller} -> {callee} to {self.path}")
            return None
        logging.info(f"Call record saved: {caller} -> {callee}, {duration_seconds}s")
        return record

    def _read(self):
        # Only a missing file or a corrupt document counts as empty; other I/O errors propagate
        # so that append() never rewrites a log it could not read.
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                records = json.load(f)
        except FileNotFoundError:
            return []
        except ValueError as e:
            logging.warning(f"Call record file {self.path} is malformed, treating as empty: {e}")
            return []
        if not isinstance(records, list):
            logging.warning(f"Call record file {self.path} does not contain a list, treating as empty.")
            return []
        return records

    def _write(self, records):
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(records, f, indent=2)
