# server/sessions.py
# Session tracker: remembers when each in-progress call started so its duration can be
# recorded once it ends, either through an 'end-call' message or a disconnect.

import logging                      # For session bookkeeping logs (DEBUG only) and restart warnings.
import math                         # floor() for whole-second durations.
import time                         # Default clock (epoch seconds).
from dataclasses import dataclass   # Immutable session value types.

import config                       # DEBUG flag.


@dataclass(frozen=True)
class Session:
    initiator: str      # Identifier that sent the offer.
    target: str         # Identifier the offer was addressed to.
    started_at: float   # Clock reading when the offer was routed.


@dataclass(frozen=True)
class CompletedSession:
    initiator: str
    target: str
    started_at: float
    duration: int  # Whole seconds, floored.


class SessionTracker:
    """
    Tracks active sessions keyed by the unordered pair of participants.

    `end('bob', 'alice')` finds the session started by `begin('alice', 'bob')`. At most one
    session exists per pair; beginning a new one for the same pair replaces the old entry
    and its elapsed time is discarded.
    """

    def __init__(self, clock=time.time):
        # clock: zero-argument callable returning seconds; tests pass a manually advanced one.
        self._clock = clock
        # Example: {frozenset({'alice', 'bob'}): Session('alice', 'bob', 1700000000.0)}
        self._sessions = {}

    def begin(self, initiator_id, target_id):
        # The key ignores order, so an offer in either direction lands on the same entry.
        key = frozenset((initiator_id, target_id))
        if key in self._sessions:
            # Overwrite: the earlier session's elapsed time is not recorded.
            logging.warning(f"Session between '{initiator_id}' and '{target_id}' restarted; previous start time discarded.")
        session = Session(initiator_id, target_id, self._clock())
        self._sessions[key] = session
        if config.DEBUG:
            logging.info(f"Session started: {initiator_id} -> {target_id}")
        return session

    def end(self, id_a, id_b):
        # Either argument order finds the session; a second end() for the same pair returns None.
        session = self._sessions.pop(frozenset((id_a, id_b)), None)
        if session is None:
            return None
        return self._complete(session)

    def end_all_for(self, identifier):
        # Keys are collected first so each matching session is popped exactly once,
        # including a self-pair whose key holds a single identifier.
        keys = [key for key in self._sessions if identifier in key]
        return [self._complete(self._sessions.pop(key)) for key in keys]

    def active_for(self, identifier):
        # Read-only view for diagnostics; nothing is removed.
        return [session for key, session in self._sessions.items() if identifier in key]

    def _complete(self, session):
        # Clock steps backwards must not produce negative durations.
        duration = max(0, math.floor(self._clock() - session.started_at))
        if config.DEBUG:
            logging.info(f"Session ended: {session.initiator} -> {session.target} after {duration}s")
        return CompletedSession(session.initiator, session.target, session.started_at, duration)

    def __len__(self):
        return len(self._sessions)
