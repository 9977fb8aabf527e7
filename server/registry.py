# server/registry.py
# Peer registry: maps a client-chosen identifier to the live connection that claimed it.
# Identifiers are not validated or reserved; any client may claim any identifier.

import logging  # For logging registrations and superseded entries.


class PeerRegistry:
    """
    Holds the identifier -> connection mapping used for routing.

    Registration is unconditional: a second `register` for an identifier replaces the
    first entry. The displaced connection is neither closed nor notified; it simply
    can no longer be reached under that identifier.
    """

    def __init__(self):
        # Example: {'alice': <connection for Alice>, 'bob': <connection for Bob>}
        self._peers = {}

    def register(self, identifier, connection):
        # Check for an entry owned by a different connection before overwriting it.
        previous = self._peers.get(identifier)
        if previous is not None and previous is not connection:
            logging.warning(f"Identifier '{identifier}' re-registered; previous connection is no longer reachable.")
        self._peers[identifier] = connection
        # Registration success is not reported to the client, only to the server log.
        logging.info(f"Peer registered: {identifier}")

    def lookup(self, identifier):
        # None means the identifier is not currently registered.
        return self._peers.get(identifier)

    def remove_by_connection(self, connection):
        """
        Removes the entry owned by `connection` and returns its identifier.

        Returns None when the connection never registered, or when its identifier was
        since claimed by another connection.
        """
        # Linear scan; only runs on disconnect, never per message.
        for identifier, peer in self._peers.items():
            if peer is connection:
                del self._peers[identifier]
                return identifier  # Returning right away keeps the dict from changing mid-iteration.
        return None

    def __contains__(self, identifier):
        return identifier in self._peers

    def __len__(self):
        return len(self._peers)
