from registry import PeerRegistry


def test_lookup_unknown_identifier():
    assert PeerRegistry().lookup("nobody") is None


def test_latest_registration_wins():
    registry = PeerRegistry()
    connections = [object() for _ in range(3)]
    for connection in connections:
        registry.register("alice", connection)
        assert registry.lookup("alice") is connection
    assert len(registry) == 1


def test_superseded_connection_no_longer_owns_identifier():
    registry = PeerRegistry()
    first, second = object(), object()
    registry.register("alice", first)
    registry.register("alice", second)

    assert registry.remove_by_connection(first) is None
    assert registry.lookup("alice") is second


def test_remove_by_connection_returns_identifier():
    registry = PeerRegistry()
    alice, bob = object(), object()
    registry.register("alice", alice)
    registry.register("bob", bob)

    assert registry.remove_by_connection(alice) == "alice"
    assert "alice" not in registry
    assert registry.lookup("bob") is bob
    assert registry.remove_by_connection(alice) is None


def test_empty_identifier_is_accepted():
    registry = PeerRegistry()
    connection = object()
    registry.register("", connection)
    assert registry.lookup("") is connection
