from app.core.realtime import ConnectionRegistry, conversation_group, user_group


def test_first_connection_makes_identity_online():
    registry = ConnectionRegistry()
    assert not registry.is_online("u1")

    registry.add_connection("u1", "c1")

    assert registry.is_online("u1")
    assert registry.online_identities() == {"u1"}
    assert registry.count() == 1


def test_identity_stays_online_until_last_connection_closes():
    registry = ConnectionRegistry()
    registry.add_connection("u1", "c1")
    registry.add_connection("u1", "c2")

    registry.remove_connection("u1", "c1")
    assert registry.is_online("u1")
    assert registry.connections_for("u1") == {"c2"}

    registry.remove_connection("u1", "c2")
    assert not registry.is_online("u1")
    assert registry.online_identities() == set()
    assert registry.count() == 0


def test_add_is_idempotent_and_unknown_remove_is_noop():
    registry = ConnectionRegistry()
    registry.add_connection("u1", "c1")
    registry.add_connection("u1", "c1")
    assert registry.count() == 1

    registry.remove_connection("u2", "c9")
    registry.remove_connection("u1", "c9")
    assert registry.connections_for("u1") == {"c1"}


def test_connections_for_returns_a_copy():
    registry = ConnectionRegistry()
    registry.add_connection("u1", "c1")

    conns = registry.connections_for("u1")
    conns.add("c2")

    assert registry.connections_for("u1") == {"c1"}
    assert registry.connections_for("nobody") == set()


def test_group_names():
    assert user_group("42") == "user:42"
    assert conversation_group("abc") == "chat:abc"
