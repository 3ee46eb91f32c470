import pytest


async def test_notify_offline_user_is_a_noop(server, transport):
    delivered = await server.notifications.notify_one("u1", {"title": "hi"})

    assert delivered is False
    assert transport.group_log == []


async def test_notify_reaches_all_connections_of_user(server, transport, connect):
    await connect("c1", "u1")
    await connect("c2", "u1")
    await connect("c3", "u2")

    delivered = await server.notifications.notify_one("u1", {"title": "Order shipped"})

    assert delivered is True
    for sid in ("c1", "c2"):
        assert transport.events(sid, "notification:new") == [("notification:new", {"title": "Order shipped"})]
    assert transport.events("c3") == []


async def test_notify_many_counts_online_recipients(server, transport, connect):
    await connect("c1", "u1")
    await connect("c3", "u3")

    delivered = await server.notifications.notify_many(["u1", "u2", "u3"], {"title": "Sale"})

    assert delivered == 2
    assert transport.events("c1", "notification:new")
    assert transport.events("c3", "notification:new")


async def test_broadcast_reaches_everyone(server, transport, connect):
    await connect("c1", "u1")
    await connect("c2", "u2")

    await server.notifications.broadcast_all({"title": "Maintenance"})

    assert transport.broadcasts == [("notification:broadcast", {"title": "Maintenance"})]
    assert transport.events("c2", "notification:broadcast")


@pytest.mark.parametrize("payload", ["{nid}", {"notification_id": "{nid}"}, {"notificationId": "{nid}"}])
async def test_mark_read(server, transport, notification_store, connect, payload):
    nid = notification_store.seed("u1")
    await connect("c1", "u1")
    if isinstance(payload, dict):
        payload = {k: v.format(nid=nid) for k, v in payload.items()}
    else:
        payload = payload.format(nid=nid)

    await server.dispatch("notification:read", "c1", payload)

    assert transport.events("c1", "notification:read:success") == [
        ("notification:read:success", {"notification_id": nid, "updated": True})
    ]
    assert await notification_store.unread_count("u1") == 0


async def test_mark_read_of_foreign_notification_changes_nothing(server, transport, notification_store, connect):
    nid = notification_store.seed("u2")
    await connect("c1", "u1")

    await server.dispatch("notification:read", "c1", nid)

    [(_, result)] = transport.events("c1", "notification:read:success")
    assert result["updated"] is False
    assert await notification_store.unread_count("u2") == 1


async def test_mark_read_without_id_is_invalid(server, transport, connect):
    await connect("c1", "u1")

    await server.dispatch("notification:read", "c1", {})

    [(_, error)] = transport.events("c1", "notification:error")
    assert error["code"] == "INVALID_PAYLOAD"


async def test_read_all_and_unread_count(server, transport, notification_store, connect):
    notification_store.seed("u1")
    notification_store.seed("u1")
    await connect("c1", "u1")

    await server.dispatch("notification:unreadCount", "c1")
    await server.dispatch("notification:readAll", "c1")
    await server.dispatch("notification:unreadCount", "c1")

    counts = [p["count"] for _, p in transport.events("c1", "notification:unreadCount")]
    assert counts == [2, 0]
    assert transport.events("c1", "notification:readAll:success") == [
        ("notification:readAll:success", {"count": 2})
    ]
