import pytest

from presence import Event, PresenceHub


@pytest.fixture
def presence():
    return PresenceHub()


def test_last_registration_wins(presence, channel):
    phone, laptop = channel(), channel()
    presence.register("u1", phone)
    presence.register("u1", laptop)
    assert presence.lookup("u1") is laptop
    assert presence.online() == ["u1"]


def test_unregister_by_channel(presence, channel):
    a, b = channel(), channel()
    presence.register("u1", a)
    presence.register("u2", b)
    assert presence.unregister(a) == ["u1"]
    assert presence.lookup("u1") is None
    assert presence.lookup("u2") is b
    assert presence.unregister(a) == []


def test_stale_channel_unregister_keeps_new_one(presence, channel):
    old, new = channel(), channel()
    presence.register("u1", old)
    presence.register("u1", new)
    presence.unregister(old)
    assert presence.lookup("u1") is new


@pytest.mark.anyio
async def test_push_to_absent_user_is_skipped(presence):
    assert await presence.push_to("ghost", "statusUpdate", {}) is False


@pytest.mark.anyio
async def test_push_and_broadcast(presence, channel):
    a, b = channel(), channel()
    presence.register("u1", a)
    presence.register("u2", b)

    assert await presence.push_to("u1", "statusUpdate", {"newStatus": "pending"}) is True
    assert a.sent == [{"event": "statusUpdate", "data": {"newStatus": "pending"}}]
    assert b.sent == []

    assert await presence.broadcast("likeUpdated", {"postId": "p"}) == 2
    assert b.events("likeUpdated") == [{"event": "likeUpdated", "data": {"postId": "p"}}]


@pytest.mark.anyio
async def test_failing_channel_is_dropped(presence, channel):
    broken = channel(fail=True)
    presence.register("u1", broken)
    assert await presence.push_to("u1", "statusUpdate", {}) is False
    assert presence.lookup("u1") is None


@pytest.mark.anyio
async def test_dispatch_routes_targeted_and_broadcast_events(presence, channel):
    a, b = channel(), channel()
    presence.register("u1", a)
    presence.register("u2", b)
    await presence.dispatch([
        Event(name="statusUpdate", payload={"newStatus": "received"}, user_id="u2"),
        Event(name="commentAdded", payload={"postId": "p"}),
        Event(name="statusUpdate", payload={"newStatus": "pending"}, user_id="offline"),
    ])
    assert [m["event"] for m in a.sent] == ["commentAdded"]
    assert [m["event"] for m in b.sent] == ["statusUpdate", "commentAdded"]
