import pytest
from bson import ObjectId

import notifications
import posts
from errors import NotFoundError
from settings import settings


@pytest.fixture
def post_by_bob(make_user):
    bob = make_user("bob")
    return bob, posts.create_post(bob, "Hello network")


def like_notes(receiver):
    return [n for n in notifications.list_notifications(receiver) if n["type"] == "like"]


def test_like_notifies_author_and_unlike_removes_it(make_user, post_by_bob):
    alice = make_user("alice")
    bob, post = post_by_bob
    carol = make_user("carol")
    posts.add_comment(post["id"], carol, "Nice", [])

    likes = posts.toggle_like(post["id"], alice, [])
    assert likes == [alice]
    notes = like_notes(bob)
    assert len(notes) == 1
    assert notes[0]["related_user"]["id"] == alice
    assert notes[0]["related_post"]["id"] == post["id"]

    assert posts.toggle_like(post["id"], alice, []) == []
    assert like_notes(bob) == []
    # The comment notification is untouched.
    assert [n["type"] for n in notifications.list_notifications(bob)] == ["comment"]


def test_like_twice_returns_to_original_state(make_user, post_by_bob):
    alice = make_user("alice")
    _, post = post_by_bob
    posts.toggle_like(post["id"], alice, [])
    posts.toggle_like(post["id"], alice, [])
    feed = posts.list_feed()
    assert feed["posts"][0]["likes"] == []


def test_repeated_like_notification_is_not_duplicated(make_user, post_by_bob):
    alice = make_user("alice")
    bob, post = post_by_bob
    notifications.upsert_notification(bob, "like", alice, post["id"])
    posts.toggle_like(post["id"], alice, [])
    assert len(like_notes(bob)) == 1


def test_racing_likes_add_the_user_once(make_user, post_by_bob, monkeypatch):
    alice = make_user("alice")
    bob, post = post_by_bob
    before = posts._get_post(post["id"])
    # Both requests read the post before either write lands.
    monkeypatch.setattr(posts, "_get_post", lambda post_id: before)

    assert posts.toggle_like(post["id"], alice, []) == [alice]
    assert posts.toggle_like(post["id"], alice, []) == [alice]
    assert len(like_notes(bob)) == 1


def test_self_like_creates_no_notification(post_by_bob):
    bob, post = post_by_bob
    assert posts.toggle_like(post["id"], bob, []) == [bob]
    assert notifications.list_notifications(bob) == []


def test_self_comment_is_silent_other_comment_notifies(make_user, post_by_bob):
    bob, post = post_by_bob
    alice = make_user("alice")

    posts.add_comment(post["id"], bob, "My own thoughts", [])
    assert notifications.list_notifications(bob) == []

    comments = posts.add_comment(post["id"], alice, "Congrats!", [])
    notes = notifications.list_notifications(bob)
    assert [n["type"] for n in notes] == ["comment"]
    assert notes[0]["related_user"]["first_name"] == "Alice"
    assert [c["content"] for c in comments] == ["My own thoughts", "Congrats!"]
    assert comments[1]["user"]["first_name"] == "Alice"


def test_like_events_target_author_and_actor(make_user, post_by_bob):
    alice = make_user("alice")
    bob, post = post_by_bob
    events = []
    posts.toggle_like(post["id"], alice, events)
    updates = [e for e in events if e.name == "likeUpdated"]
    assert {e.user_id for e in updates} == {alice, bob}
    assert updates[0].payload == {"postId": post["id"], "likes": [alice]}
    assert [e.user_id for e in events if e.name == "newNotification"] == [bob]


def test_broadcast_mode_addresses_everyone(make_user, post_by_bob, monkeypatch):
    monkeypatch.setattr(settings, "BROADCAST_POST_EVENTS", True)
    alice = make_user("alice")
    _, post = post_by_bob
    events = []
    posts.add_comment(post["id"], alice, "hi", events)
    added = [e for e in events if e.name == "commentAdded"]
    assert len(added) == 1
    assert added[0].user_id is None


def test_missing_post(make_user):
    alice = make_user("alice")
    with pytest.raises(NotFoundError):
        posts.toggle_like(str(ObjectId()), alice, [])
    with pytest.raises(NotFoundError):
        posts.add_comment(str(ObjectId()), alice, "hello?", [])


def test_feed_is_newest_first_and_paginated(make_user):
    alice = make_user("alice", headline="Writer")
    for i in range(5):
        posts.create_post(alice, f"post {i}")

    first = posts.list_feed(page=0, limit=2)
    assert first["total"] == 5
    assert first["pages"] == 3
    assert [p["description"] for p in first["posts"]] == ["post 4", "post 3"]
    assert first["posts"][0]["author"]["headline"] == "Writer"
    assert "email" not in first["posts"][0]["author"]

    last = posts.list_feed(page=2, limit=2)
    assert [p["description"] for p in last["posts"]] == ["post 0"]


def test_create_post_with_image(make_user):
    alice = make_user("alice")
    post = posts.create_post(alice, "", "https://cdn.example.com/a.png")
    assert post["image"] == "https://cdn.example.com/a.png"
    assert post["likes"] == [] and post["comments"] == []
    assert post["author"] == alice
