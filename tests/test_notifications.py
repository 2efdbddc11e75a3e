from bson import ObjectId

import notifications


def test_self_notification_is_suppressed(make_user):
    alice = make_user("alice")
    assert notifications.create_notification(alice, "comment", alice, ObjectId()) is None
    assert notifications.upsert_notification(alice, "like", alice, ObjectId()) is None
    assert notifications.list_notifications(alice) == []


def test_list_is_newest_first(make_user):
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
    notifications.create_notification(alice, "connectionAccepted", bob)
    notifications.create_notification(alice, "connectionAccepted", carol)
    listed = notifications.list_notifications(alice)
    assert [n["related_user"]["first_name"] for n in listed] == ["Carol", "Bob"]
    assert listed[0]["related_post"] is None


def test_delete_is_scoped_to_receiver(make_user):
    alice, bob = make_user("alice"), make_user("bob")
    note_id = notifications.create_notification(alice, "connectionAccepted", bob)

    assert notifications.delete_notification(bob, note_id) == 0
    assert len(notifications.list_notifications(alice)) == 1

    assert notifications.delete_notification(alice, note_id) == 1
    assert notifications.list_notifications(alice) == []


def test_clear_only_touches_own_notifications(make_user):
    alice, bob, carol = make_user("alice"), make_user("bob"), make_user("carol")
    notifications.create_notification(alice, "connectionAccepted", bob)
    notifications.create_notification(alice, "connectionAccepted", carol)
    notifications.create_notification(bob, "connectionAccepted", alice)

    assert notifications.clear_notifications(alice) == 2
    assert len(notifications.list_notifications(bob)) == 1
