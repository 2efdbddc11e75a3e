"""Notification store.

Notifications are written by the post and connection workflows and only
read or deleted by their receiver.
"""

import logging
from typing import List, Optional

from database import (create_document, delete_documents, get_document, get_documents, now,
                      to_object_id, to_public, update_document)
from schemas import Notification, NotificationType
from users import ACTOR_FIELDS, public_summaries

logger = logging.getLogger(__name__)

POST_FIELDS = {"image": 1, "description": 1}


def _key(receiver, type_: NotificationType, related_user, related_post=None,
         related_connection=None) -> dict:
    key = {
        "receiver": to_object_id(receiver),
        "type": type_,
        "related_user": to_object_id(related_user),
        "related_post": to_object_id(related_post) if related_post is not None else None,
    }
    if related_connection is not None:
        # Each accepted request gets its own notice, even between the same two users.
        key["related_connection"] = to_object_id(related_connection)
    return key


def create_notification(receiver, type_: NotificationType, related_user,
                        related_post=None) -> Optional[str]:
    """Insert a notification. Acting on your own content notifies nobody."""
    if str(receiver) == str(related_user):
        return None
    note = Notification(**_key(receiver, type_, related_user, related_post))
    return create_document("notification", note)


def upsert_notification(receiver, type_: NotificationType, related_user,
                        related_post=None, related_connection=None) -> Optional[dict]:
    """Create the notification unless an identical one exists; safe to replay."""
    if str(receiver) == str(related_user):
        return None
    key = _key(receiver, type_, related_user, related_post, related_connection)
    update_document("notification", key,
                    {"$setOnInsert": {"created_at": now()}}, upsert=True)
    return get_document("notification", key)


def delete_matching(receiver, type_: NotificationType, related_user, related_post=None) -> int:
    return delete_documents("notification", _key(receiver, type_, related_user, related_post))


def list_notifications(user_id) -> List[dict]:
    docs = get_documents("notification", {"receiver": to_object_id(user_id)},
                         sort=[("created_at", -1), ("_id", -1)])
    actors = public_summaries([d["related_user"] for d in docs], ACTOR_FIELDS)
    post_ids = list({d["related_post"] for d in docs if d.get("related_post")})
    posts = {}
    if post_ids:
        posts = {str(p["_id"]): to_public(p)
                 for p in get_documents("post", {"_id": {"$in": post_ids}}, projection=POST_FIELDS)}
    out = []
    for d in docs:
        item = to_public(d)
        item["related_user"] = actors.get(item["related_user"])
        if item.get("related_post"):
            item["related_post"] = posts.get(item["related_post"])
        out.append(item)
    return out


def delete_notification(user_id, notification_id) -> int:
    """Delete one notification; other users' notifications are never touched."""
    return delete_documents("notification", {
        "_id": to_object_id(notification_id, "notification id"),
        "receiver": to_object_id(user_id),
    })


def clear_notifications(user_id) -> int:
    count = delete_documents("notification", {"receiver": to_object_id(user_id)})
    logger.info("notifications: cleared %d for user %s", count, user_id)
    return count


def find(receiver, type_: NotificationType, related_user, related_post=None) -> Optional[dict]:
    return get_document("notification", _key(receiver, type_, related_user, related_post))
