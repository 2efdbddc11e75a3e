"""Post store and the like/comment interaction engine.

Likes and comments rely on MongoDB's atomic array operators
($addToSet/$pull/$push); there is no per-post locking.
"""

import logging
import math
from typing import List, Optional

from pymongo import ReturnDocument

from database import (collection, count_documents, create_document, get_document, get_documents,
                      now, to_object_id, to_public)
from errors import NotFoundError
from notifications import create_notification, delete_matching, upsert_notification
from presence import Event
from schemas import Post
from settings import settings
from users import AUTHOR_FIELDS, COMMENTER_FIELDS, public_summaries

logger = logging.getLogger(__name__)


def _get_post(post_id) -> dict:
    post = get_document("post", {"_id": to_object_id(post_id, "post id")})
    if not post:
        raise NotFoundError("Post not found")
    return post


def _post_events(post: dict, actor_id, name: str, payload: dict) -> List[Event]:
    if settings.BROADCAST_POST_EVENTS:
        return [Event(name=name, payload=payload)]
    recipients = {str(post["author"]), str(actor_id)}
    return [Event(name=name, payload=payload, user_id=uid) for uid in sorted(recipients)]


def _enrich_comments(comments: List[dict]) -> List[dict]:
    people = public_summaries([c["user"] for c in comments], COMMENTER_FIELDS)
    out = []
    for c in comments:
        item = to_public(c)
        item["user"] = people.get(item["user"])
        out.append(item)
    return out


def create_post(author_id, description: str = "", image: Optional[str] = None) -> dict:
    post = Post(author=to_object_id(author_id), description=description, image=image)
    pid = create_document("post", post)
    logger.info("post %s created by %s", pid, author_id)
    return to_public(_get_post(pid))


def list_feed(page: int = 0, limit: Optional[int] = None) -> dict:
    limit = limit or settings.FEED_PAGE_SIZE
    docs = get_documents("post", {}, limit=limit, skip=page * limit,
                         sort=[("created_at", -1), ("_id", -1)])
    total = count_documents("post")

    authors = public_summaries([d["author"] for d in docs], AUTHOR_FIELDS)
    posts = []
    for d in docs:
        comments = _enrich_comments(d.get("comments", []))
        item = to_public(d)
        item["author"] = authors.get(item["author"])
        item["comments"] = comments
        posts.append(item)
    return {"posts": posts, "total": total, "page": page, "pages": math.ceil(total / limit)}


def toggle_like(post_id, user_id, events: List[Event]) -> List[str]:
    """Like or unlike. Two calls in a row restore the original state."""
    post = _get_post(post_id)
    uid = to_object_id(user_id)

    if uid in post.get("likes", []):
        updated = collection("post").find_one_and_update(
            {"_id": post["_id"]}, {"$pull": {"likes": uid}},
            projection={"likes": 1}, return_document=ReturnDocument.AFTER)
        delete_matching(post["author"], "like", uid, post["_id"])
    else:
        updated = collection("post").find_one_and_update(
            {"_id": post["_id"]}, {"$addToSet": {"likes": uid}},
            projection={"likes": 1}, return_document=ReturnDocument.AFTER)
        # Upsert so two racing likes leave a single notification.
        note = upsert_notification(post["author"], "like", uid, post["_id"])
        if note:
            events.append(Event(name="newNotification", payload=to_public(note),
                                user_id=str(post["author"])))

    if updated is None:
        raise NotFoundError("Post not found")
    likes = [str(i) for i in updated.get("likes", [])]
    events.extend(_post_events(post, user_id, "likeUpdated", {"postId": str(post["_id"]), "likes": likes}))
    return likes


def add_comment(post_id, user_id, content: str, events: List[Event]) -> List[dict]:
    uid = to_object_id(user_id)
    updated = collection("post").find_one_and_update(
        {"_id": to_object_id(post_id, "post id")},
        {"$push": {"comments": {"content": content, "user": uid, "created_at": now()}}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise NotFoundError("Post not found")

    note_id = create_notification(updated["author"], "comment", uid, updated["_id"])
    if note_id:
        note = get_document("notification", {"_id": to_object_id(note_id)})
        events.append(Event(name="newNotification", payload=to_public(note),
                            user_id=str(updated["author"])))

    comments = _enrich_comments(updated.get("comments", []))
    events.extend(_post_events(updated, user_id, "commentAdded",
                               {"postId": str(updated["_id"]), "comments": comments}))
    return comments
