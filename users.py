"""User directory: profiles, search and suggestions."""

import logging
import re
from typing import Dict, Iterable, List

from pymongo.errors import DuplicateKeyError, OperationFailure

from auth import normalize_username
from database import (collection, get_document, get_documents, to_object_id, to_public,
                      update_document)
from errors import ConflictError, NotFoundError
from schemas import ProfileUpdate
from settings import settings

logger = logging.getLogger(__name__)

# Public field sets used when one entity is enriched with another's author.
AUTHOR_FIELDS = ("first_name", "last_name", "profile_image", "headline", "username")
COMMENTER_FIELDS = ("first_name", "last_name", "profile_image", "headline")
REQUESTER_FIELDS = ("first_name", "last_name", "email", "username", "profile_image", "headline")
CONNECTION_FIELDS = ("first_name", "last_name", "username", "profile_image", "headline", "connections")
ACTOR_FIELDS = ("first_name", "last_name", "profile_image")
SEARCH_FIELDS = ("first_name", "last_name", "username", "profile_image", "headline", "skills")

NO_PASSWORD = {"password_hash": 0}


def _projection(fields: Iterable[str]) -> Dict[str, int]:
    return {f: 1 for f in fields}


def get_user(user_id) -> dict:
    """Raw user document. Raises NotFoundError."""
    user = get_document("user", {"_id": to_object_id(user_id, "user id")})
    if not user:
        raise NotFoundError("User not found")
    return user


def get_current_user(user_id) -> dict:
    return to_public(get_user(user_id))


def public_summaries(ids: Iterable, fields: Iterable[str]) -> Dict[str, dict]:
    """Resolve user ids to {id: public fields}. Unknown ids are left out."""
    oids = list({to_object_id(i) for i in ids})
    if not oids:
        return {}
    docs = get_documents("user", {"_id": {"$in": oids}}, projection=_projection(fields))
    return {str(d["_id"]): to_public(d) for d in docs}


def resolve(ids: Iterable, fields: Iterable[str]) -> List[dict]:
    """Resolve ids in order, dropping dangling references."""
    ids = list(ids)
    summaries = public_summaries(ids, fields)
    return [summaries[str(i)] for i in ids if str(i) in summaries]


def update_profile(user_id, changes: ProfileUpdate) -> dict:
    update = changes.model_dump(exclude_unset=True)
    if "username" in update:
        update["username"] = normalize_username(update["username"])
        taken = get_document("user", {"username": update["username"],
                                      "_id": {"$ne": to_object_id(user_id)}})
        if taken:
            raise ConflictError("Username already exists")
    if update:
        try:
            matched = update_document("user", {"_id": to_object_id(user_id)}, {"$set": update})
        except DuplicateKeyError:
            raise ConflictError("Username already exists")
        if not matched:
            raise NotFoundError("User not found")
    return get_current_user(user_id)


def get_profile(username: str) -> dict:
    pattern = "^" + re.escape(username.strip()) + "$"
    user = get_document("user", {"username": {"$regex": pattern, "$options": "i"}}, NO_PASSWORD)
    if not user:
        raise NotFoundError("User not found")
    return to_public(user)


def _text_search(query: str) -> List[dict]:
    cursor = (collection("user")
              .find({"$text": {"$search": query}},
                    {**_projection(SEARCH_FIELDS), "score": {"$meta": "textScore"}})
              .sort([("score", {"$meta": "textScore"})])
              .limit(settings.SEARCH_LIMIT))
    return list(cursor)


def _regex_search(query: str) -> List[dict]:
    pattern = {"$regex": re.escape(query), "$options": "i"}
    return get_documents(
        "user",
        {"$or": [{"first_name": pattern}, {"last_name": pattern},
                 {"username": pattern}, {"skills": pattern}]},
        limit=settings.SEARCH_LIMIT,
        projection=_projection(SEARCH_FIELDS),
    )


def search_users(query: str) -> List[dict]:
    if not query or not query.strip():
        return []
    query = query.strip()
    try:
        users = _text_search(query)
    except OperationFailure as exc:
        # No text index yet (or the server rejected the query).
        logger.warning("users: text search failed, using regex fallback: %s", exc)
        users = _regex_search(query)
    for u in users:
        u.pop("score", None)
    return [to_public(u) for u in users]


def suggested_users(user_id) -> List[dict]:
    me = get_user(user_id)
    docs = get_documents(
        "user",
        {"_id": {"$ne": me["_id"], "$nin": me.get("connections", [])}},
        limit=settings.SUGGESTION_LIMIT,
        projection=NO_PASSWORD,
    )
    return [to_public(d) for d in docs]
