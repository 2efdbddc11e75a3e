"""
Connection ledger and request workflow.

A request between two users moves Pending -> Accepted or Pending -> Rejected;
both end states are final. Rejected records are kept but never block a new
request. Accepted requests are mirrored in each user's ``connections`` list.

Status labels returned by `get_status` and pushed in ``statusUpdate`` events
are the button states of the client:

    "disconnect"  already connected
    "pending"     request sent by the current user
    "received"    request sent to the current user (comes with ``requestId``)
    "connect"     no relation
"""

import logging
from typing import List

from pymongo import ReturnDocument

from database import (collection, create_document, get_document, get_documents, now, to_object_id,
                      to_public, update_document)
from errors import (AlreadyConnectedError, DuplicatePendingError, InvalidOperationError,
                    InvalidStateError, NotFoundError)
from notifications import upsert_notification
from presence import Event, status_update
from schemas import Connection
from users import CONNECTION_FIELDS, REQUESTER_FIELDS, get_user, public_summaries, resolve

logger = logging.getLogger(__name__)

ALREADY_CONNECTED = "disconnect"
PENDING_SENT = "pending"
PENDING_RECEIVED = "received"
NO_RELATION = "connect"


def _get_connection(connection_id) -> dict:
    conn = get_document("connection", {"_id": to_object_id(connection_id, "connection id")})
    if not conn:
        raise NotFoundError("Connection does not exist")
    return conn


def _pending_between(a, b):
    """The Pending record for the unordered pair {a, b}, if any."""
    a, b = to_object_id(a), to_object_id(b)
    return get_document("connection", {
        "$or": [{"sender": a, "receiver": b}, {"sender": b, "receiver": a}],
        "status": "pending",
    })


def _is_connected(user: dict, other) -> bool:
    return to_object_id(other) in user.get("connections", [])


def send_request(sender_id, receiver_id, events: List[Event]) -> dict:
    if str(sender_id) == str(receiver_id):
        raise InvalidOperationError("You can not send a request to yourself")
    sender = get_user(sender_id)
    receiver = get_user(receiver_id)
    if _is_connected(sender, receiver["_id"]):
        raise AlreadyConnectedError("You are already connected")

    existing = _pending_between(sender["_id"], receiver["_id"])
    if existing:
        if existing["sender"] == sender["_id"]:
            raise DuplicatePendingError("Request already exists")
        raise DuplicatePendingError("This user already sent you a request; accept it instead")

    conn_id = create_document("connection", Connection(sender=sender["_id"], receiver=receiver["_id"]))
    logger.info("connection %s: %s -> %s pending", conn_id, sender_id, receiver_id)

    events.append(status_update(receiver_id, sender_id, PENDING_RECEIVED))
    events.append(status_update(sender_id, receiver_id, PENDING_SENT))
    return to_public(_get_connection(conn_id))


def _complete_acceptance(conn: dict) -> dict:
    """Steps after the status flip. Each is idempotent, so replaying is safe."""
    sender, receiver = conn["sender"], conn["receiver"]
    update_document("user", {"_id": receiver}, {"$addToSet": {"connections": sender}})
    update_document("user", {"_id": sender}, {"$addToSet": {"connections": receiver}})
    return upsert_notification(sender, "connectionAccepted", receiver, related_connection=conn["_id"])


def accept_request(connection_id, acting_user_id, events: List[Event]) -> dict:
    conn = _get_connection(connection_id)
    if conn["status"] != "pending":
        raise InvalidStateError("Request is no longer pending")
    if str(conn["receiver"]) != str(acting_user_id):
        raise InvalidOperationError("Only the receiver can accept this request")

    # Compare-and-set: a concurrent accept/reject leaves us with nothing to update.
    updated = collection("connection").find_one_and_update(
        {"_id": conn["_id"], "status": "pending"},
        {"$set": {"status": "accepted", "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise InvalidStateError("Request is no longer pending")

    note = _complete_acceptance(updated)
    logger.info("connection %s: accepted by %s", connection_id, acting_user_id)

    sender, receiver = str(updated["sender"]), str(updated["receiver"])
    events.append(status_update(receiver, sender, ALREADY_CONNECTED))
    events.append(status_update(sender, receiver, ALREADY_CONNECTED))
    if note:
        events.append(Event(name="newNotification", payload=to_public(note), user_id=sender))
    return to_public(updated)


def resume_acceptance(connection_id) -> dict:
    """Re-run the follow-up steps of an accepted request after a partial failure."""
    conn = _get_connection(connection_id)
    if conn["status"] != "accepted":
        raise InvalidStateError("Only accepted requests can be resumed")
    _complete_acceptance(conn)
    logger.info("connection %s: acceptance replayed", connection_id)
    return to_public(conn)


def reject_request(connection_id, acting_user_id) -> dict:
    conn = _get_connection(connection_id)
    if conn["status"] != "pending":
        raise InvalidStateError("Request is no longer pending")
    if str(conn["receiver"]) != str(acting_user_id):
        raise InvalidOperationError("Only the receiver can reject this request")

    updated = collection("connection").find_one_and_update(
        {"_id": conn["_id"], "status": "pending"},
        {"$set": {"status": "rejected", "updated_at": now()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise InvalidStateError("Request is no longer pending")
    logger.info("connection %s: rejected by %s", connection_id, acting_user_id)
    return to_public(updated)


def get_status(current_user_id, target_user_id) -> dict:
    me = get_user(current_user_id)
    if _is_connected(me, target_user_id):
        return {"status": ALREADY_CONNECTED}

    pending = _pending_between(me["_id"], target_user_id)
    if pending:
        if pending["sender"] == me["_id"]:
            return {"status": PENDING_SENT}
        return {"status": PENDING_RECEIVED, "requestId": str(pending["_id"])}
    return {"status": NO_RELATION}


def remove_connection(user_id, other_user_id, events: List[Event]) -> None:
    me, other = to_object_id(user_id), to_object_id(other_user_id, "user id")
    update_document("user", {"_id": me}, {"$pull": {"connections": other}})
    update_document("user", {"_id": other}, {"$pull": {"connections": me}})
    logger.info("connection: %s removed %s", user_id, other_user_id)

    events.append(status_update(other_user_id, user_id, NO_RELATION))
    events.append(status_update(user_id, other_user_id, NO_RELATION))


def list_incoming_requests(user_id) -> List[dict]:
    requests = get_documents("connection", {"receiver": to_object_id(user_id), "status": "pending"},
                             sort=[("created_at", -1), ("_id", -1)])
    senders = public_summaries([r["sender"] for r in requests], REQUESTER_FIELDS)
    out = []
    for r in requests:
        item = to_public(r)
        item["sender"] = senders.get(item["sender"])
        out.append(item)
    return out


def list_connections(user_id) -> List[dict]:
    user = get_user(user_id)
    return resolve(user.get("connections", []), CONNECTION_FIELDS)
