from __future__ import annotations

import redis

from boop.api.models import FriendRequestNotification, FriendSummary, NearbyIdentity
from boop.identity_store import get_identity, identity_exists
from boop.streams import Mailbox, queue_to_mailbox


FRIENDS_OUT_PREFIX = "boop:friends_out:"  # + {id}: ids this identity has added
FRIENDS_IN_PREFIX = "boop:friends_in:"  # + {id}: ids that have added this identity
LOCATIONS_KEY = "boop:locations"

NEARBY_RADIUS_MILES = 1000
NEARBY_LIMIT = 50


def _out_key(identity_id: int) -> str:
    return f"{FRIENDS_OUT_PREFIX}{identity_id}"


def _in_key(identity_id: int) -> str:
    return f"{FRIENDS_IN_PREFIX}{identity_id}"


def _summaries(*, r: redis.Redis, ids: set[str]) -> list[FriendSummary]:
    out: list[FriendSummary] = []
    for sid in ids:
        identity = get_identity(r=r, identity_id=int(sid))
        if identity is None:
            continue
        out.append(
            FriendSummary(
                identity_id=identity.identity_id,
                display_name=identity.display_name,
                sent_score=identity.sent_score,
                received_score=identity.received_score,
            )
        )
    out.sort(key=lambda f: (f.display_name.casefold(), f.identity_id))
    return out


def add_friend(*, r: redis.Redis, initiator_id: int, target_id: int) -> FriendRequestNotification:
    """Record that `initiator_id` added `target_id`.

    The friendship is mutual once both directions exist; until then it is a
    pending request. Returns the notification queued to the target's mailbox.
    """

    if initiator_id == target_id:
        raise ValueError("Cannot add yourself as a friend")
    if not identity_exists(r=r, identity_id=target_id):
        raise ValueError("Identity not found")
    if r.sismember(_out_key(initiator_id), str(target_id)):
        raise ValueError("Friend request already exists")

    notification = FriendRequestNotification(initiator_id=initiator_id, target_id=target_id)
    pipe = r.pipeline(transaction=True)
    pipe.sadd(_out_key(initiator_id), str(target_id))
    pipe.sadd(_in_key(target_id), str(initiator_id))
    queue_to_mailbox(pipe=pipe, mailbox=Mailbox(identity_id=target_id), fields=notification.model_dump(mode="json"))
    pipe.execute()
    return notification


def remove_friend(*, r: redis.Redis, initiator_id: int, target_id: int) -> None:
    # Both directions go, so a removed friendship does not linger as a request.
    pipe = r.pipeline(transaction=True)
    pipe.srem(_out_key(initiator_id), str(target_id))
    pipe.srem(_in_key(target_id), str(initiator_id))
    pipe.srem(_out_key(target_id), str(initiator_id))
    pipe.srem(_in_key(initiator_id), str(target_id))
    pipe.execute()


def list_friends(*, r: redis.Redis, identity_id: int) -> list[FriendSummary]:
    return _summaries(r=r, ids=set(r.sinter(_out_key(identity_id), _in_key(identity_id))))


def pending_requests(*, r: redis.Redis, identity_id: int) -> list[FriendSummary]:
    """Identities this one has added that have not added it back."""

    return _summaries(r=r, ids=set(r.sdiff(_out_key(identity_id), _in_key(identity_id))))


def friend_requests(*, r: redis.Redis, identity_id: int) -> list[FriendSummary]:
    """Identities that added this one and are still waiting for it to add them back."""

    return _summaries(r=r, ids=set(r.sdiff(_in_key(identity_id), _out_key(identity_id))))


def update_location(*, r: redis.Redis, identity_id: int, latitude: float, longitude: float) -> None:
    r.geoadd(LOCATIONS_KEY, [longitude, latitude, str(identity_id)])


def delete_location(*, r: redis.Redis, identity_id: int) -> None:
    r.zrem(LOCATIONS_KEY, str(identity_id))


def nearby_identities(
    *,
    r: redis.Redis,
    identity_id: int,
    radius_miles: float = NEARBY_RADIUS_MILES,
    limit: int = NEARBY_LIMIT,
) -> list[NearbyIdentity]:
    """Closest identities to this one's stored location, nearest first."""

    member = str(identity_id)
    if r.geopos(LOCATIONS_KEY, member) == [None]:
        raise ValueError("Location not set")

    hits = r.geosearch(
        LOCATIONS_KEY,
        member=member,
        radius=radius_miles,
        unit="mi",
        withdist=True,
        sort="ASC",
        count=limit + 1,
    )

    out: list[NearbyIdentity] = []
    for name, dist in hits:
        if name == member:
            continue
        identity = get_identity(r=r, identity_id=int(name))
        if identity is None:
            continue
        out.append(NearbyIdentity(identity_id=identity.identity_id, display_name=identity.display_name, distance_miles=float(dist)))
    return out[:limit]
