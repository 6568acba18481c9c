"""Read-only projections over spaces.

Nothing here mutates. Every front end renders from these so the policy
lives in one place, and they are cheap enough to run on each poll tick.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Sequence

from app.services import lifecycle
from schemas.space import Role, Space


class JoinStatus(str, Enum):
    BANNED = "Banned"
    APPROVED = "Approved"
    LOBBY = "Lobby"
    PENDING = "Pending approval"
    REJECTED = "Rejected"
    REQUEST = "Request to join"


class SpeakRequestStatus(str, Enum):
    SPEAKER = "speaker"
    PENDING = "pending"
    REJECTED = "rejected"
    AVAILABLE = "available"


class Capability(str, Enum):
    BROADCAST_AUDIO = "broadcast_audio"
    MODERATE = "moderate"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.HOST: frozenset({Capability.BROADCAST_AUDIO, Capability.MODERATE}),
    Role.SPEAKER: frozenset({Capability.BROADCAST_AUDIO}),
    Role.LISTENER: frozenset(),
    Role.REQUESTED: frozenset(),
}


@dataclass
class Counts:
    speakers: int
    listeners: int


@dataclass
class Page:
    items: list = field(default_factory=list)
    page: int = 1
    per_page: int = 5
    total: int = 0
    pages: int = 0


def get_join_status(space: Space, user_id: str | None) -> Optional[JoinStatus]:
    # order matters: several of these can hold at once
    if not user_id:
        return None
    if user_id in space.banned:
        return JoinStatus.BANNED
    if space.is_participant(user_id):
        return JoinStatus.APPROVED
    if user_id in space.approved_to_join:
        return JoinStatus.LOBBY
    if user_id in space.ask_to_join_queue:
        return JoinStatus.PENDING
    if user_id in space.ask_to_join_history:
        return JoinStatus.REJECTED
    if not space.ask_to_join:
        return JoinStatus.LOBBY
    return JoinStatus.REQUEST


def get_counts(space: Space) -> Counts:
    # the host speaks without being listed in speakers
    host_extra = 0 if space.host in space.speakers else 1
    return Counts(speakers=len(space.speakers) + host_extra, listeners=len(space.listeners))


def capabilities_for(space: Space, user_id: str | None) -> frozenset[Capability]:
    participant = space.participant(user_id)
    if participant is None:
        return frozenset()
    return ROLE_CAPABILITIES[participant.role]


def can_moderate(space: Space, user_id: str | None) -> bool:
    return Capability.MODERATE in capabilities_for(space, user_id)


def can_speak(space: Space, user_id: str | None) -> bool:
    if not space.is_participant(user_id):
        return False
    if not space.ask_to_speak:
        return True
    return Capability.BROADCAST_AUDIO in capabilities_for(space, user_id)


def speak_request_status(space: Space, user_id: str | None) -> Optional[SpeakRequestStatus]:
    participant = space.participant(user_id)
    if participant is None:
        return None
    if Capability.BROADCAST_AUDIO in ROLE_CAPABILITIES[participant.role]:
        return SpeakRequestStatus.SPEAKER
    if user_id in space.ask_to_speak_queue:
        return SpeakRequestStatus.PENDING
    if user_id in space.rejected_speakers:
        return SpeakRequestStatus.REJECTED
    return SpeakRequestStatus.AVAILABLE


def filter_spaces(
    spaces: Iterable[Space],
    query: str = "",
    status: str = "all",
    now: int | None = None,
) -> list[Space]:
    needle = (query or "").strip().lower()
    wanted = (status or "all").strip().lower()
    result = []
    for space in spaces:
        if needle and needle not in space.title.lower() and needle not in space.description.lower():
            continue
        if wanted != "all":
            if wanted == lifecycle.SpaceStatus.ENDED.value:
                if not lifecycle.is_ended(space):
                    continue
            elif wanted == lifecycle.SpaceStatus.SCHEDULED.value:
                if not lifecycle.is_scheduled(space, now):
                    continue
            elif wanted == lifecycle.SpaceStatus.LIVE.value:
                if not lifecycle.is_live(space, now):
                    continue
            else:
                continue
        result.append(space)
    return result


def paginate(items: Sequence, page: int = 1, per_page: int = 5) -> Page:
    per_page = max(1, per_page)
    total = len(items)
    pages = math.ceil(total / per_page)
    page = max(1, page)
    start = (page - 1) * per_page
    return Page(items=list(items[start:start + per_page]), page=page, per_page=per_page, total=total, pages=pages)


def recent_spaces(spaces: Iterable[Space], user_id: str, limit: int = 5) -> list[Space]:
    mine = [s for s in spaces if s.is_participant(user_id) or user_id in s.approved_to_join]
    return mine[:limit]


def top_spaces(spaces: Iterable[Space], limit: int = 5) -> list[Space]:
    return sorted(spaces, key=lambda s: len(s.participants), reverse=True)[:limit]


def active_space_for(spaces: Iterable[Space], user_id: str) -> Optional[Space]:
    for space in spaces:
        if space.active and not space.ended_at and space.is_participant(user_id):
            return space
    return None


def space_view(space: Space, user_id: str | None = None, now: int | None = None) -> dict:
    now = now if now is not None else lifecycle.now_ms()
    counts = get_counts(space)
    join_status = get_join_status(space, user_id)
    speak_status = speak_request_status(space, user_id)
    return {
        "space_id": space.id,
        "status": lifecycle.space_status(space, now).value,
        "ended": lifecycle.is_ended(space),
        "scheduled": lifecycle.is_scheduled(space, now),
        "can_join_now": lifecycle.can_join_now(space, now),
        "remaining_ms": lifecycle.remaining_time(space, now),
        "progress": lifecycle.progress_percent(space, now),
        "ending_soon": lifecycle.is_ending_soon(space, now),
        "speakers": counts.speakers,
        "listeners": counts.listeners,
        "participants": len(space.participants),
        "capacity": space.capacity,
        "join_status": join_status.value if join_status else None,
        "speak_status": speak_status.value if speak_status else None,
        "capabilities": sorted(c.value for c in capabilities_for(space, user_id)),
        "can_speak": can_speak(space, user_id),
    }
