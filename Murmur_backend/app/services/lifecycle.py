"""Space creation, termination and the timing policy every caller shares.

All times are epoch milliseconds. Functions that depend on the clock take an
optional ``now`` so callers (and tests) can evaluate a space at a fixed
instant; ``None`` means the wall clock.
"""
import secrets
import string
import time
from enum import Enum
from typing import Iterable

from app.services.outcome import Outcome
from schemas.space import (
    DEFAULT_CAPACITY,
    DEFAULT_DURATION_MS,
    CreateSpaceOptions,
    ParticipantData,
    Role,
    Space,
)
from schemas.user import DEFAULT_AVATAR_URL, UserProfile

JOIN_WINDOW_MS = 5 * 60 * 1000
ENDING_SOON_MS = 60 * 1000

_ID_ALPHABET = string.ascii_lowercase + string.digits


class SpaceStatus(str, Enum):
    LIVE = "live"
    SCHEDULED = "scheduled"
    ENDED = "ended"


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(length: int = 8) -> str:
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


def create_space(
    title: str,
    description: str,
    host: UserProfile,
    options: CreateSpaceOptions | None = None,
    now: int | None = None,
) -> Space:
    options = options or CreateSpaceOptions()
    host_participant = ParticipantData(
        id=host.id,
        display_name=host.display_name,
        avatar_url=host.avatar_url or DEFAULT_AVATAR_URL,
        role=Role.HOST,
        muted=False,
    )
    started_at = options.start_time or (now if now is not None else now_ms())
    return Space(
        id=new_id(),
        title=title,
        description=description,
        remote_name=f"remote_{new_id()}",
        participants=[host_participant],
        host=host.id,
        started_at=started_at,
        duration=options.duration if options.duration is not None else DEFAULT_DURATION_MS,
        capacity=options.capacity if options.capacity is not None else DEFAULT_CAPACITY,
        ask_to_speak=bool(options.ask_to_speak),
        ask_to_join=bool(options.ask_to_join),
    )


def end_space(space: Space, now: int | None = None) -> Outcome:
    # ended_at is written once; ending an ended space keeps the first timestamp
    if space.ended_at and not space.active:
        return Outcome.UNCHANGED
    space.active = False
    space.ended_at = now if now is not None else now_ms()
    return Outcome.APPLIED


def is_ended(space: Space) -> bool:
    return space.ended_at != 0 and not space.active


def is_scheduled(space: Space, now: int | None = None) -> bool:
    now = now if now is not None else now_ms()
    return now < space.started_at


def is_live(space: Space, now: int | None = None) -> bool:
    return space.active and not is_ended(space) and not is_scheduled(space, now)


def can_join_now(space: Space, now: int | None = None) -> bool:
    """Joinable from five minutes before the scheduled start until it ends."""
    now = now if now is not None else now_ms()
    return space.started_at - now <= JOIN_WINDOW_MS and not is_ended(space)


def remaining_time(space: Space, now: int | None = None) -> int:
    now = now if now is not None else now_ms()
    return space.started_at + space.duration - now


def progress_percent(space: Space, now: int | None = None) -> float:
    total = space.duration or 1
    progress = (1 - remaining_time(space, now) / total) * 100
    return max(0.0, min(progress, 100.0))


def is_expired(space: Space, now: int | None = None) -> bool:
    return remaining_time(space, now) < 0


def is_ending_soon(space: Space, now: int | None = None) -> bool:
    remaining = remaining_time(space, now)
    return 0 <= remaining < ENDING_SOON_MS


def space_status(space: Space, now: int | None = None) -> SpaceStatus:
    if is_ended(space) or not space.active:
        return SpaceStatus.ENDED
    if is_scheduled(space, now):
        return SpaceStatus.SCHEDULED
    return SpaceStatus.LIVE


def due_for_expiry(spaces: Iterable[Space], now: int | None = None) -> list[Space]:
    now = now if now is not None else now_ms()
    return [s for s in spaces if s.active and not is_ended(s) and is_expired(s, now)]
