"""Membership and role state machine for a single space.

Every command mutates the given ``Space`` in place and returns an
``Outcome``. Invalid preconditions leave the space untouched.

Role transitions::

    listener -> requested          request_to_speak
    requested -> speaker|listener  approve_request
    listener|requested -> speaker  grant_speaking_role
    any non-host -> listener       reject_request
    any -> (removed)               leave_space, ban_participant

The host role is fixed at creation. Removing the host ends the space.
"""
from app.services import lifecycle
from app.services.outcome import Outcome
from schemas.space import ParticipantData, Role, Space
from schemas.user import DEFAULT_AVATAR_URL, UserProfile


def _without(ids: list[str], user_id: str) -> list[str]:
    return [i for i in ids if i != user_id]


def _set_role(space: Space, participant: ParticipantData, role: Role) -> None:
    # speakers/listeners always mirror participants[*].role
    participant.role = role
    space.speakers = _without(space.speakers, participant.id)
    space.listeners = _without(space.listeners, participant.id)
    if role == Role.SPEAKER:
        space.speakers.append(participant.id)
    elif role == Role.LISTENER:
        space.listeners.append(participant.id)


def _remove_participant(space: Space, user_id: str) -> None:
    space.participants = [p for p in space.participants if p.id != user_id]
    space.speakers = _without(space.speakers, user_id)
    space.listeners = _without(space.listeners, user_id)
    space.ask_to_speak_queue = _without(space.ask_to_speak_queue, user_id)


def join_space(
    space: Space,
    user: UserProfile,
    as_speaker: bool = False,
    force_add: bool = False,
    *,
    enforce_capacity: bool = False,
) -> Outcome:
    """Admit ``user``, or queue them when the space asks to join.

    ``force_add`` is the host-approval path: the user is recorded in
    ``approved_to_join`` and admitted in the same call.
    """
    if user.id in space.banned:
        return Outcome.BANNED
    if space.is_participant(user.id):
        return Outcome.ALREADY_MEMBER
    if lifecycle.is_ended(space):
        return Outcome.INVALID_STATE

    if space.ask_to_join and not force_add and user.id not in space.approved_to_join:
        if user.id in space.ask_to_join_queue:
            return Outcome.UNCHANGED
        space.ask_to_join_queue.append(user.id)
        space.ask_to_join_history.append(user.id)
        return Outcome.QUEUED

    if enforce_capacity and len(space.participants) >= space.capacity:
        return Outcome.FULL

    if force_add and user.id not in space.approved_to_join:
        space.approved_to_join.append(user.id)

    participant = ParticipantData(
        id=user.id,
        display_name=user.display_name,
        avatar_url=user.avatar_url or DEFAULT_AVATAR_URL,
        # speakers come in muted and have to unmute themselves
        muted=as_speaker,
    )
    space.participants.append(participant)
    _set_role(space, participant, Role.SPEAKER if as_speaker else Role.LISTENER)

    space.ask_to_join_queue = _without(space.ask_to_join_queue, user.id)
    space.ask_to_join_history = _without(space.ask_to_join_history, user.id)
    return Outcome.APPLIED


def leave_space(space: Space, user_id: str, now: int | None = None) -> Outcome:
    if not space.is_participant(user_id):
        return Outcome.NOT_FOUND
    _remove_participant(space, user_id)
    if user_id == space.host:
        lifecycle.end_space(space, now)
    return Outcome.APPLIED


def mute_participant(space: Space, target_id: str, muted: bool = True) -> Outcome:
    participant = space.participant(target_id)
    if participant is None:
        return Outcome.NOT_FOUND
    if participant.muted == muted:
        return Outcome.UNCHANGED
    participant.muted = muted
    return Outcome.APPLIED


def request_to_speak(space: Space, user_id: str, now: int | None = None) -> Outcome:
    if not space.ask_to_speak:
        return Outcome.INVALID_STATE
    participant = space.participant(user_id)
    if participant is None:
        return Outcome.NOT_FOUND
    if user_id in space.ask_to_speak_queue:
        return Outcome.UNCHANGED
    if participant.role != Role.LISTENER:
        return Outcome.INVALID_STATE

    space.ask_to_speak_queue.append(user_id)
    space.ask_to_speak_history.append(user_id)
    space.ask_to_speak_timestamps[user_id] = now if now is not None else lifecycle.now_ms()
    _set_role(space, participant, Role.REQUESTED)
    return Outcome.QUEUED


def approve_request(space: Space, user_id: str, as_speaker: bool) -> Outcome:
    participant = space.participant(user_id)
    if participant is None:
        return Outcome.NOT_FOUND
    if participant.role != Role.REQUESTED:
        return Outcome.INVALID_STATE

    _set_role(space, participant, Role.SPEAKER if as_speaker else Role.LISTENER)
    participant.muted = as_speaker
    space.ask_to_speak_queue = _without(space.ask_to_speak_queue, user_id)
    return Outcome.APPLIED


def reject_request(space: Space, user_id: str) -> Outcome:
    """Deny a speak request and drop the participant back to listener.

    Unlike ``approve_request`` there is no ``requested`` precondition, so a
    current speaker is demoted as well. The host cannot be targeted.
    """
    participant = space.participant(user_id)
    if participant is None:
        return Outcome.NOT_FOUND
    if participant.role == Role.HOST:
        return Outcome.INVALID_STATE

    space.ask_to_speak_queue = _without(space.ask_to_speak_queue, user_id)
    # history is an append-only log; repeats are expected
    space.ask_to_speak_history.append(user_id)
    _set_role(space, participant, Role.LISTENER)
    space.rejected_speakers.append(user_id)
    return Outcome.APPLIED


def grant_speaking_role(space: Space, user_id: str) -> Outcome:
    participant = space.participant(user_id)
    if participant is None:
        return Outcome.NOT_FOUND
    if participant.role == Role.HOST:
        return Outcome.INVALID_STATE
    if participant.role == Role.SPEAKER:
        return Outcome.UNCHANGED

    _set_role(space, participant, Role.SPEAKER)
    participant.muted = True
    space.ask_to_speak_queue = _without(space.ask_to_speak_queue, user_id)
    return Outcome.APPLIED


def approve_join_request(
    space: Space,
    user: UserProfile,
    as_speaker: bool = False,
    *,
    enforce_capacity: bool = False,
) -> Outcome:
    if space.is_participant(user.id):
        return Outcome.ALREADY_MEMBER
    if user.id not in space.ask_to_join_queue:
        return Outcome.INVALID_STATE
    return join_space(space, user, as_speaker, force_add=True, enforce_capacity=enforce_capacity)


def reject_join_request(space: Space, user_id: str) -> Outcome:
    if user_id == space.host:
        return Outcome.INVALID_STATE
    _remove_participant(space, user_id)
    space.ask_to_join_queue = _without(space.ask_to_join_queue, user_id)
    # stays in the history so the join status reads "Rejected"
    space.ask_to_join_history.append(user_id)
    return Outcome.APPLIED


def ban_participant(space: Space, user_id: str, now: int | None = None) -> Outcome:
    if user_id in space.banned:
        return Outcome.UNCHANGED

    _remove_participant(space, user_id)
    space.ask_to_join_queue = _without(space.ask_to_join_queue, user_id)
    space.approved_to_join = _without(space.approved_to_join, user_id)
    space.banned.append(user_id)

    if user_id == space.host:
        lifecycle.end_space(space, now)
    return Outcome.APPLIED
