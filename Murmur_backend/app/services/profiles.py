from app.services.lifecycle import new_id
from app.services.outcome import Outcome
from schemas.store import Snapshot
from schemas.user import DEFAULT_AVATAR_URL, UserProfile


def create_profile(
    snapshot: Snapshot,
    display_name: str,
    avatar_url: str | None = None,
    default_avatar_url: str = DEFAULT_AVATAR_URL,
) -> UserProfile:
    """Create a profile and hand it straight to the caller's session."""
    user_id = new_id()
    while snapshot.user(user_id) is not None:
        user_id = new_id()
    user = UserProfile(
        id=user_id,
        display_name=display_name,
        avatar_url=avatar_url or default_avatar_url,
        taken=True,
    )
    snapshot.users.append(user)
    return user


def _set_taken(snapshot: Snapshot, user_id: str, taken: bool) -> Outcome:
    user = snapshot.user(user_id)
    if user is None:
        return Outcome.NOT_FOUND
    if user.taken == taken:
        return Outcome.UNCHANGED
    user.taken = taken
    return Outcome.APPLIED


def mark_user_taken(snapshot: Snapshot, user_id: str) -> Outcome:
    return _set_taken(snapshot, user_id, True)


def free_user(snapshot: Snapshot, user_id: str) -> Outcome:
    return _set_taken(snapshot, user_id, False)


def available_users(snapshot: Snapshot) -> list[UserProfile]:
    return [u for u in snapshot.users if not u.taken]
