"""Store-backed command surface over the space state machine.

Every command is load -> mutate in memory -> save of the whole snapshot.
Writes to different spaces still rewrite the same document, so commands are
serialised by one in-process lock, and a ``StoreConflict`` from the gateway
(another process saved first) replays the command on a fresh load.
"""
import asyncio
import logging
from typing import Callable, Optional

from fastapi import Request

from app.services import lifecycle, membership, profiles, views
from app.services.outcome import CommandResult, Outcome
from app.storage.gateway import SnapshotGateway, StoreConflict
from schemas.space import CreateSpaceOptions, Space
from schemas.store import Snapshot
from schemas.user import DEFAULT_AVATAR_URL, UserProfile

logger = logging.getLogger("murmur.rooms")

Mutation = Callable[[Snapshot], tuple[Outcome, Optional[Space]]]


class RoomService:
    def __init__(
        self,
        gateway: SnapshotGateway,
        *,
        publisher=None,
        enforce_capacity: bool = False,
        max_retries: int = 3,
        default_avatar_url: str = DEFAULT_AVATAR_URL,
    ) -> None:
        self.gateway = gateway
        self.publisher = publisher
        self.enforce_capacity = enforce_capacity
        self.max_retries = max_retries
        self.default_avatar_url = default_avatar_url
        self._lock = asyncio.Lock()
        self._warned_ending: set[str] = set()

    # -- plumbing ---------------------------------------------------------

    async def _mutate(self, action: str, mutation: Mutation) -> CommandResult:
        async with self._lock:
            attempt = 0
            while True:
                snapshot = await self.gateway.load()
                outcome, space = mutation(snapshot)
                if not outcome.changed:
                    return CommandResult(outcome, space)
                try:
                    saved = await self.gateway.save(snapshot)
                except StoreConflict as exc:
                    attempt += 1
                    logger.info("SNAPSHOT_CONFLICT action=%s attempt=%s detail=%s", action, attempt, exc)
                    if attempt > self.max_retries:
                        raise
                    continue
                if saved.snapshot is not None and space is not None:
                    space = saved.snapshot.space(space.id) or space
                break
        if space is not None:
            await self._publish(action, space)
        return CommandResult(outcome, space)

    async def _space_command(
        self,
        action: str,
        space_id: str,
        op: Callable[[Snapshot, Space], Outcome],
        user_id: str | None = None,
    ) -> CommandResult:
        def mutation(snapshot: Snapshot):
            space = snapshot.space(space_id)
            if space is None:
                return Outcome.NOT_FOUND, None
            return op(snapshot, space), space

        result = await self._mutate(action, mutation)
        logger.info(
            "SPACE_%s space=%s user=%s outcome=%s",
            action.upper(),
            space_id,
            user_id or "-",
            result.outcome.value,
        )
        return result

    async def _publish(self, action: str, space: Space, event_type: str = "space_update") -> None:
        if self.publisher is None:
            return
        message = {
            "type": event_type,
            "action": action,
            "space_id": space.id,
            "space": space.model_dump(by_alias=True, mode="json"),
        }
        try:
            await self.publisher.publish(space.id, message)
        except Exception as exc:
            logger.warning("PUBLISH_FAIL space=%s action=%s error=%s", space.id, action, exc)

    # -- lifecycle --------------------------------------------------------

    async def create_space(
        self,
        title: str,
        description: str,
        host_user_id: str,
        options: CreateSpaceOptions | None = None,
        now: int | None = None,
    ) -> CommandResult:
        def mutation(snapshot: Snapshot):
            host = snapshot.user(host_user_id)
            if host is None:
                return Outcome.NOT_FOUND, None
            space = lifecycle.create_space(title, description, host, options, now=now)
            while snapshot.space(space.id) is not None:
                space.id = lifecycle.new_id()
            snapshot.spaces.append(space)
            return Outcome.APPLIED, space

        result = await self._mutate("create", mutation)
        logger.info(
            "SPACE_CREATE space=%s host=%s outcome=%s",
            result.space.id if result.space else "-",
            host_user_id,
            result.outcome.value,
        )
        return result

    async def end_space(self, space_id: str, now: int | None = None) -> CommandResult:
        return await self._space_command("end", space_id, lambda _, s: lifecycle.end_space(s, now))

    async def expire_due(self, now: int | None = None) -> list[str]:
        """End every active space whose duration has run out.

        Also publishes a one-off ``ending_soon`` event for spaces with less
        than a minute left. Returns the ids of the spaces it ended.
        """
        now = now if now is not None else lifecycle.now_ms()
        snapshot = await self.gateway.load()
        # spaces ended elsewhere (host, ban) drop out of the warned set here
        self._warned_ending &= {s.id for s in snapshot.spaces if s.active}
        ended = []
        for space in lifecycle.due_for_expiry(snapshot.spaces, now):
            result = await self.end_space(space.id, now=now)
            if result.changed:
                ended.append(space.id)
                self._warned_ending.discard(space.id)
        for space in snapshot.spaces:
            if space.id in ended or space.id in self._warned_ending:
                continue
            if space.active and lifecycle.is_ending_soon(space, now):
                self._warned_ending.add(space.id)
                await self._publish("ending_soon", space, event_type="ending_soon")
        return ended

    # -- membership -------------------------------------------------------

    async def join_space(self, space_id: str, user_id: str, as_speaker: bool = False) -> CommandResult:
        def op(snapshot: Snapshot, space: Space) -> Outcome:
            user = snapshot.user(user_id)
            if user is None:
                return Outcome.NOT_FOUND
            return membership.join_space(space, user, as_speaker, enforce_capacity=self.enforce_capacity)

        return await self._space_command("join", space_id, op, user_id)

    async def leave_space(self, space_id: str, user_id: str, now: int | None = None) -> CommandResult:
        return await self._space_command(
            "leave", space_id, lambda _, s: membership.leave_space(s, user_id, now), user_id
        )

    async def mute_participant(self, space_id: str, target_id: str, muted: bool = True) -> CommandResult:
        return await self._space_command(
            "mute", space_id, lambda _, s: membership.mute_participant(s, target_id, muted), target_id
        )

    async def request_to_speak(self, space_id: str, user_id: str, now: int | None = None) -> CommandResult:
        return await self._space_command(
            "speak_request", space_id, lambda _, s: membership.request_to_speak(s, user_id, now), user_id
        )

    async def approve_request(self, space_id: str, user_id: str, as_speaker: bool = True) -> CommandResult:
        return await self._space_command(
            "speak_approve", space_id, lambda _, s: membership.approve_request(s, user_id, as_speaker), user_id
        )

    async def reject_request(self, space_id: str, user_id: str) -> CommandResult:
        return await self._space_command(
            "speak_reject", space_id, lambda _, s: membership.reject_request(s, user_id), user_id
        )

    async def grant_speaking_role(self, space_id: str, user_id: str) -> CommandResult:
        return await self._space_command(
            "speak_grant", space_id, lambda _, s: membership.grant_speaking_role(s, user_id), user_id
        )

    async def approve_join_request(self, space_id: str, user_id: str, as_speaker: bool = False) -> CommandResult:
        def op(snapshot: Snapshot, space: Space) -> Outcome:
            user = snapshot.user(user_id)
            if user is None:
                return Outcome.NOT_FOUND
            return membership.approve_join_request(
                space, user, as_speaker, enforce_capacity=self.enforce_capacity
            )

        return await self._space_command("join_approve", space_id, op, user_id)

    async def reject_join_request(self, space_id: str, user_id: str) -> CommandResult:
        return await self._space_command(
            "join_reject", space_id, lambda _, s: membership.reject_join_request(s, user_id), user_id
        )

    async def ban_participant(self, space_id: str, user_id: str, now: int | None = None) -> CommandResult:
        return await self._space_command(
            "ban", space_id, lambda _, s: membership.ban_participant(s, user_id, now), user_id
        )

    # -- profiles ---------------------------------------------------------

    async def create_profile(self, display_name: str, avatar_url: str | None = None) -> UserProfile:
        created: list[UserProfile] = []

        def mutation(snapshot: Snapshot):
            created.append(
                profiles.create_profile(snapshot, display_name, avatar_url, self.default_avatar_url)
            )
            return Outcome.APPLIED, None

        await self._mutate("profile_create", mutation)
        # a conflict replays the mutation; the last attempt is the saved one
        created_user = created[-1]
        logger.info("PROFILE_CREATE user=%s", created_user.id)
        return created_user

    async def mark_user_taken(self, user_id: str) -> Outcome:
        result = await self._mutate("profile_take", lambda snap: (profiles.mark_user_taken(snap, user_id), None))
        return result.outcome

    async def free_user(self, user_id: str) -> Outcome:
        result = await self._mutate("profile_free", lambda snap: (profiles.free_user(snap, user_id), None))
        return result.outcome

    # -- queries ----------------------------------------------------------

    async def snapshot(self) -> Snapshot:
        return await self.gateway.load()

    async def replace_snapshot(self, users: list[UserProfile], spaces: list[Space]) -> Snapshot:
        """Overwrite the whole document, last write wins."""
        async with self._lock:
            current = await self.gateway.load()
            incoming = Snapshot(users=users, spaces=spaces, version=current.version)
            saved = await self.gateway.save(incoming)
        logger.info("SNAPSHOT_REPLACE users=%s spaces=%s", len(incoming.users), len(incoming.spaces))
        return saved.snapshot or incoming

    async def get_space(self, space_id: str) -> Optional[Space]:
        return (await self.gateway.load()).space(space_id)

    async def list_spaces(
        self,
        query: str = "",
        status: str = "all",
        page: int = 1,
        per_page: int = 5,
        now: int | None = None,
    ) -> views.Page:
        snapshot = await self.gateway.load()
        matched = views.filter_spaces(snapshot.spaces, query, status, now)
        return views.paginate(matched, page, per_page)

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        return (await self.gateway.load()).user(user_id)

    async def available_users(self) -> list[UserProfile]:
        return profiles.available_users(await self.gateway.load())

    async def user_spaces(self, user_id: str) -> dict:
        snapshot = await self.gateway.load()
        return {
            "recent": views.recent_spaces(snapshot.spaces, user_id),
            "top": views.top_spaces(snapshot.spaces),
            "active": views.active_space_for(snapshot.spaces, user_id),
        }


def get_rooms(request: Request) -> RoomService:
    return request.app.state.rooms
