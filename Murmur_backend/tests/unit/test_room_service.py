import pytest

from app.services.outcome import Outcome
from app.services.rooms import RoomService
from app.storage.gateway import StoreConflict
from app.storage.memory import MemoryGateway
from schemas.space import CreateSpaceOptions, Role
from schemas.store import Snapshot
from schemas.user import UserProfile


class InterruptedGateway(MemoryGateway):
    """Another writer sneaks in a save right before our first one."""

    def __init__(self, snapshot=None):
        super().__init__(snapshot)
        self.interrupted = False

    async def save(self, snapshot):
        if not self.interrupted:
            self.interrupted = True
            other = await self.load()
            other.users.append(UserProfile(id="racer001", display_name="Racer"))
            await super().save(other)
        return await super().save(snapshot)


class AlwaysConflicting(MemoryGateway):
    def __init__(self, snapshot=None):
        super().__init__(snapshot)
        self.attempts = 0

    async def save(self, snapshot):
        self.attempts += 1
        raise StoreConflict(snapshot.version, snapshot.version + 1)


class BrokenPublisher:
    async def publish(self, space_id, message):
        raise RuntimeError("socket gone")


def _seeded(*users):
    return Snapshot(users=list(users))


@pytest.fixture
def people(host, alice, bob):
    return _seeded(host, alice, bob)


@pytest.mark.asyncio
async def test_create_space_persists_and_publishes(people, host, publisher):
    gateway = MemoryGateway(people)
    rooms = RoomService(gateway, publisher=publisher)

    result = await rooms.create_space("Evening", "wind down", host.id, CreateSpaceOptions(ask_to_join=True))

    assert result.outcome == Outcome.APPLIED
    stored = (await gateway.load()).space(result.space.id)
    assert stored.title == "Evening"
    assert stored.ask_to_join is True
    assert stored.participant(host.id).role == Role.HOST

    space_id, message = publisher.events[-1]
    assert space_id == result.space.id
    assert message["type"] == "space_update"
    assert message["action"] == "create"
    assert message["space"]["askToJoin"] is True


@pytest.mark.asyncio
async def test_create_space_requires_known_host(people):
    gateway = MemoryGateway(people)
    rooms = RoomService(gateway)

    result = await rooms.create_space("Evening", "", "nobody01")

    assert result.outcome == Outcome.NOT_FOUND
    assert result.space is None
    assert (await gateway.load()).spaces == []


@pytest.mark.asyncio
async def test_unknown_space_is_not_found_and_not_saved(people, alice):
    gateway = MemoryGateway(people)
    rooms = RoomService(gateway)
    before = (await gateway.load()).version

    result = await rooms.join_space("missing1", alice.id)

    assert result.outcome == Outcome.NOT_FOUND
    assert result.space is None
    assert (await gateway.load()).version == before


@pytest.mark.asyncio
async def test_join_by_unknown_user(people, host):
    rooms = RoomService(MemoryGateway(people))
    space = (await rooms.create_space("Evening", "", host.id)).space

    result = await rooms.join_space(space.id, "ghost001")

    assert result.outcome == Outcome.NOT_FOUND
    assert result.space.id == space.id


@pytest.mark.asyncio
async def test_refused_commands_leave_store_untouched(people, host, alice, publisher):
    gateway = MemoryGateway(people)
    rooms = RoomService(gateway, publisher=publisher)
    space = (await rooms.create_space("Evening", "", host.id)).space
    await rooms.join_space(space.id, alice.id)
    version = (await gateway.load()).version
    published = len(publisher.events)

    assert (await rooms.join_space(space.id, alice.id)).outcome == Outcome.ALREADY_MEMBER
    assert (await rooms.request_to_speak(space.id, alice.id)).outcome == Outcome.INVALID_STATE

    assert (await gateway.load()).version == version
    assert len(publisher.events) == published


@pytest.mark.asyncio
async def test_gated_join_round_trip(people, host, bob):
    gateway = MemoryGateway(people)
    rooms = RoomService(gateway)
    space = (await rooms.create_space("Evening", "", host.id, CreateSpaceOptions(ask_to_join=True))).space

    assert (await rooms.join_space(space.id, bob.id)).outcome == Outcome.QUEUED
    assert (await rooms.approve_join_request(space.id, bob.id)).outcome == Outcome.APPLIED

    stored = (await gateway.load()).space(space.id)
    assert stored.participant(bob.id).role == Role.LISTENER
    assert stored.ask_to_join_queue == []
    assert stored.approved_to_join == [bob.id]


@pytest.mark.asyncio
async def test_speaking_flow_through_service(people, host, alice):
    rooms = RoomService(MemoryGateway(people))
    space = (await rooms.create_space("Evening", "", host.id, CreateSpaceOptions(ask_to_speak=True))).space
    await rooms.join_space(space.id, alice.id)

    assert (await rooms.request_to_speak(space.id, alice.id, now=42)).outcome == Outcome.QUEUED
    result = await rooms.approve_request(space.id, alice.id)

    assert result.outcome == Outcome.APPLIED
    assert result.space.speakers == [alice.id]
    assert result.space.ask_to_speak_timestamps == {alice.id: 42}
    assert (await rooms.mute_participant(space.id, alice.id, False)).outcome == Outcome.APPLIED


@pytest.mark.asyncio
async def test_host_leaving_ends_space_in_store(people, host):
    gateway = MemoryGateway(people)
    rooms = RoomService(gateway)
    space = (await rooms.create_space("Evening", "", host.id)).space

    result = await rooms.leave_space(space.id, host.id, now=1234)

    assert result.outcome == Outcome.APPLIED
    stored = (await gateway.load()).space(space.id)
    assert stored.active is False
    assert stored.ended_at == 1234


@pytest.mark.asyncio
async def test_capacity_enforcement_is_configurable(people, host, alice):
    rooms = RoomService(MemoryGateway(people), enforce_capacity=True)
    space = (await rooms.create_space("Tiny", "", host.id, CreateSpaceOptions(capacity=1))).space

    assert (await rooms.join_space(space.id, alice.id)).outcome == Outcome.FULL


@pytest.mark.asyncio
async def test_conflict_replays_command_on_fresh_snapshot(people, host):
    gateway = InterruptedGateway(people)
    rooms = RoomService(gateway)

    result = await rooms.create_space("Evening", "", host.id)

    assert result.outcome == Outcome.APPLIED
    stored = await gateway.load()
    assert stored.user("racer001") is not None
    assert stored.space(result.space.id) is not None


@pytest.mark.asyncio
async def test_conflict_gives_up_after_max_retries(people, host):
    gateway = AlwaysConflicting(people)
    rooms = RoomService(gateway, max_retries=2)

    with pytest.raises(StoreConflict):
        await rooms.create_space("Evening", "", host.id)
    assert gateway.attempts == 3


@pytest.mark.asyncio
async def test_publish_failure_does_not_fail_command(people, host):
    rooms = RoomService(MemoryGateway(people), publisher=BrokenPublisher())

    result = await rooms.create_space("Evening", "", host.id)

    assert result.outcome == Outcome.APPLIED


@pytest.mark.asyncio
async def test_profiles(gateway):
    rooms = RoomService(gateway, default_avatar_url="https://example.org/a.png")

    user = await rooms.create_profile("Dana")

    assert user.taken is True
    assert user.avatar_url == "https://example.org/a.png"
    assert (await rooms.get_user(user.id)).display_name == "Dana"
    assert await rooms.available_users() == []

    assert await rooms.free_user(user.id) == Outcome.APPLIED
    assert [u.id for u in await rooms.available_users()] == [user.id]
    assert await rooms.free_user(user.id) == Outcome.UNCHANGED
    assert await rooms.mark_user_taken(user.id) == Outcome.APPLIED
    assert await rooms.mark_user_taken("ghost001") == Outcome.NOT_FOUND


@pytest.mark.asyncio
async def test_list_and_user_spaces(people, host, alice):
    rooms = RoomService(MemoryGateway(people))
    for i in range(7):
        await rooms.create_space(f"Talk {i}", "weekly", host.id)
    jazz = (await rooms.create_space("Jazz night", "", host.id)).space
    await rooms.join_space(jazz.id, alice.id)

    first = await rooms.list_spaces()
    assert first.total == 8
    assert first.pages == 2
    assert len(first.items) == 5

    found = await rooms.list_spaces("jazz")
    assert [s.id for s in found.items] == [jazz.id]

    mine = await rooms.user_spaces(alice.id)
    assert [s.id for s in mine["recent"]] == [jazz.id]
    assert mine["top"][0].id == jazz.id
    assert mine["active"].id == jazz.id


@pytest.mark.asyncio
async def test_replace_snapshot_overwrites_document(people, host, alice):
    gateway = MemoryGateway(people)
    rooms = RoomService(gateway)
    await rooms.create_space("Evening", "", host.id)

    saved = await rooms.replace_snapshot([alice], [])

    assert [u.id for u in saved.users] == [alice.id]
    assert saved.spaces == []
    assert (await gateway.load()).spaces == []
