import asyncio

import pytest

from app.services import lifecycle
from app.services.expiry import ExpiryWatcher
from app.services.rooms import RoomService
from app.storage.memory import MemoryGateway
from schemas.space import CreateSpaceOptions
from schemas.store import Snapshot

MINUTE = 60 * 1000


@pytest.fixture
def seeded_rooms(host, publisher):
    return RoomService(MemoryGateway(Snapshot(users=[host])), publisher=publisher)


@pytest.mark.asyncio
async def test_expire_due_ends_only_overdue_spaces(seeded_rooms, host, now):
    overdue = (await seeded_rooms.create_space("Old", "", host.id, CreateSpaceOptions(start_time=now - 20 * MINUTE))).space
    running = (await seeded_rooms.create_space("Now", "", host.id, now=now)).space
    later = (await seeded_rooms.create_space("Later", "", host.id, CreateSpaceOptions(start_time=now + 60 * MINUTE))).space

    assert await seeded_rooms.expire_due(now) == [overdue.id]

    stored = await seeded_rooms.get_space(overdue.id)
    assert stored.active is False
    assert stored.ended_at == now
    assert (await seeded_rooms.get_space(running.id)).active is True
    assert (await seeded_rooms.get_space(later.id)).active is True

    assert await seeded_rooms.expire_due(now) == []


@pytest.mark.asyncio
async def test_ending_soon_is_announced_once(seeded_rooms, host, publisher, now):
    space = (await seeded_rooms.create_space("Short", "", host.id, now=now)).space
    almost = now + 14 * MINUTE + 30 * 1000

    await seeded_rooms.expire_due(almost)
    await seeded_rooms.expire_due(almost + 1000)

    warnings = [m for sid, m in publisher.events if m["type"] == "ending_soon"]
    assert len(warnings) == 1
    assert warnings[0]["space_id"] == space.id


@pytest.mark.asyncio
async def test_watcher_tick_and_background_loop(seeded_rooms, host):
    wall = lifecycle.now_ms()
    overdue = (await seeded_rooms.create_space("Old", "", host.id, CreateSpaceOptions(start_time=wall - 20 * MINUTE))).space
    watcher = ExpiryWatcher(seeded_rooms, interval=0.05)

    watcher.start()
    assert watcher.running
    for _ in range(40):
        if not (await seeded_rooms.get_space(overdue.id)).active:
            break
        await asyncio.sleep(0.05)
    await watcher.stop()

    assert not watcher.running
    assert (await seeded_rooms.get_space(overdue.id)).active is False
    assert await watcher.tick() == []


@pytest.mark.asyncio
async def test_warning_is_forgotten_once_space_ends_elsewhere(seeded_rooms, host, now):
    space = (await seeded_rooms.create_space("Short", "", host.id, now=now)).space
    almost = now + 14 * MINUTE + 30 * 1000

    await seeded_rooms.expire_due(almost)
    assert space.id in seeded_rooms._warned_ending

    await seeded_rooms.end_space(space.id, now=almost + 1000)
    assert await seeded_rooms.expire_due(almost + 100 * 1000) == []
    assert seeded_rooms._warned_ending == set()
