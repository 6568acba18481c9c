from app.services import lifecycle
from app.services.outcome import Outcome
from schemas.space import Role

MINUTE = 60 * 1000


def test_create_space_defaults(make_space, host, now):
    space = make_space()

    assert len(space.id) == 8
    assert space.remote_name.startswith("remote_")
    assert space.host == host.id
    assert space.capacity == 100
    assert space.duration == 15 * MINUTE
    assert space.started_at == now
    assert space.ended_at == 0
    assert space.active is True
    assert space.ask_to_join is False
    assert space.ask_to_speak is False

    assert len(space.participants) == 1
    hostp = space.participants[0]
    assert hostp.id == host.id
    assert hostp.role == Role.HOST
    assert hostp.muted is False
    assert space.speakers == []
    assert space.listeners == []
    assert space.ask_to_join_queue == []
    assert space.ask_to_speak_timestamps == {}


def test_create_space_options(make_space, now):
    space = make_space(capacity=10, ask_to_join=True, ask_to_speak=True, start_time=now + 60 * MINUTE, duration=5 * MINUTE)

    assert space.capacity == 10
    assert space.ask_to_join is True
    assert space.ask_to_speak is True
    assert space.started_at == now + 60 * MINUTE
    assert space.duration == 5 * MINUTE


def test_created_spaces_get_distinct_ids(make_space):
    assert make_space().id != make_space().id


def test_end_space_sets_ended_at_once(make_space, now):
    space = make_space()

    assert lifecycle.end_space(space, now + 1000) == Outcome.APPLIED
    assert space.active is False
    assert space.ended_at == now + 1000

    assert lifecycle.end_space(space, now + 5000) == Outcome.UNCHANGED
    assert space.ended_at == now + 1000


def test_is_ended_needs_both_flags(make_space):
    space = make_space()
    space.ended_at = 123
    assert not lifecycle.is_ended(space)
    space.active = False
    assert lifecycle.is_ended(space)


def test_can_join_now_window(make_space, now):
    assert lifecycle.can_join_now(make_space(start_time=now + 4 * MINUTE), now)
    assert lifecycle.can_join_now(make_space(start_time=now + 5 * MINUTE), now)
    assert not lifecycle.can_join_now(make_space(start_time=now + 6 * MINUTE), now)

    ended = make_space()
    lifecycle.end_space(ended, now)
    assert not lifecycle.can_join_now(ended, now)


def test_remaining_time_and_progress(make_space, now):
    space = make_space()

    assert lifecycle.remaining_time(space, now + 5 * MINUTE) == 10 * MINUTE
    assert round(lifecycle.progress_percent(space, now + 5 * MINUTE), 2) == 33.33
    assert lifecycle.progress_percent(space, now) == 0.0
    assert lifecycle.progress_percent(space, now + 20 * MINUTE) == 100.0
    # before the start the bar stays empty
    assert lifecycle.progress_percent(space, now - 10 * MINUTE) == 0.0


def test_expiry_and_ending_soon(make_space, now):
    space = make_space()

    assert not lifecycle.is_expired(space, now + 15 * MINUTE)
    assert lifecycle.is_expired(space, now + 15 * MINUTE + 1)
    assert lifecycle.is_ending_soon(space, now + 14 * MINUTE + 30 * 1000)
    assert not lifecycle.is_ending_soon(space, now + 10 * MINUTE)
    assert not lifecycle.is_ending_soon(space, now + 16 * MINUTE)


def test_due_for_expiry_skips_ended_and_running(make_space, now):
    running = make_space()
    expired = make_space(start_time=now - 20 * MINUTE)
    already_ended = make_space(start_time=now - 20 * MINUTE)
    lifecycle.end_space(already_ended, now - MINUTE)

    due = lifecycle.due_for_expiry([running, expired, already_ended], now)
    assert [s.id for s in due] == [expired.id]


def test_space_status(make_space, now):
    assert lifecycle.space_status(make_space(), now) == lifecycle.SpaceStatus.LIVE
    assert lifecycle.space_status(make_space(start_time=now + MINUTE), now) == lifecycle.SpaceStatus.SCHEDULED

    ended = make_space()
    lifecycle.end_space(ended, now)
    assert lifecycle.space_status(ended, now) == lifecycle.SpaceStatus.ENDED
    assert lifecycle.is_scheduled(make_space(start_time=now + MINUTE), now)
    assert not lifecycle.is_live(ended, now)


def test_explicit_zero_duration_is_kept(make_space, now):
    space = make_space(duration=0)

    assert space.duration == 0
    assert lifecycle.is_expired(space, now + 1)
    assert lifecycle.progress_percent(space, now + 1) == 100.0
