import threading

import pytest

from airsense_core.application.command_store import CommandStore
from airsense_core.domain.errors import (
    AlreadyTerminalError,
    CommandNotFoundError,
    DuplicateCommandError,
)
from airsense_core.domain.models import REASON_TIMEOUT, CommandStatus


def test_create_sets_pending_and_deadline(store, clock):
    cmd = store.create("d1", "calibrate", {"targetSensor": "co2"}, ttl=30)

    assert cmd.status is CommandStatus.PENDING
    assert cmd.created_at == cmd.updated_at == clock.now
    assert cmd.deadline == clock.now + 30
    assert store.get(cmd.command_id) == cmd


def test_ids_are_never_reused(store):
    ids = {store.create("d1", "ping", None, ttl=5).command_id for _ in range(200)}
    assert len(ids) == 200


def test_duplicate_id_aborts_create(clock):
    store = CommandStore(clock=clock, id_factory=lambda: "same")
    store.create("d1", "ping", None, ttl=5)

    with pytest.raises(DuplicateCommandError):
        store.create("d1", "ping", None, ttl=5)
    assert len(store) == 1


def test_returned_commands_are_detached(store):
    params = {"nested": {"level": 1}}
    cmd = store.create("d1", "set", params, ttl=5)

    params["nested"]["level"] = 2
    cmd.params["nested"]["level"] = 3

    assert store.get(cmd.command_id).params == {"nested": {"level": 1}}


def test_get_unknown_raises_not_found(store):
    with pytest.raises(CommandNotFoundError):
        store.get("missing")


def test_transition_only_once(store, clock):
    cmd = store.create("d1", "ping", None, ttl=5)
    clock.advance(1)

    done = store.transition(cmd.command_id, CommandStatus.SUCCESS, result={"ok": True})
    assert done.status is CommandStatus.SUCCESS
    assert done.result == {"ok": True}
    assert done.updated_at == clock.now

    with pytest.raises(AlreadyTerminalError):
        store.transition(cmd.command_id, CommandStatus.ERROR, reason=REASON_TIMEOUT)
    with pytest.raises(AlreadyTerminalError):
        store.transition(cmd.command_id, CommandStatus.SUCCESS)

    assert store.get(cmd.command_id).status is CommandStatus.SUCCESS
    assert store.get(cmd.command_id).result == {"ok": True}


def test_transition_back_to_pending_is_refused(store):
    cmd = store.create("d1", "ping", None, ttl=5)
    with pytest.raises(ValueError):
        store.transition(cmd.command_id, CommandStatus.PENDING)


def test_transition_unknown_raises_not_found(store):
    with pytest.raises(CommandNotFoundError):
        store.transition("missing", CommandStatus.SUCCESS)


def test_concurrent_transitions_have_one_winner():
    store = CommandStore()
    for _ in range(50):
        cmd = store.create("d1", "ping", None, ttl=5)
        barrier = threading.Barrier(8)
        winners = []
        losers = []

        def attempt(i):
            barrier.wait()
            status = CommandStatus.SUCCESS if i % 2 else CommandStatus.ERROR
            try:
                winners.append(store.transition(cmd.command_id, status, result=i))
            except AlreadyTerminalError:
                losers.append(i)

        threads = [threading.Thread(target=attempt, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert len(losers) == 7
        final = store.get(cmd.command_id)
        assert (final.status, final.result) == (winners[0].status, winners[0].result)


def test_list_expired_only_returns_pending_past_deadline(store, clock):
    early = store.create("d1", "a", None, ttl=5)
    late = store.create("d1", "b", None, ttl=50)
    answered = store.create("d1", "c", None, ttl=5)
    store.transition(answered.command_id, CommandStatus.SUCCESS)

    assert store.list_expired(clock.now + 4.9) == []
    assert [c.command_id for c in store.list_expired(clock.now + 5)] == [early.command_id]
    assert {c.command_id for c in store.list_expired(clock.now + 60)} == {
        early.command_id,
        late.command_id,
    }


def test_evict_only_terminal_records(store, clock):
    pending = store.create("d1", "a", None, ttl=5)
    done = store.create("d1", "b", None, ttl=5)
    store.transition(done.command_id, CommandStatus.SUCCESS)

    assert store.list_evictable(retention=10, now=clock.now + 9) == []
    assert store.list_evictable(retention=10, now=clock.now + 10) == [done.command_id]

    assert store.evict(pending.command_id) is False
    assert store.evict(done.command_id) is True
    assert store.evict(done.command_id) is False
    with pytest.raises(CommandNotFoundError):
        store.get(done.command_id)
    assert store.get(pending.command_id).status is CommandStatus.PENDING
