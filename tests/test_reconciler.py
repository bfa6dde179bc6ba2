from datetime import timedelta

import pytest

from uptower.reconciler import Reconciler, Transition, detect_transition, incident_duration_s

from tests.helpers import NOW, Clock, RecordingDispatcher, ScriptedRunner, down, up


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


def make_reconciler(repo, runner, dispatcher, clock):
    return Reconciler(repo, runner, dispatcher, clock=clock)


async def step(repo, reconciler, monitor):
    previous = repo.latest_results_for([monitor.id]).get(monitor.id)
    return await reconciler.reconcile(monitor, previous)


def test_detect_transition_rules():
    assert detect_transition(None, up()) is None
    assert detect_transition(None, down()) == Transition(status=False, initial=True)


def test_incident_duration_is_floored_and_not_negative():
    assert incident_duration_s(NOW, NOW + timedelta(seconds=90, milliseconds=900)) == 90
    assert incident_duration_s(NOW, NOW - timedelta(seconds=5)) == 0


@pytest.mark.asyncio
async def test_first_down_opens_incident_and_notifies(repo, make_monitor, make_channel, dispatcher, clock):
    m = make_monitor()
    channel = make_channel(monitor_ids=[m.id])
    runner = ScriptedRunner({m.id: [down("Expected 200, got 503")]})
    outcome = await step(repo, make_reconciler(repo, runner, dispatcher, clock), m)

    assert outcome.error is None
    assert outcome.incident_opened is not None
    incidents = repo.list_incidents(m.id)
    assert len(incidents) == 1
    assert incidents[0].cause == "Expected 200, got 503"
    assert incidents[0].started_at == NOW
    assert incidents[0].resolved_at is None

    assert len(dispatcher.events) == 1
    event, channel_ids = dispatcher.events[0]
    assert event.status is False
    assert event.monitor_id == m.id
    assert channel_ids == [channel.id]


@pytest.mark.asyncio
async def test_first_up_is_silent(repo, make_monitor, make_channel, dispatcher, clock):
    m = make_monitor()
    make_channel(monitor_ids=[m.id])
    outcome = await step(repo, make_reconciler(repo, ScriptedRunner(), dispatcher, clock), m)

    assert outcome.transition is None
    assert repo.list_incidents(m.id) == []
    assert dispatcher.events == []
    assert len(repo.get_history(m.id)) == 1


@pytest.mark.asyncio
async def test_recovery_closes_incident(repo, make_monitor, make_channel, dispatcher, clock):
    m = make_monitor()
    make_channel(monitor_ids=[m.id])
    reconciler = make_reconciler(repo, ScriptedRunner({m.id: [down(), up()]}), dispatcher, clock)

    await step(repo, reconciler, m)
    clock.now = NOW + timedelta(seconds=125, milliseconds=700)
    outcome = await step(repo, reconciler, m)

    assert outcome.incident_closed is not None
    (incident,) = repo.list_incidents(m.id)
    assert incident.resolved_at == clock.now
    assert incident.duration_s == 125
    assert [e.status for e, _ in dispatcher.events] == [False, True]


@pytest.mark.asyncio
async def test_repeated_down_does_not_reopen(repo, make_monitor, make_channel, dispatcher, clock):
    m = make_monitor()
    make_channel(monitor_ids=[m.id])
    reconciler = make_reconciler(repo, ScriptedRunner({m.id: [down()]}), dispatcher, clock)

    await step(repo, reconciler, m)
    clock.now = NOW + timedelta(minutes=1)
    outcome = await step(repo, reconciler, m)

    assert outcome.transition is None
    assert len(repo.list_incidents(m.id)) == 1
    assert len(dispatcher.events) == 1
    assert len(repo.get_history(m.id)) == 2


@pytest.mark.asyncio
async def test_existing_open_incident_is_not_duplicated(repo, make_monitor, dispatcher, clock):
    m = make_monitor()
    repo.insert_incident(m.id, NOW - timedelta(hours=1), "earlier outage")
    # история пуста, поэтому первый down считается переходом
    outcome = await step(repo, make_reconciler(repo, ScriptedRunner({m.id: [down()]}), dispatcher, clock), m)

    assert outcome.transition == Transition(status=False, initial=True)
    assert outcome.incident_opened is None
    assert len(repo.list_incidents(m.id)) == 1


@pytest.mark.asyncio
async def test_recovery_without_open_incident_is_noop(repo, make_monitor, dispatcher, clock):
    m = make_monitor()
    repo.insert_result(m.id, down(), NOW - timedelta(minutes=1))
    outcome = await step(repo, make_reconciler(repo, ScriptedRunner(), dispatcher, clock), m)

    assert outcome.error is None
    assert outcome.transition == Transition(status=True)
    assert outcome.incident_closed is None
    assert repo.list_incidents(m.id) == []
    assert len(dispatcher.events) == 1


@pytest.mark.asyncio
async def test_maintenance_suppresses_notifications_only(repo, make_monitor, make_channel, dispatcher, clock):
    m = make_monitor(maintenance_start=NOW - timedelta(minutes=10), maintenance_end=NOW + timedelta(minutes=10))
    make_channel(monitor_ids=[m.id])
    outcome = await step(repo, make_reconciler(repo, ScriptedRunner({m.id: [down()]}), dispatcher, clock), m)

    assert outcome.suppressed is True
    assert outcome.incident_opened is not None
    assert dispatcher.events == []


@pytest.mark.asyncio
async def test_inactive_channels_are_not_notified(repo, make_monitor, make_channel, dispatcher, clock):
    m = make_monitor()
    live = make_channel(monitor_ids=[m.id], name="live")
    make_channel(monitor_ids=[m.id], name="off", active=False)
    make_channel(name="unbound")
    await step(repo, make_reconciler(repo, ScriptedRunner({m.id: [down()]}), dispatcher, clock), m)

    assert dispatcher.events[0][1] == [live.id]


@pytest.mark.asyncio
async def test_check_failure_is_reported_as_stage(repo, make_monitor, dispatcher, clock):
    m = make_monitor()
    outcome = await step(repo, make_reconciler(repo, ScriptedRunner({m.id: [RuntimeError("boom")]}), dispatcher, clock), m)

    assert outcome.error == "check"
    assert repo.get_history(m.id) == []


@pytest.mark.asyncio
async def test_persist_failure_stops_pipeline(repo, make_monitor, dispatcher, clock, monkeypatch):
    m = make_monitor()

    def broken_insert(*args, **kwargs):
        raise RuntimeError("db is gone")

    monkeypatch.setattr(repo, "insert_result", broken_insert)
    outcome = await step(repo, make_reconciler(repo, ScriptedRunner({m.id: [down()]}), dispatcher, clock), m)

    assert outcome.error == "persist"
    assert repo.list_incidents(m.id) == []
    assert dispatcher.events == []
