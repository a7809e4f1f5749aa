"""
Tests for stale step recovery and mission finalization.
"""

from datetime import timedelta

from hypothesis import given, strategies as st

from opsbeat.models.domain import MissionStatus, StepStatus
from opsbeat.services.recovery import STALE_ERROR, RecoveryService, aggregate_mission_status

step_statuses = st.sampled_from(
    [StepStatus.QUEUED, StepStatus.RUNNING, StepStatus.SUCCEEDED, StepStatus.FAILED]
)


def _mission(store, now):
    proposal = store.create_proposal("test", "write_content", "work", "approved", created_at=now)
    return store.create_mission(proposal.id, MissionStatus.APPROVED, created_at=now)


@given(statuses=st.lists(step_statuses, min_size=1, max_size=12))
def test_aggregate_status_property(statuses):
    expected = None
    if all(s == StepStatus.SUCCEEDED for s in statuses):
        expected = MissionStatus.SUCCEEDED
    elif StepStatus.FAILED in statuses:
        expected = MissionStatus.FAILED
    assert aggregate_mission_status(statuses) == expected


def test_aggregate_status_examples():
    assert aggregate_mission_status([]) is None
    assert aggregate_mission_status(["succeeded", "succeeded"]) == "succeeded"
    assert aggregate_mission_status(["succeeded", "failed", "running"]) == "failed"
    assert aggregate_mission_status(["queued", "running", "succeeded"]) is None


def test_step_exactly_at_threshold_is_failed(store, service_context, now):
    mission = _mission(store, now)
    step = store.create_mission_step(
        mission.id, "write_content", StepStatus.RUNNING, created_at=now - timedelta(hours=1),
        updated_at=now - timedelta(minutes=30),
    )

    result = RecoveryService(service_context, store).recover_stale_steps(now=now)

    assert result == {"recovered": 1}
    recovered = store.get_mission_step(step.id)
    assert recovered.status == StepStatus.FAILED
    assert recovered.last_error == STALE_ERROR
    assert recovered.updated_at == now.isoformat(timespec="microseconds")


def test_step_updated_29_minutes_ago_is_untouched(store, service_context, now):
    mission = _mission(store, now)
    step = store.create_mission_step(
        mission.id, "write_content", StepStatus.RUNNING, updated_at=now - timedelta(minutes=29)
    )

    assert RecoveryService(service_context, store).recover_stale_steps(now=now) == {"recovered": 0}
    assert store.get_mission_step(step.id).status == StepStatus.RUNNING
    assert store.get_mission(mission.id).status == MissionStatus.APPROVED


def test_only_running_steps_are_recovered(store, service_context, now):
    mission = _mission(store, now)
    old = now - timedelta(hours=3)
    queued = store.create_mission_step(mission.id, "write_content", StepStatus.QUEUED, updated_at=old)
    done = store.create_mission_step(mission.id, "write_content", StepStatus.SUCCEEDED, updated_at=old)

    assert RecoveryService(service_context, store).recover_stale_steps(now=now) == {"recovered": 0}
    assert store.get_mission_step(queued.id).status == StepStatus.QUEUED
    assert store.get_mission_step(done.id).status == StepStatus.SUCCEEDED


def test_recovered_step_fails_its_mission(store, service_context, now):
    mission = _mission(store, now)
    store.create_mission_step(mission.id, "write_content", StepStatus.SUCCEEDED)
    store.create_mission_step(mission.id, "write_content", StepStatus.RUNNING, updated_at=now - timedelta(hours=2))

    RecoveryService(service_context, store).recover_stale_steps(now=now)

    assert store.get_mission(mission.id).status == MissionStatus.FAILED


def test_finalize_succeeded_mission(store, service_context, now):
    mission = _mission(store, now)
    store.create_mission_step(mission.id, "write_content", StepStatus.SUCCEEDED)
    store.create_mission_step(mission.id, "audit_site", StepStatus.SUCCEEDED)

    status = RecoveryService(service_context, store).finalize_mission_if_done(mission.id, now=now)

    assert status == MissionStatus.SUCCEEDED
    assert store.get_mission(mission.id).status == MissionStatus.SUCCEEDED


def test_finalize_leaves_pending_mission_alone(store, service_context, now):
    mission = _mission(store, now)
    store.create_mission_step(mission.id, "write_content", StepStatus.QUEUED)
    store.create_mission_step(mission.id, "write_content", StepStatus.RUNNING)

    status = RecoveryService(service_context, store).finalize_mission_if_done(mission.id, now=now)

    assert status is None
    refreshed = store.get_mission(mission.id)
    assert refreshed.status == MissionStatus.APPROVED
    assert refreshed.updated_at == mission.updated_at
