"""
Tests for cap gate decisions.
"""

from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given, settings, strategies as st

from opsbeat.models.domain import MissionStatus, StepKind, StepStatus
from opsbeat.services.cap_gates import DAILY_LIMIT_GATES, CapGateService


def _succeed_steps(store, step_kind: str, count: int, completed_at: datetime) -> None:
    proposal = store.create_proposal("test", step_kind, "seed", "approved", created_at=completed_at)
    mission = store.create_mission(proposal.id, MissionStatus.APPROVED, created_at=completed_at)
    for _ in range(count):
        store.create_mission_step(
            mission_id=mission.id,
            step_kind=step_kind,
            status=StepStatus.SUCCEEDED,
            created_at=completed_at,
            completed_at=completed_at,
        )


@pytest.mark.parametrize(
    "step_kind, default_limit",
    [
        ("write_content", 10),
        ("post_tweet", 10),
        ("generate_image", 20),
        ("send_email", 50),
    ],
)
def test_daily_limit_rejects_at_default_limit(store, service_context, now, step_kind, default_limit):
    gates = CapGateService(service_context, store)
    _succeed_steps(store, step_kind, default_limit - 1, now - timedelta(hours=1))

    assert gates.check(step_kind, now=now).ok is True

    _succeed_steps(store, step_kind, 1, now - timedelta(minutes=5))
    result = gates.check(step_kind, now=now)

    assert result.ok is False
    assert f"({default_limit}/{default_limit})" in result.reason


def test_daily_limit_uses_policy_limit(store, service_context, now):
    store.upsert_policy("content_policy", {"max_drafts_per_day": 2})
    gates = CapGateService(service_context, store)
    _succeed_steps(store, "write_content", 3, now - timedelta(hours=2))

    result = gates.check("write_content", now=now)

    assert result.ok is False
    assert "3" in result.reason and "2" in result.reason


def test_daily_limit_ignores_yesterday_and_unfinished_steps(store, service_context, now):
    store.upsert_policy("email_policy", {"limit": 1})
    gates = CapGateService(service_context, store)
    yesterday = now.replace(hour=0) - timedelta(seconds=1)
    _succeed_steps(store, "send_email", 3, yesterday)

    proposal = store.create_proposal("test", "send_email", "seed", "approved", created_at=now)
    mission = store.create_mission(proposal.id, MissionStatus.APPROVED, created_at=now)
    store.create_mission_step(mission.id, "send_email", StepStatus.RUNNING, created_at=now)
    store.create_mission_step(mission.id, "send_email", StepStatus.QUEUED, created_at=now)

    assert gates.check("send_email", now=now).ok is True


def test_daily_limit_counts_only_its_own_kind(store, service_context, now):
    store.upsert_policy("x_daily_quota", {"limit": 1})
    gates = CapGateService(service_context, store)
    _succeed_steps(store, "write_content", 5, now - timedelta(hours=1))

    assert gates.check("post_tweet", now=now).ok is True


def test_tweet_gate_rejects_when_disabled(store, service_context, now):
    store.upsert_policy("x_daily_quota", {"enabled": False, "limit": 100})
    result = CapGateService(service_context, store).check("post_tweet", now=now)

    assert result.ok is False
    assert "disabled" in result.reason


@pytest.mark.parametrize("step_kind", ["deploy", "deploy_site"])
@pytest.mark.parametrize(
    "hour, allowed",
    [(0, False), (7, False), (8, True), (12, True), (19, True), (20, False), (23, False)],
)
def test_deploy_window(store, service_context, step_kind, hour, allowed):
    at = datetime(2026, 3, 14, hour, 30, tzinfo=timezone.utc)
    result = CapGateService(service_context, store).check(step_kind, now=at)

    assert result.ok is allowed
    if not allowed:
        assert "UTC" in result.reason


def test_deploy_rejected_when_disabled_inside_window(store, service_context, now):
    store.upsert_policy("deploy_policy", {"enabled": False})
    result = CapGateService(service_context, store).check("deploy", now=now)

    assert result.ok is False
    assert "disabled" in result.reason


@settings(max_examples=50, deadline=None)
@given(hour=st.integers(min_value=0, max_value=23), enabled=st.sampled_from([True, False, None]))
def test_deploy_gate_property(hour, enabled):
    from unittest.mock import Mock

    from opsbeat.config import Config
    from opsbeat.services.base import ServiceContext

    store = Mock()
    store.get_policy.return_value = None if enabled is None else {"enabled": enabled}
    gates = CapGateService(ServiceContext(config=Config()), store)

    result = gates.check("deploy", now=datetime(2026, 1, 1, hour, tzinfo=timezone.utc))

    assert result.ok is ((8 <= hour < 20) and enabled is not False)
    store.count_steps.assert_not_called()


def test_audit_site_and_unknown_kinds_always_pass(store, service_context, now):
    gates = CapGateService(service_context, store)
    late = now.replace(hour=23)

    assert gates.check("audit_site", now=late).ok is True
    assert gates.check("summarize_feed", now=late).ok is True
    assert gates.check("", now=late).ok is True


def test_invalid_policy_falls_back_to_defaults(store, service_context, now):
    store.upsert_policy("generation_policy", {"max_per_day": "lots"})
    gates = CapGateService(service_context, store)
    _succeed_steps(store, "generate_image", 20, now - timedelta(hours=1))

    result = gates.check("generate_image", now=now)

    assert result.ok is False
    assert "(20/20)" in result.reason


def test_every_step_kind_has_a_gate(store, service_context):
    gates = CapGateService(service_context, store)
    assert set(gates._gates) == set(StepKind)
    assert set(DAILY_LIMIT_GATES) <= set(StepKind)
