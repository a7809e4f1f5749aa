"""
Tests for trigger rule evaluation.
"""

import random
from unittest.mock import Mock

import pytest

from opsbeat.config import Config
from opsbeat.models.domain import TriggerRule
from opsbeat.services.base import ServiceContext
from opsbeat.services.triggers import TriggerService, trigger_description


class FixedRandom(random.Random):
    """Random source that replays fixed draws."""

    def __init__(self, *draws: float) -> None:
        super().__init__()
        self._draws = list(draws)

    def random(self) -> float:
        return self._draws.pop(0)


def _context(db_path, **overrides) -> ServiceContext:
    return ServiceContext(config=Config(db_path=db_path, **overrides))


def test_no_enabled_rules_fires_nothing(store, service_context, now):
    store.create_trigger_rule("off", "write_content", probability=1.0, enabled=False)

    assert TriggerService(service_context, store).evaluate_triggers(now=now) == {"fired": 0}
    assert store.list_proposals() == []


def test_certain_rule_fires_and_creates_proposal(store, service_context, now):
    rule = store.create_trigger_rule(
        "daily-draft", "write_content", source="rss_feed", target="writer", probability=1.0
    )

    result = TriggerService(service_context, store).evaluate_triggers(now=now)

    assert result == {"fired": 1}
    proposals = store.list_proposals()
    assert len(proposals) == 1
    assert proposals[0].source == "trigger"
    assert proposals[0].step_kind == "write_content"
    assert proposals[0].description == f"Triggered by {rule.source}"


def test_zero_probability_never_fires(store, service_context, now):
    store.create_trigger_rule("never", "write_content", probability=0.0)

    service = TriggerService(service_context, store, rng=FixedRandom(0.0))
    assert service.evaluate_triggers(now=now) == {"fired": 0}


def test_rules_are_evaluated_independently(store, service_context, now):
    store.create_trigger_rule("a", "write_content", probability=0.5)
    store.create_trigger_rule("b", "audit_site", probability=0.5)
    store.create_trigger_rule("c", "send_email", probability=0.5)

    service = TriggerService(service_context, store, rng=FixedRandom(0.1, 0.9, 0.4))
    assert service.evaluate_triggers(now=now) == {"fired": 2}
    assert sorted(p.step_kind for p in store.list_proposals()) == ["send_email", "write_content"]


@pytest.mark.parametrize("draw, fires", [(0.69, False), (0.7, False), (0.71, True)])
def test_threshold_condition_ignores_rule_probability(db_path, draw, fires):
    ctx = _context(db_path, trigger_condition="threshold")
    rule = TriggerRule(id="r1", name="r1", type="write_content", probability=0.0)

    service = TriggerService(ctx, Mock(), rng=FixedRandom(draw))
    assert service.check_condition(rule) is fires


def test_event_mode_emits_agent_event_instead_of_proposal(store, db_path, now):
    ctx = _context(db_path, proposal_mode="event")
    rule = store.create_trigger_rule("ping", "post_tweet", source="mentions", target="social-agent", probability=1.0)

    assert TriggerService(ctx, store).evaluate_triggers(now=now) == {"fired": 1}

    assert store.list_proposals() == []
    events = store.list_agent_events()
    assert len(events) == 1
    assert events[0].agent_id == "social-agent"
    assert events[0].event_type == "proposal_created"
    assert events[0].payload == {
        "source": "trigger",
        "rule_id": rule.id,
        "step_kind": "post_tweet",
        "description": "Triggered by mentions",
    }


def test_repeated_evaluation_fires_again(store, service_context, now):
    store.create_trigger_rule("always", "audit_site", probability=1.0)
    service = TriggerService(service_context, store)

    service.evaluate_triggers(now=now)
    service.evaluate_triggers(now=now)

    assert len(store.list_proposals()) == 2


def test_trigger_description_falls_back_to_rule_name():
    rule = TriggerRule(id="r9", name="weekly audit", type="audit_site")
    assert trigger_description(rule) == "weekly audit"
