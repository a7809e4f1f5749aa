"""
OpsBeat Cap Gates

Admission checks that limit how often a step kind may be proposed.
Each gated StepKind maps to exactly one gate; any other step kind passes.
Gates only read the store.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Type

from opsbeat.clock import ensure_utc, utc_midnight
from opsbeat.models.domain import StepKind, StepStatus
from opsbeat.models.policy import (
    CONTENT_POLICY,
    DEPLOY_POLICY,
    EMAIL_POLICY,
    GENERATION_POLICY,
    TWEET_QUOTA_POLICY,
    ContentPolicy,
    DailyLimitPolicy,
    DeployPolicy,
    EmailPolicy,
    GenerationPolicy,
    TweetQuotaPolicy,
)
from opsbeat.services.base import Service, ServiceContext
from opsbeat.services.policy import PolicyService


@dataclass
class GateResult:
    """Outcome of a cap gate check."""
    ok: bool
    reason: Optional[str] = None

    @classmethod
    def passed(cls) -> "GateResult":
        return cls(ok=True)

    @classmethod
    def rejected(cls, reason: str) -> "GateResult":
        return cls(ok=False, reason=reason)


@dataclass(frozen=True)
class DailyLimitGate:
    """A per-day count gate: policy key, policy model and reason label."""
    policy_key: str
    policy_model: Type[DailyLimitPolicy]
    label: str


DAILY_LIMIT_GATES: Dict[StepKind, DailyLimitGate] = {
    StepKind.WRITE_CONTENT: DailyLimitGate(CONTENT_POLICY, ContentPolicy, "Daily content limit"),
    StepKind.POST_TWEET: DailyLimitGate(TWEET_QUOTA_POLICY, TweetQuotaPolicy, "Daily tweet quota"),
    StepKind.GENERATE_IMAGE: DailyLimitGate(GENERATION_POLICY, GenerationPolicy, "Daily generation limit"),
    StepKind.SEND_EMAIL: DailyLimitGate(EMAIL_POLICY, EmailPolicy, "Daily email limit"),
}


class CapGateService(Service):
    """
    Decides whether a proposal for a step kind may proceed.

    Gate dispatch:
    - write_content, post_tweet, generate_image, send_email: count today's
      succeeded steps of that kind (UTC midnight cutoff) against a limit
    - post_tweet: additionally rejected when its policy is disabled
    - deploy, deploy_site: UTC deploy window and enabled flag
    - audit_site: always passes
    - anything else: passes
    """

    def __init__(self, context: ServiceContext, store, policies: Optional[PolicyService] = None) -> None:
        super().__init__(context, store)
        self.policies = policies or PolicyService(context, store)
        self._gates: Dict[StepKind, Callable[[StepKind, datetime], GateResult]] = {
            StepKind.WRITE_CONTENT: self._check_daily_limit,
            StepKind.POST_TWEET: self._check_daily_limit,
            StepKind.GENERATE_IMAGE: self._check_daily_limit,
            StepKind.SEND_EMAIL: self._check_daily_limit,
            StepKind.DEPLOY: self._check_deploy,
            StepKind.DEPLOY_SITE: self._check_deploy,
            StepKind.AUDIT_SITE: self._check_always,
        }

    def check(self, step_kind: str, *, now: Optional[datetime] = None) -> GateResult:
        """Run the gate for `step_kind` at `now` (default: current UTC time)."""
        kind = StepKind.parse(step_kind)
        if kind is None:
            return GateResult.passed()
        result = self._gates[kind](kind, ensure_utc(now))
        if not result.ok:
            self.logger.info(
                "cap_gate_rejected",
                extra=self.log_extra(step_kind=step_kind, reason=result.reason),
            )
        return result

    def _check_always(self, kind: StepKind, now: datetime) -> GateResult:
        return GateResult.passed()

    def _check_daily_limit(self, kind: StepKind, now: datetime) -> GateResult:
        gate = DAILY_LIMIT_GATES[kind]
        policy = self.policies.load(gate.policy_key, gate.policy_model)
        if getattr(policy, "enabled", True) is False:
            return GateResult.rejected(f"{kind.value} is disabled by policy {gate.policy_key}")

        count = self.store.count_steps(kind.value, StepStatus.SUCCEEDED, utc_midnight(now))
        if count >= policy.limit:
            return GateResult.rejected(f"{gate.label} reached ({count}/{policy.limit})")
        return GateResult.passed()

    def _check_deploy(self, kind: StepKind, now: datetime) -> GateResult:
        policy = self.policies.load(DEPLOY_POLICY, DeployPolicy)
        if not policy.enabled:
            return GateResult.rejected(f"Deploys are disabled by policy {DEPLOY_POLICY}")

        start, end = policy.window_start_hour, policy.window_end_hour
        if not (start <= now.hour < end):
            return GateResult.rejected(
                f"Deploys are only allowed between {start:02d}:00 and {end:02d}:00 UTC "
                f"(current hour {now.hour:02d})"
            )
        return GateResult.passed()
