"""
OpsBeat Policy Models

Typed views over the JSON values stored in `ops_policy`. Every field has an
explicit default, so a missing row or a missing key behaves like the default
policy.
"""

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PolicyModel(BaseModel):
    # Unknown keys written by other tools are ignored.
    model_config = ConfigDict(extra="ignore")


class DailyLimitPolicy(PolicyModel):
    """A per-day cap on succeeded steps of one kind."""
    limit: int = Field(default=10, ge=0)


class ContentPolicy(DailyLimitPolicy):
    limit: int = Field(default=10, ge=0, validation_alias=AliasChoices("limit", "max_drafts_per_day"))


class TweetQuotaPolicy(DailyLimitPolicy):
    enabled: bool = True
    limit: int = Field(default=10, ge=0)


class GenerationPolicy(DailyLimitPolicy):
    limit: int = Field(default=20, ge=0, validation_alias=AliasChoices("limit", "max_per_day"))


class EmailPolicy(DailyLimitPolicy):
    limit: int = Field(default=50, ge=0, validation_alias=AliasChoices("limit", "max_per_day"))


class DeployPolicy(PolicyModel):
    """Deploys are allowed in [window_start_hour, window_end_hour) UTC."""
    enabled: bool = True
    window_start_hour: int = Field(default=8, ge=0, le=24)
    window_end_hour: int = Field(default=20, ge=0, le=24)


class AutoApprovePolicy(PolicyModel):
    """
    Whether approved proposals turn into missions without a human.

    With no allow-list, every step kind except deploys is auto-approved.
    """
    enabled: bool = False
    allowed_step_kinds: Optional[List[str]] = None


# Policy keys in ops_policy
CONTENT_POLICY = "content_policy"
TWEET_QUOTA_POLICY = "x_daily_quota"
DEPLOY_POLICY = "deploy_policy"
GENERATION_POLICY = "generation_policy"
EMAIL_POLICY = "email_policy"
AUTO_APPROVE_POLICY = "auto_approve"
