"""
OpsBeat Policy Service

Reads policy rows from `ops_policy` and validates them into typed models.
A missing row, or a row that fails validation, yields the model defaults.
"""

from typing import Type, TypeVar

from pydantic import ValidationError

from opsbeat.models.policy import PolicyModel
from opsbeat.services.base import Service

P = TypeVar("P", bound=PolicyModel)


class PolicyService(Service):
    """Typed access to ops policies."""

    def load(self, key: str, model: Type[P]) -> P:
        raw = self.store.get_policy(key)
        if raw is None:
            return model()
        try:
            return model.model_validate(raw)
        except ValidationError as exc:
            self.logger.warning(
                "policy_invalid_using_defaults",
                extra=self.log_extra(policy_key=key, error=str(exc)),
            )
            return model()
