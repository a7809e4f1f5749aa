"""
OpsBeat Service Base

Defines the base Service class and ServiceContext that all services inherit from.
This provides a consistent interface for dependency injection and context propagation.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from opsbeat.config import Config
from opsbeat.db.database import StoreProtocol
from opsbeat.logging import get_logger, log_extra


@dataclass
class ServiceContext:
    """
    Context object providing shared dependencies and runtime state to services.

    Attributes:
        config: Application configuration
        request_id: Optional request correlation ID for tracing
        metadata: Additional contextual metadata
    """
    config: Config
    request_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class Service:
    """
    Base class for all OpsBeat services.

    Each service receives a ServiceContext for configuration and the ops store
    it should read and write. The store is owned by the caller.

    Example:
        class MyService(Service):
            def do_something(self) -> str:
                self.logger.info("doing_something", extra=self.log_extra())
                return "done"
    """

    def __init__(self, context: ServiceContext, store: StoreProtocol) -> None:
        self.context = context
        self.config = context.config
        self.store = store
        self.logger = get_logger(self.__class__.__name__)

    def log_extra(
        self,
        *,
        rule_id: Optional[str] = None,
        proposal_id: Optional[str] = None,
        mission_id: Optional[str] = None,
        step_id: Optional[str] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        """Structured logging extras with the context request_id filled in."""
        return log_extra(
            request_id=self.context.request_id,
            rule_id=rule_id,
            proposal_id=proposal_id,
            mission_id=mission_id,
            step_id=step_id,
            **extra,
        )
