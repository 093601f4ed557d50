"""
hostpulse edge pipeline.

Samples host metrics on a fixed cadence and pushes each snapshot to the
remote collector with bounded exponential-backoff retries.
"""

from .agent import AgentContext, CycleResult, CycleRunner, CycleStatus, PushAgent, Scheduler, run_agent
from .config import AgentConfig, ConfigError, load_config
from .retry import DeliveryReport, DeliveryStatus, RetryController
from .sender import CollectorClient, DeliveryResult, Outcome, classify

__all__ = [
    "AgentContext",
    "CycleResult",
    "CycleRunner",
    "CycleStatus",
    "PushAgent",
    "Scheduler",
    "run_agent",
    "AgentConfig",
    "ConfigError",
    "load_config",
    "DeliveryReport",
    "DeliveryStatus",
    "RetryController",
    "CollectorClient",
    "DeliveryResult",
    "Outcome",
    "classify",
]
