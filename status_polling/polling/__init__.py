"""Polling engine.

Implements the client-side status-polling scheduler:
- backoff: Pure exponential backoff policy
- registry: Live operations, failure counters, debounce timers
- interval: Fixed-period strategy (probes may overlap)
- recursive: Self-rescheduling strategy with a continuation predicate
- debounce: Last-call-wins delayed start
- scheduler: ``PollingScheduler`` facade composing the above
- lifecycle: Session teardown hooks
"""

from status_polling.polling.backoff import next_delay
from status_polling.polling.debounce import DebounceHandle
from status_polling.polling.lifecycle import LifecycleHooks
from status_polling.polling.models import (
    Completed,
    Continuing,
    Failed,
    OperationHandle,
    PollingOperation,
    Strategy,
    TickOutcome,
)
from status_polling.polling.registry import OperationRegistry
from status_polling.polling.scheduler import PollingScheduler

__all__ = [
    "Completed",
    "Continuing",
    "DebounceHandle",
    "Failed",
    "LifecycleHooks",
    "OperationHandle",
    "OperationRegistry",
    "PollingOperation",
    "PollingScheduler",
    "Strategy",
    "TickOutcome",
    "next_delay",
]
