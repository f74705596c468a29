"""Shared polling constants.

Centralises delay caps, default cadences, polling keys and the status
vocabularies reported by the avatar job endpoints.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Engine limits
# ---------------------------------------------------------------------------

MAX_DELAY_MS: int = 60_000
"""Upper bound for any backed-off polling delay."""

MIN_DELAY_MS: int = 1
"""Smallest delay a timer will be armed with."""

DEFAULT_DEBOUNCE_MS: int = 1_000
"""Default quiet period before a debounced start fires."""

# ---------------------------------------------------------------------------
# Use-case cadences
# ---------------------------------------------------------------------------

TRAINING_POLL_INTERVAL_MS: int = 30_000
GENERATION_POLL_INTERVAL_MS: int = 5_000
LOOK_MAX_ATTEMPTS: int = 60
GENERATION_TIMEOUT_MS: int = 300_000

# ---------------------------------------------------------------------------
# Status vocabularies
# ---------------------------------------------------------------------------

TRAINING_IN_PROGRESS_STATES: frozenset[str] = frozenset({"pending", "training", "generating"})
"""Avatar states that keep the training poller running."""

TRAINABLE_READY_STATES: frozenset[str] = frozenset({"active", "ready"})
"""Avatar states that allow new looks to be generated."""

GENERATION_TERMINAL_STATES: frozenset[str] = frozenset({"success", "failed"})
"""Generation states after which polling stops."""

# ---------------------------------------------------------------------------
# Polling keys
# ---------------------------------------------------------------------------

TRAINING_POLLING_KEY: str = "training-status-polling"


def ai_generation_polling_key(generation_id: str) -> str:
    """Return the polling key for an AI-avatar generation."""
    return f"ai-avatar-generation-{generation_id}"


def look_generation_polling_key(generation_id: str, avatar_id: str) -> str:
    """Return the polling key for a look generation on one avatar."""
    return f"look-generation-{generation_id}-{avatar_id}"
