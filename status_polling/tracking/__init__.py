"""Status-tracking use cases built on the polling engine.

- TrainingStatusTracker: Shared interval poll over avatars in training
- AiAvatarGenerationTracker: Recursive poll of one AI-avatar generation
- LookGenerationTracker: Recursive poll per look generation
"""

from status_polling.tracking.ai_generation import AiAvatarGenerationTracker
from status_polling.tracking.looks import LookGenerationTracker
from status_polling.tracking.training import TrainingStatusTracker

__all__ = [
    "AiAvatarGenerationTracker",
    "LookGenerationTracker",
    "TrainingStatusTracker",
]
