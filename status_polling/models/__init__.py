"""Data models for avatar job statuses.

- AvatarRecord: An avatar tracked by the dashboard
- TrainingStatus / GenerationStatus: Results of status checks
- GenerationStage: UI stage machine of an AI-avatar generation
"""

from status_polling.models.status import (
    AvatarRecord,
    GenerationStage,
    GenerationStatus,
    ModelValidationError,
    TrainingStatus,
)

__all__ = [
    "AvatarRecord",
    "GenerationStage",
    "GenerationStatus",
    "ModelValidationError",
    "TrainingStatus",
]
