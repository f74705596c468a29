"""Avatar job API clients.

- AvatarJobsApi: Abstract interface the trackers depend on
- AvatarJobsClient: httpx implementation against the dashboard REST API
- StatusApiError: HTTP or transport failure; TransientStatusApiError when retryable
"""

from status_polling.clients.base import AvatarJobsApi, StatusApiError, TransientStatusApiError
from status_polling.clients.http import AvatarJobsClient

__all__ = [
    "AvatarJobsApi",
    "AvatarJobsClient",
    "StatusApiError",
    "TransientStatusApiError",
]
