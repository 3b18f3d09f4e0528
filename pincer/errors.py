"""Exception types shared across the agent core."""


class PincerError(Exception):
    """Base class for all pincer errors."""


class ProfileNotFoundError(PincerError):
    """Raised when an inbound message names a profile that is not configured."""

    def __init__(self, profile: str):
        self.profile = profile
        super().__init__(f'Profile "{profile}" not found.')


class QuotaExceededError(PincerError):
    """Raised when a profile has used up its daily token budget."""

    def __init__(self, profile: str, used: int, limit: int):
        self.profile = profile
        self.used = used
        self.limit = limit
        super().__init__(
            f'Daily token limit reached for profile "{profile}". Used: {used}, Limit: {limit}.'
        )


class ToolError(PincerError):
    """Tool-level failure. Rendered as text for the model, never shown raw."""


class DuplicateToolError(PincerError):
    """Raised when a tool name is registered twice."""


class ApprovalPendingError(PincerError):
    """Raised when an approval is requested twice for the same invocation id."""


class InvalidScheduleError(PincerError):
    """Raised when a cron expression does not validate."""


class JobNotFoundError(PincerError):
    """Raised when a cron job name is unknown."""


class DuplicateJobError(PincerError):
    """Raised when a cron job name is already taken."""
