"""Exception types raised across the slide_sync package."""


class SlideSyncError(Exception):
    """Base class for all slide_sync errors."""


class ValidationError(SlideSyncError, ValueError):
    """The whole payload was rejected; nothing is rendered."""


class ResourceResolutionError(SlideSyncError):
    """A font, style, image or template node could not be resolved on the host."""

    def __init__(self, key, message: str = ""):
        self.key = key
        super().__init__(message or f"Could not resolve resource {key!r}")


class StaleReferenceError(SlideSyncError):
    """A cached host handle is no longer valid (e.g. the user deleted the node)."""


class RenderError(SlideSyncError):
    """One or more slides failed to render during a run."""

    def __init__(self, message: str, failures=None):
        super().__init__(message)
        self.failures = list(failures or [])
