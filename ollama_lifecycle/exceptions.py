"""Error hierarchy for model lifecycle operations."""

from typing import Optional


class LifecycleError(Exception):
    """Base exception for lifecycle operations."""
    pass


class ServiceUnavailableError(LifecycleError):
    """Model service API did not answer."""

    def __init__(self, message: str = "Ollama service unavailable", url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class PullFailedError(LifecycleError):
    """External pull returned nonzero."""

    def __init__(self, model: str, message: str, returncode: Optional[int] = None):
        super().__init__(f"Failed to pull {model}: {message}")
        self.model = model
        self.returncode = returncode


class VerificationFailedError(PullFailedError):
    """Pull reported success but the model is not listed afterwards."""

    def __init__(self, model: str):
        super().__init__(model, "model not listed after pull")


class ArchiveError(LifecycleError):
    """Backup archive could not be created, read or restored."""
    pass


class ArchiveCorruptError(ArchiveError):
    """Archive failed size or format checks."""
    pass


class UserAbortedError(LifecycleError):
    """Destructive operation was not confirmed."""
    pass


class InsufficientModelsError(LifecycleError):
    """Fewer models installed than the startup hard minimum."""

    def __init__(self, installed: int, required: int):
        super().__init__(f"Only {installed} model(s) installed, at least {required} required")
        self.installed = installed
        self.required = required


class InsufficientSpaceWarning(UserWarning):
    """Destination free space looks too small. Advisory only."""
    pass
