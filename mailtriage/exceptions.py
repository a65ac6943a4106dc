class TriageError(Exception):
    """Base class for every error raised by the triage worker."""


class ConfigError(TriageError):
    """A required setting is missing or invalid. Fatal at startup."""


class AuthError(TriageError):
    """Gmail credentials could not be loaded, refreshed or exchanged. Fatal at startup."""


class ProviderError(TriageError):
    """A Gmail API call failed or returned a payload we could not read."""

    def __init__(self, message: str, operation: str = ""):
        super().__init__(message)
        self.operation = operation


class ClassificationError(TriageError):
    """Gemini was unreachable or its answer did not parse into a decision."""

    def __init__(self, message: str, raw_response: str = ""):
        super().__init__(message)
        self.raw_response = raw_response


class StoreError(TriageError):
    """A state file (ignore patterns, checkpoint) could not be written."""

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path
