class EngineError(Exception):
    """Base class for all engine exceptions."""
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InputError(EngineError):
    """Raised when a term snapshot (or a previous timetable) is malformed."""


class ConfigurationError(EngineError):
    """Raised when engine configuration is invalid."""
