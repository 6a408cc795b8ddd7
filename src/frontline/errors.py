class FrontlineError(Exception):
    """Base class for runtime errors."""


class ConfigNotFoundError(FrontlineError):
    pass


class LLMError(FrontlineError):
    """Language-model transport or response-parsing failure."""


class TraceFinalizedError(FrontlineError):
    pass
