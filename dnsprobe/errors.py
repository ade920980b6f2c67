"""Exception hierarchy for the probing engine."""


class ProbeEngineError(Exception):
    """Base exception for all probing engine errors."""


class StartupError(ProbeEngineError):
    """The probing process cannot start (bad arguments, unreadable config)."""


class OutputParseError(ProbeEngineError):
    """Structured output from a child run is missing or malformed."""


class LaunchError(ProbeEngineError):
    """A child execution could not be started."""


class ResolutionError(ProbeEngineError):
    """A single name resolution failed (possibly served from the negative cache)."""
