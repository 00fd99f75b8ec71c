"""
Exception hierarchy for Pocket-Agent.
"""


class PocketAgentError(Exception):
    """Base class for all Pocket-Agent errors."""


class ConfigurationError(PocketAgentError):
    """Raised when configuration is missing or invalid."""


class ProviderError(PocketAgentError):
    """Raised when a call to the model backend fails (network, auth, rate limit)."""


class ToolError(PocketAgentError):
    """Raised by tool code for expected, recoverable failures.

    The agent loop turns these into ordinary tool output so the model can
    see what went wrong and try something else.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SessionError(PocketAgentError):
    """Raised when the session store cannot load or persist a session."""
