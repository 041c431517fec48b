"""
Engine error types.

None of these are allowed to escape an event handler: the strategies,
the dispatcher and the task coordinator translate them into a fallback
response, a default notification or a logged no-op.
"""


class EngineError(Exception):
    """Base class for engine errors."""


class NetworkError(EngineError):
    """The network-fetch capability failed to produce a response."""


class StorageError(EngineError):
    """A namespace store operation failed (quota, I/O, backend error)."""


class InstallError(EngineError):
    """Precaching failed; the install step is all-or-nothing."""


class ClientError(EngineError):
    """A client window could not be focused, opened or messaged."""
