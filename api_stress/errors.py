"""Error types raised while configuring, issuing and checking requests."""


class StressError(Exception):
    """Base class for every error the stress runner reports."""


class ConfigurationError(StressError):
    """An endpoint cannot be run as configured (bad mode, bad body, bad file)."""


class TransportError(StressError):
    """The request never produced a response (DNS, connect, timeout)."""


class ValidationError(StressError):
    """The response did not satisfy the endpoint's expectation."""
