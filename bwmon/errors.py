"""
Error taxonomy.
Configuration problems are fatal at startup; transport problems are fatal
at runtime. Neither is recovered from inside the polling loop.
"""


class BwmonError(Exception):
    """Base class for every error raised by bwmon."""


class ConfigurationError(BwmonError):
    pass


class InvalidPatternError(ConfigurationError):
    def __init__(self, pattern: str, reason: str):
        super().__init__(f"invalid interface pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class TransportError(BwmonError):
    """The sample source could not deliver a complete, well-formed answer."""
