"""
Error Taxonomy

Every failure in a dispatch task is one of these. Each is handled inside
the task that raised it; only ConfigError (and socket bind failures) are
fatal, and only at startup.
"""

from typing import Optional


class OscCommandError(Exception):
    """Base class for all osc_commands errors."""


class ConfigError(OscCommandError):
    """Configuration could not be found, parsed or validated."""


class DecodeError(OscCommandError):
    """Datagram is not a well-formed OSC packet. Logged, never answered."""


class BundleDepthError(DecodeError):
    """Bundles nested deeper than the allowed maximum."""

    def __init__(self, depth: int, limit: int):
        super().__init__(f"bundle nesting depth {depth} exceeds limit of {limit}")
        self.depth = depth
        self.limit = limit


class CommandError(OscCommandError):
    """An error tied to one dispatched message address."""

    def __init__(self, address: str, reason: str):
        super().__init__(f"{address}: {reason}")
        self.address = address
        self.reason = reason


class UnknownCommandError(CommandError):
    """Message address has no entry in the command table."""

    def __init__(self, address: str):
        super().__init__(address, "command was not recognised in the configuration")


class TemplateParseError(CommandError):
    """Substituted template could not be split into an argument vector."""


class ExecError(CommandError):
    """Child process could not be spawned or waited on."""

    def __init__(self, address: str, cause: Optional[BaseException] = None):
        super().__init__(address, f"failed due to an execution error: {cause}")
        self.cause = cause


class EncodeError(OscCommandError):
    """Reply could not be serialised into an OSC packet."""


class SendError(OscCommandError):
    """Reply could not be sent back over UDP."""
