"""
Error taxonomy for prom-replay.

Fatal errors derive from ReplayToolError and stop the invocation with a
non-zero exit. Per-request failures are never raised; they are reported as
an Outcome by the replay procedure.
"""


class ReplayToolError(Exception):
    """Base class for errors that abort the whole invocation."""


class IngestionError(ReplayToolError):
    """Archive unreachable, container corrupt or an entry unparseable."""


class ConfigurationError(ReplayToolError):
    """Invalid flags, config file, location scheme or scheduling request."""
