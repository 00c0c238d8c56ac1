"""Pipeline error taxonomy."""


class PipelineError(Exception):
    """Base class for generation pipeline errors."""


class InputIncomplete(PipelineError):
    """Required quiz answers or birth details are missing."""


class GenerationFailure(PipelineError):
    """An external generation call failed, timed out, or returned junk."""


class PersistenceFailure(PipelineError):
    """The durable store could not complete a mandatory write."""


class NotificationFailure(PipelineError):
    """The notification service rejected or dropped a send."""
