"""Custom exception hierarchy for the agenda engine.

Parse problems in recurrence rules are normally degraded and logged rather
than raised; the exceptions here cover the cases a caller can act on.
"""


class AgendaError(Exception):
    """Base exception for all agenda engine errors."""


class RecurrenceRuleError(AgendaError):
    """Base exception for recurrence rule problems."""


class RecurrenceRuleParseError(RecurrenceRuleError):
    """Recurrence rule text is unrecoverable.

    Raised when the text is empty or contains no KEY=VALUE segment at all.
    Malformed individual fields never raise; they fall back to defaults.
    """


class RescheduleError(AgendaError):
    """Base exception for drag-and-drop rescheduling errors."""


class UnknownSectionError(RescheduleError):
    """Drop target name is not one of Today, Tomorrow, Upcoming or Someday."""


class ItemNotFoundError(RescheduleError):
    """Dropped item id is not present in the current item collection."""


class ConfigError(AgendaError):
    """Configuration file could not be parsed into a mapping."""
