"""
State Analytics Errors

Exceptions raised while normalising state events and resolving sessions.
NoDataFound and NoActiveSession never leave the bookender: it converts them to None.
"""


class StateAnalyticsError(Exception):
    """Base class for state analytics errors."""


class MalformedEvent(StateAnalyticsError):
    """A stored record has no usable timestamp or status code."""


class NoDataFound(StateAnalyticsError):
    """The combined bookending fetch returned no state events."""


class NoActiveSession(StateAnalyticsError):
    """State events exist but no running cycle could be derived from them."""
