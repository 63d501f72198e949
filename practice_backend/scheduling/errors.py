"""Exceptions raised inside the reconciliation pipeline.

None of these escape ``reconcile``: a ``SourceUnavailable`` turns into an
empty remote contribution and a ``MalformedRecord`` drops a single record.
"""


class ScheduleError(Exception):
    """Base class for reconciliation errors."""


class SourceUnavailable(ScheduleError):
    """The remote appointment or availability source could not be reached."""


class MalformedRecord(ScheduleError):
    """A raw appointment or availability entry could not be normalized."""

    def __init__(self, reason: str, record=None):
        super().__init__(reason)
        self.reason = reason
        self.record = record
