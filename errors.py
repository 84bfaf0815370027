"""Exception types raised by the budget engine."""


class BudgetCoachError(Exception):
    """Base class for all engine errors."""


class InvalidImportPayload(BudgetCoachError):
    """The imported content is neither delimited text nor a list of records.

    The whole import is rejected and the current transaction set is kept.
    """


class MalformedRow(BudgetCoachError):
    """A single record is missing a required field or has a bad amount.

    Raised per row while parsing and caught by the batch loop, which drops
    the row and carries on.
    """

    def __init__(self, reason: str, row=None):
        super().__init__(reason)
        self.reason = reason
        self.row = row
