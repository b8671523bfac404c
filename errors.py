class LedgerError(Exception):
    """Base class for errors reported back to the caller."""


class InvalidInput(LedgerError, ValueError):
    pass


class DuplicateName(LedgerError, ValueError):
    pass


class NotFound(LedgerError, LookupError):
    pass
