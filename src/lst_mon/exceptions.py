"""Exception hierarchy for the LST pipeline."""


class LSTError(Exception):
    """Base class for all lst_mon errors."""
    pass


class InputError(LSTError, ValueError):
    """Invalid request: bad geometry source, coordinates, filter or date range."""
    pass


class SourceAccessError(LSTError):
    """The imagery catalogue or an asset could not be reached or read."""
    pass
