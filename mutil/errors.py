"""Exceptions raised by mutil."""


class MutilError(Exception):
    """Base class for mutil errors."""


class SourceUnavailable(MutilError):
    """The player control socket could not be reached or gave no usable reply."""


class StoreError(MutilError):
    """The scrob store could not be created, read or written."""
