"""Exception hierarchy for sourcedex runs.

Fatal conditions (usage, configuration, bootstrap) abort a run before any
optional stage executes. Per-unit conditions (one repository, one push
target) are caught at the loop that produced them and never propagate.
"""


class SourcedexError(Exception):
    """Base class for all sourcedex errors."""


class UsageError(SourcedexError):
    """Raised for a malformed command line; the usage text is printed."""


class ConfigurationError(SourcedexError):
    """Raised when a configuration file cannot be read or decoded."""


class BootstrapError(SourcedexError):
    """Raised when the source root, data root or tag tool is unusable."""


class HistoryError(SourcedexError):
    """Raised when one repository fails to produce its history cache.

    Attributes:
        repository: Identifier of the failing repository
    """

    def __init__(self, message: str, repository: str | None = None):
        super().__init__(message)
        self.repository = repository


class DistributionError(SourcedexError):
    """Raised when a configuration push to one target fails."""


class IndexDatabaseError(SourcedexError):
    """Raised by the index engine when a data root holds no usable index."""
