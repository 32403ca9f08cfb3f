"""Error taxonomy for identity resolution, merge and reversal."""


class MPIError(Exception):
    """Base exception for all master patient index failures."""

    retryable = False


class NotFoundError(MPIError):
    """Raised when a referenced person or merge does not exist."""


class InvalidPersonError(MPIError):
    """Raised when a person record violates a store constraint."""


class InvalidMergeError(MPIError):
    """Raised when a merge request is structurally invalid (e.g. self-merge)."""


class MergeCycleError(InvalidMergeError):
    """Raised when a merge would make a merged_into chain loop back on itself."""


class AlreadyMergedError(MPIError):
    """Raised when the source person has already been absorbed."""


class DuplicateMergeError(MPIError):
    """Raised when an ACTIVE merge already links the same pair of persons."""


class NotReversibleError(MPIError):
    """Raised when a merge is no longer ACTIVE and cannot be reversed."""


class MergeChainError(MPIError):
    """Raised when a merged_into chain is longer than the configured bound."""


class SearchCancelledError(MPIError):
    """Raised when a candidate search is cancelled by its caller."""


class StoreUnavailableError(MPIError):
    """Raised on transport or transaction failures in the identity store.

    The caller may retry reads. For merges and reversals the outcome is
    unknown: re-query the PersonMerge before retrying.
    """

    retryable = True
