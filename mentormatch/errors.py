"""
Error kinds raised by the matching engine.

Degenerate numeric inputs (zero vectors, empty groups) never raise; they
return sentinel values instead. These exceptions cover missing data,
upstream failures and malformed input.
"""

from typing import Iterable, List


class MatchingError(Exception):
    """Base class for all matching engine errors."""


class NotFound(MatchingError, LookupError):
    """A profile or feature vector does not exist."""


class DataUnavailable(MatchingError):
    """The upstream feature vector or profile source failed."""


class InvalidInput(MatchingError, ValueError):
    """Malformed criteria, constraints or mismatched vector dimensions."""


class MissingProfile(NotFound):
    """
    Source or candidate profiles referenced by a validation test case are absent.

    Attributes:
        missing_ids: The absent user IDs, in the order they were requested
        test_case_id: Test case that referenced them (if known)
    """

    def __init__(self, missing_ids: Iterable[str], test_case_id: str = None):
        self.missing_ids: List[str] = list(missing_ids)
        self.test_case_id = test_case_id
        where = f" for test case {test_case_id}" if test_case_id else ""
        super().__init__(f"Missing profiles{where}: {', '.join(self.missing_ids)}")
