"""Domain exceptions mapped to HTTP responses by the error handlers.

Benign duplicates (achievement already earned, milestone already recorded,
quest already claimed) are not exceptions; services report them through
return values.
"""

from __future__ import annotations


class AfterhoursError(Exception):
    """Base class for domain errors."""

    status_code = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidInputError(AfterhoursError):
    """Malformed input rejected before any mutation."""

    status_code = 422


class NotFoundError(AfterhoursError):
    status_code = 404


class ForbiddenError(AfterhoursError):
    """Caller is not allowed to act on the target identity."""

    status_code = 403
