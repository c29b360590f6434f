"""Errors returned by the use cases.

Every error is a ``ValueError`` whose ``str()`` is a stable machine code
(``NOT_FOUND``, ``PR_MERGED`` ...). ``message`` holds the human readable text
that ends up in the HTTP error body.
"""
from typing import Optional


class ServiceError(ValueError):
    code = "UNKNOWN"
    message = "internal error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.code)


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    message = "resource not found"


class TeamNotFound(NotFoundError):
    message = "team not found"


class UserNotFound(NotFoundError):
    message = "user not found"


class PRNotFound(NotFoundError):
    message = "pull request not found"


class AlreadyExistsError(ServiceError):
    pass


class TeamExists(AlreadyExistsError):
    code = "TEAM_EXISTS"
    message = "team_name already exists"


class PRExists(AlreadyExistsError):
    code = "PR_EXISTS"
    message = "PR id already exists"


class ConflictError(ServiceError):
    pass


class AlreadyMerged(ConflictError):
    code = "PR_MERGED"
    message = "cannot reassign on merged PR"


class NotReviewer(ConflictError):
    code = "NOT_ASSIGNED"
    message = "reviewer is not assigned to this PR"


class UserNotInTeam(ConflictError):
    code = "USER_NOT_IN_TEAM"
    message = "user does not belong to the team"


class InvalidInput(ServiceError):
    code = "VALIDATION_ERROR"
    message = "invalid input"


class EmptyName(InvalidInput):
    message = "team name is required"


class StorageError(ServiceError):
    """Any storage failure other than "no matching row"."""

    code = "UNKNOWN"

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        message = operation if cause is None else f"{operation}: {cause}"
        super().__init__(message)
