from typing import Any, List, Optional


class TypespeedError(Exception):
    """Base class for application errors"""


class StorageError(TypespeedError):
    """The persistence layer failed (connection, SQL or integrity problem)"""


class ConflictError(StorageError):
    """A write violated an integrity constraint (usually UNIQUE)"""


class UserExistsError(TypespeedError):
    """Username or Google account is already registered"""


class InvalidCredentialsError(TypespeedError):
    """Username/password or token did not check out"""


class SubmissionError(TypespeedError):
    """A results API call failed; the caller keeps its payload and may resubmit"""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 details: Optional[List[Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details or []
