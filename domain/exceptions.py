"""Domain Exceptions"""


class DomainError(Exception):
    """Base class for every error raised by the core"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed or out-of-range input"""


class NotFoundError(DomainError):
    """Referenced entity does not exist"""


class AuthorizationError(DomainError):
    """Caller lacks ownership or role for the mutation"""


class ConflictError(DomainError):
    """Overlapping booking, duplicate identity or prohibited transition"""


class InvalidTransitionError(ConflictError):

    def __init__(self, current: str, target: str):
        super().__init__(f'Cannot change status from "{current}" to "{target}"')
        self.current = current
        self.target = target


class StateImmutabilityError(DomainError):
    """Attempt to alter dates of an elapsed date range"""


class InternalError(DomainError):
    """Storage or collaborator failure"""


class DuplicateKeyError(Exception):
    """Raised by a repository when a unique index rejects a write"""

    def __init__(self, field: str, value: str):
        super().__init__(f"Duplicate value for {field}: {value}")
        self.field = field
        self.value = value


def describe_validation_error(exc) -> str:
    """First violation of a pydantic ValidationError as a readable message"""
    error = exc.errors()[0]
    if error["type"] == "value_error":
        return str(error["ctx"]["error"])
    field = ".".join(str(part) for part in error["loc"])
    if field:
        return f"{field}: {error['msg']}"
    return error["msg"]
