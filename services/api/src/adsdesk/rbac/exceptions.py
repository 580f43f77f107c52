"""Domain exceptions for the authorization core."""


class RBACError(Exception):
    """Base exception for authorization and role-management errors."""


class UnauthenticatedError(RBACError):
    """A decision was requested without an identified actor."""

    def __init__(self, detail: str = "Authentication required") -> None:
        self.detail = detail
        super().__init__(detail)


class ResolutionFailedError(RBACError):
    """The permission store could not answer a decision query.

    Never interpreted as Allow or Deny; callers surface it as an
    operational (5xx-class) failure.
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown error"
        super().__init__(f"Permission resolution failed during {operation}: {detail}")


class NotFoundError(RBACError):
    """A referenced role, module, permission, or user does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class LifecycleConflictError(RBACError):
    """A lifecycle precondition does not hold (e.g. deleting a system role)."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class DuplicateNameError(LifecycleConflictError):
    """A role, module, or permission with this name already exists."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} already exists: {name}")


class LifecycleWriteError(RBACError):
    """A mutation or its paired audit append failed; nothing was committed."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation} failed: {type(cause).__name__}: {cause}")


class PrivilegeEscalationError(RBACError):
    """The acting role may not shape or hand out a role this privileged."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
