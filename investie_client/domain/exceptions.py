"""Domain-specific exceptions"""

from typing import Dict, List, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class AuthError(DomainException):
    """Credential is missing or was rejected by the platform"""

    pass


class PermissionDeniedError(DomainException):
    """Actor is authenticated but not allowed to perform the operation"""

    pass


class NotFoundError(DomainException):
    """Requested resource does not exist"""

    pass


class AccountNotFound(NotFoundError):
    """User has no profile of the requested account type"""

    def __init__(self, account_type: str):
        super().__init__(f"No {account_type} account exists for this user")
        self.account_type = account_type


class ValidationError(DomainException):
    """Input rejected, either locally or by the platform with field-level detail"""

    def __init__(self, message: str, field_errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class InvalidTransitionError(ValidationError):
    """Project lifecycle event is not allowed from the current state"""

    def __init__(self, event: str, status: str, approval_status: Optional[str]):
        state = status if approval_status is None else f"{status}({approval_status})"
        super().__init__(f"Cannot {event} a project in state {state}")
        self.event = event
        self.status = status
        self.approval_status = approval_status


class ConflictError(DomainException):
    """Operation conflicts with existing state"""

    pass


class DuplicateRequestError(ConflictError):
    """Investor already has an active request on this project"""

    pass


class SelfInvestmentError(ConflictError):
    """Project owner attempted to invest in their own project"""

    pass


class NetworkError(DomainException):
    """Platform could not be reached (timeout or connection failure)"""

    pass


class PlatformAPIError(DomainException):
    """Platform returned a server error or a malformed response"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
