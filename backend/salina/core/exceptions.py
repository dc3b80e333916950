"""
Service-level exceptions
"""


class SalinaError(Exception):
    """Base class for errors raised by the service layer"""


class UnauthorizedError(SalinaError):
    """Raised when the caller's role does not allow an action"""

    def __init__(self, action: str, role: str = None):
        self.action = action
        self.role = role
        super().__init__(f"Role {role!r} may not perform {action}")


class InvitationProviderError(SalinaError):
    """The identity provider rejected or failed an invitation request"""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class ImmutableRecordError(SalinaError):
    """Raised on an attempt to change an append-only record"""


class TaxIdDecryptionError(SalinaError):
    pass
