"""
Domain exceptions for the establishment directory.

Views translate these into HTTP responses using ``status_code`` and ``code``.
"""


class EstablishmentServiceError(Exception):
    """Base exception for establishment directory errors."""
    status_code = 400
    code = 'establishment_error'


class EstablishmentNotFoundError(EstablishmentServiceError):
    """Raised when an establishment id does not resolve in the caller's directory."""
    status_code = 404
    code = 'not_found'


class NoPrincipalEstablishmentError(EstablishmentServiceError):
    """Raised when an account has not declared its own establishment yet."""
    status_code = 409
    code = 'no_principal_establishment'
