"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``waste_service.main`` maps them onto HTTP responses.
"""


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(ServiceError):
    """Malformed input to a write. Surfaced immediately, never retried."""

    status_code = 422


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """An optimistic version check on a write did not match."""

    status_code = 409


class TransientStoreError(ServiceError):
    """The store could not be reached, or did not answer in time, after retries."""

    status_code = 503


class IntegrityViolation(ServiceError):
    """Stored data breaks an invariant (e.g. duplicate notification rows).

    Only reported by the reconciliation pass; callers never see it raised.
    """

    status_code = 500


class GatewayError(ServiceError):
    status_code = 502
