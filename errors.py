# errors.py


class ApiError(Exception):
    """Request-shape failure, rendered to the caller as {"error": message}."""

    status = 500
    message = "Internal error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(ApiError):
    status = 400
    message = "Bad Request"


class NotFound(ApiError):
    status = 404
    message = "Not found"


class PayloadTooLarge(ApiError):
    status = 413
    message = "Payload too large"


# Upstream failures never reach the HTTP response; they are absorbed by the
# synchronizer and forwarder.
class UpstreamError(Exception):
    pass


class UpstreamUnavailable(UpstreamError):
    pass


class MalformedUpstreamPayload(UpstreamError):
    pass
