"""Service-layer exceptions, each mapped to an HTTP status by the app factory."""


class StorefrontError(Exception):
    """Base class for errors raised by storefront services."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(StorefrontError):
    status_code = 401
    default_message = "Not authenticated"


class PermissionDeniedError(StorefrontError):
    status_code = 403
    default_message = "Not authorized - admin role required"


class NotFoundError(StorefrontError):
    status_code = 404
    default_message = "Not found"


class ValidationError(StorefrontError):
    status_code = 400
    default_message = "Missing required fields"


class AlreadyPurchasedError(StorefrontError):
    status_code = 400
    default_message = "You have already purchased this product"


class AuthProviderError(StorefrontError):
    """The auth provider rejected the request; its message is passed through verbatim."""

    status_code = 400


class UpstreamError(StorefrontError):
    """Payment processor or data store failure. Details are logged, not returned."""

    status_code = 500
    default_message = "An error occurred while contacting an upstream service"
