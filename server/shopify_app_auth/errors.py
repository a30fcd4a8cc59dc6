from dataclasses import dataclass


@dataclass
class ShopifyAppError(Exception):
    code: str
    message: str
    status: int = 401


class CookieNotFoundError(ShopifyAppError):
    def __init__(self, message: str = "Session cookie not found") -> None:
        super().__init__("COOKIE_NOT_FOUND", message, status=401)


class InvalidJwtTokenError(ShopifyAppError):
    def __init__(self, message: str = "Invalid session token") -> None:
        super().__init__("INVALID_JWT_TOKEN", message, status=401)


class ShopifyDomainNotFound(ShopifyAppError):
    def __init__(self, message: str = "Shop domain not found") -> None:
        super().__init__("SHOP_DOMAIN_NOT_FOUND", message, status=400)


class ShopifyHostNotFound(ShopifyAppError):
    def __init__(self, message: str = "Host parameter not found") -> None:
        super().__init__("HOST_NOT_FOUND", message, status=400)


class HttpResponseError(ShopifyAppError):
    """Non-success response from the Admin API; ``status`` is the upstream code."""

    def __init__(self, code: int, message: str = "") -> None:
        super().__init__("UPSTREAM_ERROR", message or f"Admin API error {code}", status=code)

    @property
    def response_code(self) -> int:
        return self.status


def as_error_payload(err: ShopifyAppError) -> dict:
    return {
        "error": {
            "code": err.code,
            "message": err.message,
        }
    }
