"""Custom exceptions for the application."""

from typing import Any


class AppException(Exception):
    """Base exception for application errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ConfigurationError(AppException):
    """Raised when there's a configuration problem."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


class InvalidInput(AppException):
    """Raised when request data is missing or malformed."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(
            message,
            code="INVALID_INPUT",
            details={"field": field} if field else {},
        )


class NotFound(AppException):
    """Raised when a resource does not exist for the calling tenant."""

    status_code = 404

    def __init__(self, resource: str, resource_id: str, tenant_id: str | None = None) -> None:
        details = {"resource": resource, "id": resource_id}
        if tenant_id:
            details["tenant_id"] = tenant_id
        super().__init__(
            f"{resource.capitalize()} not found: {resource_id}",
            code="NOT_FOUND",
            details=details,
        )


class ProviderError(AppException):
    """Raised when the remote AI provider fails."""

    status_code = 502

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(
            message,
            code="PROVIDER_ERROR",
            details={"provider": provider} if provider else {},
        )


class StoreError(AppException):
    """Raised when a persistence operation fails."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(
            message,
            code="STORE_ERROR",
            details={"operation": operation} if operation else {},
        )


class CrawlError(AppException):
    """Raised when a page cannot be fetched for the knowledge base."""

    status_code = 502

    def __init__(self, message: str, url: str) -> None:
        super().__init__(message, code="CRAWL_ERROR", details={"url": url})
