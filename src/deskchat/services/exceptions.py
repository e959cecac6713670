"""Service layer exceptions."""


class ServiceError(Exception):
    """Base exception for service errors."""

    pass


class ConfigDisabledError(ServiceError):
    """Raised when a request targets a disabled configuration."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Model configuration is disabled: {name}")
        self.name = name


class NoConfigAvailableError(ServiceError):
    """Raised when no enabled configuration exists."""

    pass
