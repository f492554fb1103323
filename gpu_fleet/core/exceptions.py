"""
Core exception classes for GPU Fleet.
"""


class FleetError(Exception):
    """Base exception for all GPU Fleet errors."""

    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(FleetError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(FleetError):
    """Raised when input validation fails."""
    pass


class StateError(FleetError):
    """Raised when result persistence fails."""
    pass


class InvalidInstanceClass(FleetError):
    """Raised when an instance class cannot be resolved (zero vCPUs, unknown family or name)."""
    pass


class ProviderError(FleetError):
    """Raised when a cloud provider operation fails."""
    pass


class ProviderTransient(ProviderError):
    """Raised when a provider call fails in a way that may succeed on retry.

    Adapters retry these internally through their SDK retry policy; one that
    escapes the adapter is reported like any other provider error.
    """
    pass


class QuotaUnavailable(ProviderError):
    """Raised when the provider's quota service cannot be reached."""

    def __init__(self, message: str, family: str = None, pricing_model=None, details: str = None):
        super().__init__(message, details=details)
        self.family = family
        self.pricing_model = pricing_model


class GroupNotFound(ProviderError):
    """Raised when a capacity-managed group does not exist."""

    def __init__(self, group_id: str, details: str = None):
        super().__init__(f"Capacity group {group_id} not found", details=details)
        self.group_id = group_id


class ResourceActionFailed(ProviderError):
    """Raised when a power-state transition on a single resource fails."""

    def __init__(self, message: str, resource_id: str = None, details: str = None):
        super().__init__(message, details=details)
        self.resource_id = resource_id
