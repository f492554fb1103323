"""
Base provider adapter interface for cloud backends.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from .models import FleetTarget, PowerState, PricingModel, QuotaSnapshot, TagSelector, TaggedResource


class BaseProviderAdapter(ABC):
    """Abstract capability set every cloud backend implements.

    The quota resolver, fleet scheduler and tag reconciler only talk to this
    interface; nothing above it knows which cloud it is running against.
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Backend identifier (e.g., 'aws', 'gcp')."""
        pass

    @abstractmethod
    def get_quota(self, family: str, pricing_model: PricingModel) -> QuotaSnapshot:
        """Read the current vCPU limit for a compute family and pricing model.

        Args:
            family: Provider-specific quota family (e.g., 'G')
            pricing_model: Pricing model to read the limit for

        Returns:
            Fresh, uncached quota snapshot

        Raises:
            QuotaUnavailable: If the quota service cannot be reached
        """
        pass

    @abstractmethod
    def get_group_capacity(self, group_id: str) -> FleetTarget:
        """Read the capacity contract of a capacity-managed group.

        Raises:
            GroupNotFound: If the group does not exist
            ProviderError: If the lookup fails
        """
        pass

    @abstractmethod
    def set_group_capacity(self, group_id: str, desired: int, min_count: int) -> None:
        """Request a new desired size and floor for a capacity-managed group.

        The request is fire-and-forget: the group owns the instance lifecycle.

        Raises:
            GroupNotFound: If the group does not exist
            ProviderError: If the update is rejected
        """
        pass

    @abstractmethod
    def list_tagged_resources(self, selector: TagSelector) -> List[TaggedResource]:
        """List compute resources whose tags match the selector.

        Raises:
            ProviderError: If discovery fails
        """
        pass

    @abstractmethod
    def set_power_state(self, resource_id: str, state: PowerState) -> None:
        """Request a power-state transition (RUNNING or STOPPED) for one resource.

        Raises:
            ResourceActionFailed: If the provider rejects the request
        """
        pass

    def list_offered_classes(self, names: Sequence[str]) -> List[str]:
        """Filter instance class names to those offered in the adapter's location.

        Default implementation assumes every class is offered.
        """
        return list(names)

    def request_quota_increase(self, family: str, pricing_model: PricingModel, desired_vcpus: int) -> Optional[str]:
        """Submit a quota increase request.

        Returns:
            Provider request identifier, or None if the backend has no API for it

        Raises:
            ProviderError: If the request is rejected
        """
        return None
