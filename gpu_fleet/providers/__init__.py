"""Cloud provider adapters."""

import boto3

from .base import BaseProviderAdapter
from .catalog import get_catalog
from .models import (
    Action, Alternative, CapacityChange, ErrorRecord, FleetTarget, InstanceClass, PowerState,
    PricingModel, QuotaSnapshot, ReconciliationResult, ResolutionDecision, ScheduleWindow,
    SweepOutcome, TagSelector, TaggedResource
)
from ..core.exceptions import ConfigurationError


def create_adapter(config) -> BaseProviderAdapter:
    """Build the adapter for the configured backend.

    This is the only place that selects a backend by name.

    Args:
        config: Loaded Config

    Raises:
        ConfigurationError: If the provider is not supported
    """
    if config.provider == 'aws':
        from .aws import AWSProviderAdapter
        return AWSProviderAdapter(
            boto3.Session(region_name=config.region),
            config.region,
            max_attempts=config.max_attempts,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout
        )
    if config.provider == 'gcp':
        from .gcp import GCPProviderAdapter
        return GCPProviderAdapter(
            project=config.gcp_project,
            zone=config.gcp_zone,
            max_group_size=config.max_group_size,
            timeout=float(config.read_timeout)
        )
    raise ConfigurationError(f"Unsupported provider: {config.provider}")


__all__ = [
    'BaseProviderAdapter',
    'create_adapter',
    'get_catalog',
    'Action',
    'Alternative',
    'CapacityChange',
    'ErrorRecord',
    'FleetTarget',
    'InstanceClass',
    'PowerState',
    'PricingModel',
    'QuotaSnapshot',
    'ReconciliationResult',
    'ResolutionDecision',
    'ScheduleWindow',
    'SweepOutcome',
    'TagSelector',
    'TaggedResource',
]
