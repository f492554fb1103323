"""Quota resolution and fleet capacity services."""

from .quota import QuotaFetcher
from .resolver import InstanceResolver, ResolutionService
from .scheduler import FleetScheduler
from .reconciler import TagReconciler
from .orchestrator import FleetOrchestrator

__all__ = [
    'QuotaFetcher',
    'InstanceResolver',
    'ResolutionService',
    'FleetScheduler',
    'TagReconciler',
    'FleetOrchestrator'
]
