"""
GPU Fleet - quota-aware GPU provisioning and scheduled fleet capacity control.

Decides which instance class and pricing model the account's quotas permit
before anything is provisioned, and drives capacity-managed groups up and
down on a schedule with a tag-based reconciliation sweep as a safety net.
"""

__version__ = "1.0.0"

from gpu_fleet.core.exceptions import FleetError

__all__ = ["FleetError"]
