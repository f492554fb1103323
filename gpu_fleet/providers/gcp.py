"""
GCP provider adapter: regional quotas, zonal managed instance groups and labelled instances.
"""
from datetime import datetime
from typing import Dict, List, Optional
import logging

import requests
from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import compute_v1

from .base import BaseProviderAdapter
from .models import FleetTarget, PowerState, PricingModel, QuotaSnapshot, TagSelector, TaggedResource
from ..core.exceptions import (
    GroupNotFound, ProviderError, ProviderTransient, QuotaUnavailable, ResourceActionFailed, ValidationError
)


logger = logging.getLogger(__name__)


# Regional quota metrics holding the vCPU limit for each machine family
QUOTA_METRICS: Dict[str, Dict[PricingModel, str]] = {
    'N1': {
        PricingModel.ON_DEMAND: 'CPUS',
        PricingModel.SPOT: 'PREEMPTIBLE_CPUS',
    },
    'A2': {
        PricingModel.ON_DEMAND: 'A2_CPUS',
        PricingModel.SPOT: 'PREEMPTIBLE_CPUS',
    },
}

DEFAULT_LABEL_KEYS: Dict[str, str] = {
    'project': 'project',
    'environment': 'environment',
    'role': 'role',
    'lifecycle_state': 'lifecycle-state',
}

_INSTANCE_STATES = {
    'PROVISIONING': PowerState.PENDING,
    'STAGING': PowerState.PENDING,
    'RUNNING': PowerState.RUNNING,
    'STOPPING': PowerState.STOPPING,
    'SUSPENDING': PowerState.STOPPING,
    'STOPPED': PowerState.STOPPED,
    'SUSPENDED': PowerState.STOPPED,
    'TERMINATED': PowerState.STOPPED,
}

_TRANSIENT_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.TooManyRequests,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.RetryError,
    auth_exceptions.TransportError,
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
)

# API errors, credential failures and REST transport failures (timeouts land here)
_CLIENT_ERRORS = (
    gcp_exceptions.GoogleAPIError,
    auth_exceptions.GoogleAuthError,
    requests.exceptions.RequestException,
)


class GCPProviderAdapter(BaseProviderAdapter):
    """Provider adapter backed by google-cloud-compute.

    Capacity groups are zonal managed instance groups without an attached
    autoscaler, so they carry no floor: ``min_count`` is always reported as 0
    and ``max_count`` comes from ``max_group_size``.
    """

    def __init__(
        self,
        project: str,
        zone: str,
        max_group_size: int = 10,
        label_keys: Optional[Dict[str, str]] = None,
        timeout: float = 60.0
    ):
        self.project = project
        self.zone = zone
        self.region = zone.rsplit('-', 1)[0]
        self.max_group_size = max_group_size
        self.label_keys = {**DEFAULT_LABEL_KEYS, **(label_keys or {})}
        self.timeout = timeout
        self._regions_client = None
        self._groups_client = None
        self._instances_client = None

    @property
    def provider_name(self) -> str:
        return 'gcp'

    @property
    def regions_client(self):
        if self._regions_client is None:
            self._regions_client = compute_v1.RegionsClient()
        return self._regions_client

    @property
    def groups_client(self):
        if self._groups_client is None:
            self._groups_client = compute_v1.InstanceGroupManagersClient()
        return self._groups_client

    @property
    def instances_client(self):
        if self._instances_client is None:
            self._instances_client = compute_v1.InstancesClient()
        return self._instances_client

    def get_quota(self, family: str, pricing_model: PricingModel) -> QuotaSnapshot:
        try:
            metric = QUOTA_METRICS[family][pricing_model]
        except KeyError:
            raise ValidationError(
                f"Unknown GCP machine family for quota lookup: {family}. "
                f"Expected one of: {', '.join(sorted(QUOTA_METRICS))}"
            )

        try:
            region = self.regions_client.get(project=self.project, region=self.region, timeout=self.timeout)
        except _CLIENT_ERRORS as e:
            raise QuotaUnavailable(
                f"GCP quota {metric} ({family}, {pricing_model.value}) unavailable: {str(e)}",
                family=family,
                pricing_model=pricing_model,
                details=str(e)
            )

        limit = 0.0
        for quota in region.quotas:
            if quota.metric == metric:
                limit = float(quota.limit)
                break

        return QuotaSnapshot(
            family=family,
            pricing_model=pricing_model,
            limit_vcpus=limit,
            as_of=datetime.utcnow()
        )

    def get_group_capacity(self, group_id: str) -> FleetTarget:
        try:
            manager = self.groups_client.get(
                project=self.project,
                zone=self.zone,
                instance_group_manager=group_id,
                timeout=self.timeout
            )
        except gcp_exceptions.NotFound as e:
            raise GroupNotFound(group_id, details=str(e))
        except _CLIENT_ERRORS as e:
            self._handle_gcp_error(e, 'describe group', group_id)

        return FleetTarget(
            group_id=group_id,
            desired_count=manager.target_size,
            min_count=0,
            max_count=max(self.max_group_size, manager.target_size)
        )

    def set_group_capacity(self, group_id: str, desired: int, min_count: int) -> None:
        if min_count:
            logger.warning(f"Managed instance group {group_id} has no floor; ignoring min_count={min_count}")

        try:
            self.groups_client.resize(
                project=self.project,
                zone=self.zone,
                instance_group_manager=group_id,
                size=desired,
                timeout=self.timeout
            )
        except gcp_exceptions.NotFound as e:
            raise GroupNotFound(group_id, details=str(e))
        except _CLIENT_ERRORS as e:
            self._handle_gcp_error(e, 'resize group', group_id)

        logger.info(f"Resized managed instance group {group_id} to {desired}")

    def list_tagged_resources(self, selector: TagSelector) -> List[TaggedResource]:
        label_filter = ' AND '.join(
            f'labels.{self.label_keys[key]} = "{value}"'
            for key, value in selector.as_tags().items()
        )

        resources = []
        try:
            for instance in self.instances_client.list(
                project=self.project, zone=self.zone, filter=label_filter, timeout=self.timeout
            ):
                state = _INSTANCE_STATES.get(instance.status)
                if state is None:
                    continue

                resources.append(TaggedResource(
                    resource_id=instance.name,
                    tags=self._normalize_labels(dict(instance.labels)),
                    power_state=state
                ))
        except _CLIENT_ERRORS as e:
            self._handle_gcp_error(e, 'discovery')

        return resources

    def set_power_state(self, resource_id: str, state: PowerState) -> None:
        try:
            if state is PowerState.RUNNING:
                self.instances_client.start(
                    project=self.project, zone=self.zone, instance=resource_id, timeout=self.timeout
                )
            elif state is PowerState.STOPPED:
                self.instances_client.stop(
                    project=self.project, zone=self.zone, instance=resource_id, timeout=self.timeout
                )
            else:
                raise ValidationError(f"Cannot request power state {state.value} for {resource_id}")
        except _CLIENT_ERRORS as e:
            raise ResourceActionFailed(
                f"Failed to set GCP instance {resource_id} to {state.value}: {str(e)}",
                resource_id=resource_id,
                details=str(e)
            )

    def _normalize_labels(self, labels: Dict[str, str]) -> Dict[str, str]:
        tags = dict(labels)
        for key, label_key in self.label_keys.items():
            if label_key in labels:
                tags[key] = labels[label_key]
        return tags

    def _handle_gcp_error(self, error: Exception, operation: str, resource_id: str = None) -> None:
        resource_context = f" for {resource_id}" if resource_id else ""
        error_message = f"GCP {operation} failed{resource_context}: {str(error)}"

        if isinstance(error, _TRANSIENT_ERRORS):
            raise ProviderTransient(error_message, details=str(error))
        raise ProviderError(error_message, details=str(error))
