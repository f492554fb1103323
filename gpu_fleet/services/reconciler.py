"""
Tag-based reconciliation sweep converging resource power state.
"""
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List
import logging

from ..providers.base import BaseProviderAdapter
from ..providers.models import Action, ErrorRecord, SweepOutcome, TagSelector, TaggedResource
from ..core.exceptions import ResourceActionFailed


logger = logging.getLogger(__name__)


class TagReconciler:
    """Backup convergence path over tagged resources.

    Only power state is ever changed; resources are never created or
    destroyed. Per-resource requests run concurrently and fail independently.
    """

    def __init__(self, adapter: BaseProviderAdapter, max_workers: int = 5):
        """Initialize the reconciler.

        Args:
            adapter: Provider adapter used for discovery and power-state requests
            max_workers: Maximum number of concurrent power-state requests
        """
        self.adapter = adapter
        self.max_workers = max_workers

    def eligible_resources(self, action: Action, selector: TagSelector) -> List[TaggedResource]:
        """Discover resources matching the selector whose state allows the action.

        Raises:
            ProviderError: If discovery fails
        """
        eligible = []
        for resource in self.adapter.list_tagged_resources(selector):
            if not selector.matches(resource.tags):
                logger.debug(f"Skipping {resource.resource_id}: tags do not match selector")
                continue
            if resource.power_state not in action.eligible_states:
                logger.debug(
                    f"Skipping {resource.resource_id}: state {resource.power_state.value} "
                    f"not eligible for {action.value}"
                )
                continue
            eligible.append(resource)
        return eligible

    def reconcile(self, action: Action, selector: TagSelector) -> SweepOutcome:
        """Request the action's power state for every eligible tagged resource.

        Args:
            action: START moves stopped resources to running; STOP moves running or pending ones to stopped
            selector: Tags identifying the fleet's compute resources

        Returns:
            Sweep outcome with the ids acted on and one error record per failure
        """
        try:
            resources = self.eligible_resources(action, selector)
        except Exception as e:
            logger.error(f"Tag sweep discovery failed: {str(e)}")
            return SweepOutcome(errors=(ErrorRecord.from_exception('resource', e),))

        if not resources:
            logger.info(f"Tag sweep for {action.value}: no eligible resources")
            return SweepOutcome()

        target_state = action.target_state
        acted_on = []
        errors = []

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_resource = {
                executor.submit(self.adapter.set_power_state, resource.resource_id, target_state): resource
                for resource in resources
            }

            for future in as_completed(future_to_resource):
                resource = future_to_resource[future]
                try:
                    future.result()
                    acted_on.append(resource.resource_id)
                    logger.info(f"Requested {target_state.value} for {resource.resource_id}")
                except ResourceActionFailed as e:
                    errors.append(ErrorRecord.from_exception('resource', e, resource.resource_id))
                    logger.error(f"Failed to {action.value} {resource.resource_id}: {e.message}")
                except Exception as e:
                    failure = ResourceActionFailed(
                        f"Unexpected error during {action.value} of {resource.resource_id}: {str(e)}",
                        resource_id=resource.resource_id,
                        details=str(e)
                    )
                    errors.append(ErrorRecord.from_exception('resource', failure, resource.resource_id))
                    logger.error(failure.message)

        logger.info(f"Tag sweep for {action.value} complete: {len(acted_on)} succeeded, {len(errors)} failed")

        return SweepOutcome(acted_on=tuple(sorted(acted_on)), errors=tuple(errors))
