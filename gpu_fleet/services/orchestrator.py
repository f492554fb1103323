"""
Invocation orchestrator combining the capacity scheduler and the tag sweep.
"""
from datetime import datetime
from typing import Optional
import logging

from ..providers.base import BaseProviderAdapter
from ..providers.models import Action, CapacityChange, ErrorRecord, ReconciliationResult, SweepOutcome, TagSelector
from ..core.exceptions import FleetError, StateError
from .scheduler import FleetScheduler
from .reconciler import TagReconciler


logger = logging.getLogger(__name__)


class FleetOrchestrator:
    """Runs one scheduler invocation: group capacity update, then tag sweep.

    The two phases are independent convergence mechanisms merged into one
    result; there is no atomicity across them. A failure in the group phase
    is fatal to the invocation and skips the sweep. Sweep failures are
    per-resource and never fatal.
    """

    def __init__(
        self,
        adapter: BaseProviderAdapter,
        selector: TagSelector,
        result_store=None,
        max_workers: int = 5
    ):
        """Initialize the orchestrator.

        Args:
            adapter: Provider adapter for the fleet's backend
            selector: Tags identifying the fleet's compute resources
            result_store: Optional ResultStore receiving every result
            max_workers: Maximum concurrent power-state requests in the sweep
        """
        self.adapter = adapter
        self.selector = selector
        self.result_store = result_store
        self.scheduler = FleetScheduler(adapter)
        self.reconciler = TagReconciler(adapter, max_workers=max_workers)

    def handle(self, action: Action, group_id: str, target: int = 0,
               timestamp: Optional[datetime] = None) -> ReconciliationResult:
        """Handle one trigger firing.

        Args:
            action: START or STOP
            group_id: Capacity-managed group to drive
            target: Running size for START (ignored for STOP)
            timestamp: Trigger time; defaults to now

        Returns:
            Reconciliation result; always returned, even when the invocation failed
        """
        timestamp = timestamp or datetime.utcnow()
        logger.info(f"Handling {action.value} trigger for group {group_id}")

        try:
            change = self._apply_capacity(action, group_id, target)
        except FleetError as e:
            logger.error(f"Group phase failed for {group_id}, skipping tag sweep: {e.message}")
            return self._record(self._failed_result(timestamp, action, group_id, e))
        except Exception as e:
            logger.exception(f"Unexpected error in group phase for {group_id}, skipping tag sweep")
            return self._record(self._failed_result(timestamp, action, group_id, e))

        sweep = self.reconciler.reconcile(action, self.selector)
        result = self._build_result(timestamp, action, group_id, change, sweep, ())
        return self._record(result)

    def _apply_capacity(self, action: Action, group_id: str, target: int) -> CapacityChange:
        if action is Action.START:
            return self.scheduler.on_start(group_id, target)
        return self.scheduler.on_stop(group_id)

    def _failed_result(self, timestamp, action, group_id, error) -> ReconciliationResult:
        return self._build_result(
            timestamp, action, group_id, None, SweepOutcome(),
            (ErrorRecord.from_exception('group', error),)
        )

    def _build_result(self, timestamp, action, group_id, change, sweep, group_errors) -> ReconciliationResult:
        return ReconciliationResult(
            timestamp=timestamp,
            action=action,
            group_id=group_id,
            group_capacity_updated=change.updated if change else False,
            previous_desired=change.previous_desired if change else None,
            new_desired=change.new_desired if change else None,
            previous_min=change.previous_min if change else None,
            new_min=change.new_min if change else None,
            resources_acted_on=sweep.acted_on,
            errors=tuple(group_errors) + sweep.errors
        )

    def _record(self, result: ReconciliationResult) -> ReconciliationResult:
        level = logging.INFO if result.success else logging.ERROR
        logger.log(
            level,
            f"{result.action.value} of {result.group_id}: capacity updated={result.group_capacity_updated}, "
            f"{len(result.resources_acted_on)} resources acted on, {len(result.errors)} errors"
        )

        if self.result_store is not None:
            try:
                self.result_store.append(result)
            except StateError as e:
                logger.error(f"Failed to persist result for {result.group_id}: {e.message}")

        return result
