"""
Fleet capacity scheduler driving capacity-managed groups on start/stop triggers.
"""
import logging

from ..providers.base import BaseProviderAdapter
from ..providers.models import CapacityChange, FleetTarget
from ..core.exceptions import ValidationError


logger = logging.getLogger(__name__)


class FleetScheduler:
    """Applies start/stop transitions to a capacity-managed group.

    Capacity changes are fire-and-forget requests; the group owns the
    instance lifecycle. Each transition reads the group first and only
    writes when the group has not already converged, which makes repeated
    or racing triggers harmless.
    """

    def __init__(self, adapter: BaseProviderAdapter):
        self.adapter = adapter

    def on_start(self, group_id: str, target: int) -> CapacityChange:
        """Bring a group up to its running size.

        The floor (``min_count``) is never changed on this path.

        Args:
            group_id: Capacity-managed group
            target: Desired running instance count

        Returns:
            Capacity change; ``updated`` is False when the group already satisfied the target

        Raises:
            ValidationError: If target is negative
            GroupNotFound: If the group does not exist
            ProviderError: If the provider rejects the read or update
        """
        if target < 0:
            raise ValidationError(f"Target capacity must be non-negative, got {target}")

        current = self.adapter.get_group_capacity(group_id)
        desired = current.desired_count

        if desired < min(target, current.min_count) or desired == 0:
            new_desired = self._clamp(max(target, current.min_count), current)
            if new_desired != desired:
                self.adapter.set_group_capacity(group_id, new_desired, current.min_count)
                logger.info(f"Started group {group_id}: desired {desired} -> {new_desired}")
                return self._change(current, True, new_desired, current.min_count)

        logger.info(f"Group {group_id} already running with desired={desired}; nothing to do")
        return self._change(current, False, desired, current.min_count)

    def on_stop(self, group_id: str) -> CapacityChange:
        """Scale a group to zero, lowering its floor first so the floor cannot block the stop.

        Raises:
            GroupNotFound: If the group does not exist
            ProviderError: If the provider rejects the read or update
        """
        current = self.adapter.get_group_capacity(group_id)

        if current.min_count > 0 or current.desired_count > 0:
            self.adapter.set_group_capacity(group_id, 0, 0)
            logger.info(
                f"Stopped group {group_id}: desired {current.desired_count} -> 0, "
                f"min {current.min_count} -> 0"
            )
            return self._change(current, True, 0, 0)

        logger.info(f"Group {group_id} already stopped; nothing to do")
        return self._change(current, False, 0, 0)

    def _clamp(self, desired: int, current: FleetTarget) -> int:
        if desired > current.max_count:
            logger.warning(
                f"Target {desired} exceeds max size {current.max_count} of group {current.group_id}; "
                f"clamping"
            )
            return current.max_count
        return desired

    def _change(self, current: FleetTarget, updated: bool, new_desired: int, new_min: int) -> CapacityChange:
        return CapacityChange(
            group_id=current.group_id,
            updated=updated,
            previous_desired=current.desired_count,
            new_desired=new_desired,
            previous_min=current.min_count,
            new_min=new_min
        )
