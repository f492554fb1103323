"""Property-based tests for the fleet capacity scheduler."""

import pytest
from hypothesis import assume, given, settings, strategies as st

from gpu_fleet.core.exceptions import GroupNotFound, ValidationError
from gpu_fleet.providers.models import FleetTarget
from gpu_fleet.services.scheduler import FleetScheduler

from fakes import InMemoryAdapter


@st.composite
def fleet_target(draw):
    """Generate a consistent group contract (min <= desired <= max)."""
    max_count = draw(st.integers(min_value=1, max_value=20))
    min_count = draw(st.integers(min_value=0, max_value=max_count))
    desired = draw(st.integers(min_value=min_count, max_value=max_count))
    return FleetTarget(group_id='gpu-asg', desired_count=desired, min_count=min_count, max_count=max_count)


def scheduler_for(group: FleetTarget):
    adapter = InMemoryAdapter(groups=[group])
    return FleetScheduler(adapter), adapter


class TestSchedulerProperties:
    """Idempotence and convergence properties of start/stop transitions."""

    @settings(max_examples=100, deadline=None)
    @given(group=fleet_target(), target=st.integers(min_value=0, max_value=20))
    def test_second_start_is_noop(self, group, target):
        scheduler, adapter = scheduler_for(group)

        scheduler.on_start(group.group_id, target)
        calls = list(adapter.capacity_calls)
        second = scheduler.on_start(group.group_id, target)

        assert second.updated is False
        assert adapter.capacity_calls == calls

    @settings(max_examples=100, deadline=None)
    @given(group=fleet_target())
    def test_double_stop_leaves_nothing_running(self, group):
        scheduler, adapter = scheduler_for(group)

        scheduler.on_stop(group.group_id)
        second = scheduler.on_stop(group.group_id)

        final = adapter.groups[group.group_id]
        assert final.desired_count == 0
        assert final.min_count == 0
        assert second.updated is False

    @settings(max_examples=100, deadline=None)
    @given(group=fleet_target(), target=st.integers(min_value=0, max_value=20))
    def test_start_stop_start_round_trip(self, group, target):
        assume(target <= group.max_count)
        scheduler, adapter = scheduler_for(group)

        first = scheduler.on_start(group.group_id, target)
        scheduler.on_stop(group.group_id)
        last = scheduler.on_start(group.group_id, target)

        assert first.new_desired >= group.min_count
        if group.desired_count == 0:
            assert first.new_desired == max(target, group.min_count)
        else:
            assert first.new_desired == group.desired_count

        # Stop cleared the floor, so the second start lands exactly on the target
        final = adapter.groups[group.group_id]
        assert final.min_count == 0
        assert final.desired_count == target
        assert last.new_desired == target

    @settings(max_examples=100, deadline=None)
    @given(group=fleet_target(), target=st.integers(min_value=0, max_value=20))
    def test_start_never_lowers_floor_and_respects_it(self, group, target):
        scheduler, adapter = scheduler_for(group)

        change = scheduler.on_start(group.group_id, target)

        final = adapter.groups[group.group_id]
        assert final.min_count == group.min_count
        assert change.new_desired >= group.min_count
        assert change.new_desired <= group.max_count


class TestSchedulerTransitions:
    """Scenario tests for individual transitions."""

    def test_start_from_zero_sets_target(self):
        scheduler, adapter = scheduler_for(FleetTarget('gpu-asg', 0, 0, 4))

        change = scheduler.on_start('gpu-asg', 2)

        assert change.updated is True
        assert (change.previous_desired, change.new_desired) == (0, 2)
        assert adapter.capacity_calls == [('gpu-asg', 2, 0)]

    def test_start_uses_floor_when_larger_than_target(self):
        scheduler, adapter = scheduler_for(FleetTarget('gpu-asg', 0, 3, 5))

        change = scheduler.on_start('gpu-asg', 1)

        assert change.new_desired == 3
        assert change.new_min == 3

    def test_start_leaves_autoscaled_group_alone(self):
        scheduler, adapter = scheduler_for(FleetTarget('gpu-asg', 4, 1, 6))

        change = scheduler.on_start('gpu-asg', 2)

        assert change.updated is False
        assert adapter.capacity_calls == []

    def test_start_clamps_to_max_size(self):
        scheduler, adapter = scheduler_for(FleetTarget('gpu-asg', 0, 0, 2))

        change = scheduler.on_start('gpu-asg', 5)

        assert change.new_desired == 2

    def test_stop_lowers_floor_and_desired_together(self):
        scheduler, adapter = scheduler_for(FleetTarget('gpu-asg', 3, 2, 4))

        change = scheduler.on_stop('gpu-asg')

        assert change.updated is True
        assert (change.previous_min, change.new_min) == (2, 0)
        assert adapter.capacity_calls == [('gpu-asg', 0, 0)]

    def test_stop_clears_floor_even_when_already_at_zero(self):
        scheduler, adapter = scheduler_for(FleetTarget('gpu-asg', 0, 1, 4))

        change = scheduler.on_stop('gpu-asg')

        assert change.updated is True
        assert adapter.groups['gpu-asg'].min_count == 0

    def test_negative_target_rejected(self):
        scheduler, _ = scheduler_for(FleetTarget('gpu-asg', 0, 0, 4))

        with pytest.raises(ValidationError):
            scheduler.on_start('gpu-asg', -1)

    def test_unknown_group(self):
        scheduler, _ = scheduler_for(FleetTarget('gpu-asg', 0, 0, 4))

        with pytest.raises(GroupNotFound):
            scheduler.on_stop('missing-asg')
