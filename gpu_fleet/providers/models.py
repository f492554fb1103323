"""
Data models for quota resolution and fleet capacity management.
"""
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Dict, Optional, Any, Tuple


class PricingModel(str, Enum):
    """Instance purchasing option."""
    ON_DEMAND = 'on-demand'
    SPOT = 'spot'


# Cost-minimizing default: spot is always evaluated first
PRICING_PREFERENCE: Tuple[PricingModel, ...] = (PricingModel.SPOT, PricingModel.ON_DEMAND)


class PowerState(str, Enum):
    """Normalized power state of a compute resource."""
    RUNNING = 'running'
    PENDING = 'pending'
    STOPPING = 'stopping'
    STOPPED = 'stopped'


class Action(str, Enum):
    """Scheduler trigger kind."""
    START = 'start'
    STOP = 'stop'

    @property
    def eligible_states(self) -> Tuple[PowerState, ...]:
        """Power states a resource must be in to be acted on for this action."""
        if self is Action.START:
            return (PowerState.STOPPED,)
        return (PowerState.RUNNING, PowerState.PENDING)

    @property
    def target_state(self) -> PowerState:
        """Power state requested from the provider for this action."""
        return PowerState.RUNNING if self is Action.START else PowerState.STOPPED


@dataclass(frozen=True)
class InstanceClass:
    """Provider-defined catalog entry for a GPU instance class."""
    name: str                   # 'g5.4xlarge', 'n1-standard-8+T4', ...
    vcpus: int
    accelerator_count: int
    accelerator_type: str       # 'A10G', 'T4', 'A100', ...
    family: str                 # Quota accounting unit, e.g. 'G' on AWS
    memory_gib: Optional[float] = None
    hourly_price: Optional[float] = None  # On-demand USD, informational only


@dataclass(frozen=True)
class QuotaSnapshot:
    """Point-in-time vCPU limit for one (family, pricing model) pair."""
    family: str
    pricing_model: PricingModel
    limit_vcpus: float
    as_of: datetime
    available: bool = True      # False when standing in for an unreachable quota service

    @classmethod
    def unavailable(cls, family: str, pricing_model: PricingModel) -> 'QuotaSnapshot':
        """Zero-quota stand-in used when the quota service cannot be reached."""
        return cls(
            family=family,
            pricing_model=pricing_model,
            limit_vcpus=0,
            as_of=datetime.utcnow(),
            available=False
        )


@dataclass(frozen=True)
class Alternative:
    """A substitute instance class and every pricing model whose quota admits it."""
    instance_class: InstanceClass
    pricing_models: Tuple[PricingModel, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'instance_class': self.instance_class.name,
            'vcpus': self.instance_class.vcpus,
            'accelerator_type': self.instance_class.accelerator_type,
            'pricing_models': [model.value for model in self.pricing_models]
        }


@dataclass(frozen=True)
class ResolutionDecision:
    """Outcome of a single quota-aware resolution call."""
    desired_class: InstanceClass
    chosen_class: Optional[InstanceClass]
    chosen_pricing_model: Optional[PricingModel]
    alternatives: Tuple[Alternative, ...] = ()

    @property
    def insufficient_quota(self) -> bool:
        """True when neither the desired class nor any substitute fits any quota."""
        return self.chosen_class is None and not self.alternatives

    def to_dict(self) -> Dict[str, Any]:
        return {
            'desired_class': self.desired_class.name,
            'chosen_class': self.chosen_class.name if self.chosen_class else None,
            'chosen_pricing_model': self.chosen_pricing_model.value if self.chosen_pricing_model else None,
            'insufficient_quota': self.insufficient_quota,
            'alternatives': [alternative.to_dict() for alternative in self.alternatives]
        }


@dataclass(frozen=True)
class FleetTarget:
    """Capacity contract of a capacity-managed group."""
    group_id: str
    desired_count: int
    min_count: int
    max_count: int


@dataclass(frozen=True)
class ScheduleWindow:
    """Daily running window; trigger times are HH:MM in UTC."""
    start_trigger: str
    stop_trigger: str

    @staticmethod
    def _parse(value: str) -> time:
        hours, minutes = value.split(':')
        return time(int(hours), int(minutes))

    def action_at(self, moment: datetime) -> Action:
        """Return the action whose window contains ``moment``.

        Windows that wrap past midnight (start later than stop) are supported.
        """
        start = self._parse(self.start_trigger)
        stop = self._parse(self.stop_trigger)
        now = moment.time().replace(second=0, microsecond=0, tzinfo=None)

        if start <= stop:
            running = start <= now < stop
        else:
            running = now >= start or now < stop

        return Action.START if running else Action.STOP


@dataclass(frozen=True)
class TagSelector:
    """Tag values a resource must carry to be reconciled."""
    project: str
    environment: str
    role: str = 'compute'
    lifecycle_state: Optional[str] = None

    def as_tags(self) -> Dict[str, str]:
        tags = {
            'project': self.project,
            'environment': self.environment,
            'role': self.role
        }
        if self.lifecycle_state is not None:
            tags['lifecycle_state'] = self.lifecycle_state
        return tags

    def matches(self, tags: Dict[str, str]) -> bool:
        return all(tags.get(key) == value for key, value in self.as_tags().items())


@dataclass(frozen=True)
class TaggedResource:
    """A compute instance discovered by tags; never created or destroyed here."""
    resource_id: str
    tags: Dict[str, str] = field(hash=False)
    power_state: PowerState


@dataclass(frozen=True)
class ErrorRecord:
    """One failure recorded in a reconciliation result."""
    source: str                 # 'group' or 'resource'
    error_type: str             # Exception class name
    message: str
    resource_id: Optional[str] = None

    @classmethod
    def from_exception(cls, source: str, error: Exception, resource_id: Optional[str] = None) -> 'ErrorRecord':
        return cls(
            source=source,
            error_type=type(error).__name__,
            message=getattr(error, 'message', None) or str(error),
            resource_id=resource_id
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source': self.source,
            'error_type': self.error_type,
            'message': self.message,
            'resource_id': self.resource_id
        }


@dataclass(frozen=True)
class CapacityChange:
    """Outcome of one scheduler transition against a capacity-managed group."""
    group_id: str
    updated: bool
    previous_desired: int
    new_desired: int
    previous_min: int
    new_min: int


@dataclass(frozen=True)
class ReconciliationResult:
    """Append-only audit record emitted once per scheduler invocation."""
    timestamp: datetime
    action: Action
    group_id: str
    group_capacity_updated: bool
    previous_desired: Optional[int]
    new_desired: Optional[int]
    previous_min: Optional[int] = None
    new_min: Optional[int] = None
    resources_acted_on: Tuple[str, ...] = ()
    errors: Tuple[ErrorRecord, ...] = ()

    @property
    def success(self) -> bool:
        """False only when the invocation hit a fatal group-phase error."""
        return not any(error.source == 'group' for error in self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'action': self.action.value,
            'group_id': self.group_id,
            'success': self.success,
            'group_capacity_updated': self.group_capacity_updated,
            'previous_desired': self.previous_desired,
            'new_desired': self.new_desired,
            'previous_min': self.previous_min,
            'new_min': self.new_min,
            'resources_acted_on': list(self.resources_acted_on),
            'errors': [error.to_dict() for error in self.errors]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReconciliationResult':
        return cls(
            timestamp=datetime.fromisoformat(data['timestamp']),
            action=Action(data['action']),
            group_id=data['group_id'],
            group_capacity_updated=data['group_capacity_updated'],
            previous_desired=data.get('previous_desired'),
            new_desired=data.get('new_desired'),
            previous_min=data.get('previous_min'),
            new_min=data.get('new_min'),
            resources_acted_on=tuple(data.get('resources_acted_on', [])),
            errors=tuple(
                ErrorRecord(
                    source=error['source'],
                    error_type=error['error_type'],
                    message=error['message'],
                    resource_id=error.get('resource_id')
                )
                for error in data.get('errors', [])
            )
        )


@dataclass(frozen=True)
class SweepOutcome:
    """Resources transitioned and failures collected by one tag sweep."""
    acted_on: Tuple[str, ...] = ()
    errors: Tuple[ErrorRecord, ...] = ()
