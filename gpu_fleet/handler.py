"""
Entry point for time-based dispatchers (e.g. a scheduler-invoked Lambda function).

The dispatcher delivers ``{"action": "start"|"stop", "group_id": ..., "timestamp": ...}``
and receives the ReconciliationResult as the response payload.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from gpu_fleet.core.config import Config, ConfigManager
from gpu_fleet.core.exceptions import ConfigurationError, FleetError, ValidationError
from gpu_fleet.providers import create_adapter
from gpu_fleet.providers.models import Action
from gpu_fleet.services.orchestrator import FleetOrchestrator
from gpu_fleet.state.result_store import ResultStore


logger = logging.getLogger(__name__)


class Trigger(BaseModel):
    """Trigger delivered by the dispatcher or a manual invocation."""

    action: Action = Field(..., description="start or stop")
    group_id: Optional[str] = Field(default=None, description="Group to drive; defaults to the configured group")
    timestamp: Optional[datetime] = Field(default=None, description="When the trigger fired")
    target: Optional[int] = Field(default=None, ge=0, description="Running size; defaults to the configured target")


def parse_trigger(event: Dict[str, Any]) -> Trigger:
    """Validate a raw trigger event.

    Raises:
        ValidationError: If the event is malformed
    """
    try:
        return Trigger(**event)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid trigger event: {e}", details=str(e))


def build_orchestrator(config: Config, result_store: Optional[ResultStore] = None) -> FleetOrchestrator:
    """Wire the configured backend adapter into an orchestrator."""
    return FleetOrchestrator(
        create_adapter(config),
        config.tag_selector(),
        result_store=result_store,
        max_workers=config.sweep_workers
    )


def handle_event(event: Dict[str, Any], config: Config,
                 orchestrator: Optional[FleetOrchestrator] = None) -> Dict[str, Any]:
    """Run one scheduler invocation for a trigger event.

    Args:
        event: Raw trigger event
        config: Fleet configuration
        orchestrator: Optional pre-built orchestrator

    Returns:
        JSON-shaped ReconciliationResult

    Raises:
        ValidationError: If the event is malformed
    """
    trigger = parse_trigger(event)
    orchestrator = orchestrator or build_orchestrator(config)

    target = trigger.target if trigger.target is not None else config.target_capacity
    timestamp = trigger.timestamp
    if timestamp is not None and timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)

    result = orchestrator.handle(
        trigger.action,
        trigger.group_id or config.group_id,
        target=target,
        timestamp=timestamp
    )
    return result.to_dict()


def lambda_handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Function-as-a-service entry point."""
    logging.basicConfig(level=os.environ.get('GPU_FLEET_LOG_LEVEL', 'INFO'))
    config_manager = ConfigManager()
    try:
        config = config_manager.load_config()
    except ValueError as e:
        raise ConfigurationError(str(e))
    if config is None:
        raise ConfigurationError(f"No configuration found at {config_manager.get_config_path()}")

    try:
        store = ResultStore(config_manager.config_dir / "results")
        return handle_event(event, config, build_orchestrator(config, result_store=store))
    except FleetError as e:
        logger.error(f"Trigger rejected: {e.message}")
        raise
