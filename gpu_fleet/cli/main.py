"""
Main CLI entry point for GPU Fleet.

Provides the ``gpu-fleet`` operator commands for quota checks, instance
resolution and manual start/stop triggers.
"""

import functools
import json
import logging
import sys
from datetime import datetime
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from gpu_fleet.core.config import Config, ConfigManager
from gpu_fleet.core.exceptions import (
    ConfigurationError, FleetError, InvalidInstanceClass, ProviderError, ValidationError
)
from gpu_fleet.handler import build_orchestrator
from gpu_fleet.providers import create_adapter, get_catalog
from gpu_fleet.providers.models import Action, PricingModel, ReconciliationResult, ResolutionDecision
from gpu_fleet.services.quota import QuotaFetcher
from gpu_fleet.services.resolver import InstanceResolver, ResolutionService
from gpu_fleet.state.result_store import ResultStore


console = Console()

# Process exit status per failure class
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INPUT_ERROR = 3
EXIT_PROVIDER_ERROR = 4
EXIT_INSUFFICIENT_QUOTA = 5
EXIT_USER_CANCELLED = 130


def handle_errors(func):
    """Map exceptions to exit codes."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            console.print("\n⚠️  [yellow]Interrupted, no further changes requested[/yellow]")
            sys.exit(EXIT_USER_CANCELLED)
        except ConfigurationError as e:
            console.print(f"❌ [red]Configuration error: {e}[/red]")
            sys.exit(EXIT_CONFIG_ERROR)
        except (InvalidInstanceClass, ValidationError) as e:
            console.print(f"❌ [red]Invalid input: {e}[/red]")
            sys.exit(EXIT_INPUT_ERROR)
        except ProviderError as e:
            console.print(f"❌ [red]Provider error: {e}[/red]")
            sys.exit(EXIT_PROVIDER_ERROR)
        except FleetError as e:
            console.print(f"❌ [red]{e}[/red]")
            sys.exit(EXIT_GENERAL_ERROR)
    return wrapper


def load_config(config_manager: ConfigManager) -> Config:
    """Load configuration or explain how to create it."""
    try:
        config = config_manager.load_config()
    except ValueError as e:
        raise ConfigurationError(str(e))

    if config is None:
        raise ConfigurationError(
            f"No configuration found at {config_manager.get_config_path()}. Run 'gpu-fleet configure' first."
        )
    return config


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show provider and sweep logging")
@click.version_option(version="1.0.0")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """
    GPU Fleet - quota-aware GPU provisioning and scheduled capacity control.
    """
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)]
    )
    ctx.ensure_object(dict)
    ctx.obj.setdefault('config_manager', ConfigManager())


@cli.command()
@click.option("--provider", type=click.Choice(["aws", "gcp"]), default="aws", show_default=True)
@click.option("--project", required=True, help="Project tag value on fleet resources")
@click.option("--environment", default="staging", show_default=True, help="Environment tag value")
@click.option("--group", "group_id", required=True, help="Capacity-managed group to schedule")
@click.option("--target", "target_capacity", type=int, default=1, show_default=True, help="Running instance count")
@click.option("--region", default="us-east-1", show_default=True, help="AWS region")
@click.option("--gcp-project", help="GCP project ID")
@click.option("--gcp-zone", help="GCP zone")
@click.option("--start", "schedule_start", default="08:00", show_default=True, help="Daily start, HH:MM UTC")
@click.option("--stop", "schedule_stop", default="20:00", show_default=True, help="Daily stop, HH:MM UTC")
@click.option("--family", "quota_family", default="G", show_default=True, help="Quota family")
@click.option("--instance-class", "desired_class", default="g5.4xlarge", show_default=True)
@click.pass_context
@handle_errors
def configure(ctx: click.Context, **options) -> None:
    """Write the fleet configuration."""
    try:
        config = Config(**options)
    except ValueError as e:
        raise ConfigurationError(str(e))

    config_manager = ctx.obj['config_manager']
    config_manager.save_config(config)
    console.print(f"✅ [green]Configuration saved to {config_manager.get_config_path()}[/green]")


@cli.command()
@click.option("--family", help="Quota family (defaults to the configured family)")
@click.pass_context
@handle_errors
def quota(ctx: click.Context, family: Optional[str]) -> None:
    """Show spot and on-demand vCPU quotas."""
    config = load_config(ctx.obj['config_manager'])
    family = family or config.quota_family

    snapshots = QuotaFetcher(create_adapter(config)).fetch(family)

    catalog = get_catalog(config.provider)
    needed = next((c.vcpus for c in catalog if c.name == config.desired_class), None)

    table = Table(title=f"Quota Status ({config.provider}, family {family})")
    table.add_column("Pricing model")
    table.add_column("vCPU limit", justify="right")
    table.add_column("Status")

    for pricing_model, snapshot in snapshots.items():
        if not snapshot.available:
            status = "[red]quota service unavailable[/red]"
        elif needed is not None and snapshot.limit_vcpus >= needed:
            status = f"[green]sufficient for {config.desired_class} ✓[/green]"
        elif snapshot.limit_vcpus > 0:
            status = f"[yellow]insufficient, need {needed}[/yellow]" if needed else "[yellow]available[/yellow]"
        else:
            status = "[red]not available[/red]"
        table.add_row(pricing_model.value, f"{snapshot.limit_vcpus:g}", status)

    console.print(table)


@cli.command()
@click.option("--instance-class", "class_name", help="Desired instance class (defaults to configured class)")
@click.option("--family", help="Quota family the class must belong to")
@click.option("--json", "as_json", is_flag=True, help="Print the decision as JSON")
@click.pass_context
@handle_errors
def resolve(ctx: click.Context, class_name: Optional[str], family: Optional[str], as_json: bool) -> None:
    """Pick a feasible instance class and pricing model for the account's quotas."""
    config = load_config(ctx.obj['config_manager'])
    catalog = get_catalog(config.provider)
    service = ResolutionService(create_adapter(config), catalog)

    decision = service.resolve(class_name or config.desired_class, family)

    if as_json:
        click.echo(json.dumps(decision.to_dict(), indent=2))
    else:
        _print_decision(decision, service.resolver)

    if decision.insufficient_quota:
        sys.exit(EXIT_INSUFFICIENT_QUOTA)


@cli.command("request-quota")
@click.option("--pricing-model", type=click.Choice([m.value for m in PricingModel]), default="spot",
              show_default=True)
@click.option("--vcpus", type=int, help="Desired vCPU limit (defaults to room for 4 instances)")
@click.confirmation_option(prompt="Submit a quota increase request?")
@click.pass_context
@handle_errors
def request_quota(ctx: click.Context, pricing_model: str, vcpus: Optional[int]) -> None:
    """Request a vCPU quota increase for the configured family."""
    config = load_config(ctx.obj['config_manager'])
    resolver = InstanceResolver()
    desired_class = resolver.lookup(config.desired_class, get_catalog(config.provider))
    vcpus = vcpus or resolver.recommend_quota_increase(desired_class)

    request_id = create_adapter(config).request_quota_increase(
        desired_class.family, PricingModel(pricing_model), vcpus
    )

    if request_id is None:
        console.print(f"⚠️  [yellow]{config.provider} has no quota request API; request {vcpus} vCPUs in the console[/yellow]")
    else:
        console.print(f"✅ [green]Quota increase requested: {request_id}[/green]")
        console.print("[dim]Quota increases typically take 24-48 hours[/dim]")


@cli.command()
@click.option("--group", "group_id", help="Group to start (defaults to configured group)")
@click.option("--target", type=int, help="Running instance count (defaults to configured target)")
@click.pass_context
@handle_errors
def start(ctx: click.Context, group_id: Optional[str], target: Optional[int]) -> None:
    """Manually fire a start trigger."""
    config = load_config(ctx.obj['config_manager'])
    _run_trigger(ctx, config, Action.START, group_id, target)


@cli.command()
@click.option("--group", "group_id", help="Group to stop (defaults to configured group)")
@click.pass_context
@handle_errors
def stop(ctx: click.Context, group_id: Optional[str]) -> None:
    """Manually fire a stop trigger."""
    config = load_config(ctx.obj['config_manager'])
    _run_trigger(ctx, config, Action.STOP, group_id, None)


@cli.command()
@click.pass_context
@handle_errors
def sync(ctx: click.Context) -> None:
    """Fire whichever trigger the schedule window calls for right now."""
    config = load_config(ctx.obj['config_manager'])
    action = config.schedule_window().action_at(datetime.utcnow())
    console.print(f"Schedule {config.schedule_start}-{config.schedule_stop} UTC calls for [bold]{action.value}[/bold]")
    _run_trigger(ctx, config, action, None, None)


@cli.command()
@click.option("--group", "group_id", help="Only show results for this group")
@click.option("--limit", type=int, default=10, show_default=True)
@click.pass_context
@handle_errors
def history(ctx: click.Context, group_id: Optional[str], limit: int) -> None:
    """Show recent reconciliation results."""
    config_manager = ctx.obj['config_manager']
    store = ResultStore(config_manager.config_dir / "results")
    results = store.list_results(group_id=group_id, limit=limit)

    if not results:
        console.print("[dim]No reconciliation results recorded yet[/dim]")
        return

    table = Table(title="Reconciliation history")
    table.add_column("Time (UTC)")
    table.add_column("Action")
    table.add_column("Group")
    table.add_column("Desired", justify="right")
    table.add_column("Resources", justify="right")
    table.add_column("Errors", justify="right")

    for result in results:
        desired = "-" if result.new_desired is None else f"{result.previous_desired} → {result.new_desired}"
        table.add_row(
            result.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            result.action.value,
            result.group_id,
            desired,
            str(len(result.resources_acted_on)),
            f"[red]{len(result.errors)}[/red]" if result.errors else "0"
        )

    console.print(table)


def _run_trigger(ctx: click.Context, config: Config, action: Action,
                 group_id: Optional[str], target: Optional[int]) -> None:
    store = ResultStore(ctx.obj['config_manager'].config_dir / "results")
    orchestrator = build_orchestrator(config, result_store=store)

    result = orchestrator.handle(
        action,
        group_id or config.group_id,
        target=config.target_capacity if target is None else target
    )
    _print_result(result)

    if not result.success:
        sys.exit(EXIT_PROVIDER_ERROR)


def _print_decision(decision: ResolutionDecision, resolver: InstanceResolver) -> None:
    desired = decision.desired_class

    if decision.chosen_class is not None:
        console.print(
            f"✅ [green]{decision.chosen_class.name} fits the {decision.chosen_pricing_model.value} quota[/green]"
        )
        return

    console.print(f"❌ [red]Insufficient quota for {desired.name} (needs {desired.vcpus} vCPUs)[/red]")

    if decision.alternatives:
        table = Table(title="Available alternatives")
        table.add_column("Instance class")
        table.add_column("vCPUs", justify="right")
        table.add_column("GPU")
        table.add_column("Memory (GiB)", justify="right")
        table.add_column("On-demand $/h", justify="right")
        table.add_column("Pricing models")
        for alternative in decision.alternatives:
            instance_class = alternative.instance_class
            table.add_row(
                instance_class.name,
                str(instance_class.vcpus),
                f"{instance_class.accelerator_count}x {instance_class.accelerator_type}",
                _optional(instance_class.memory_gib, "{:g}"),
                _optional(instance_class.hourly_price, "{:.3f}"),
                ", ".join(model.value for model in alternative.pricing_models)
            )
        console.print(table)
    else:
        recommended = resolver.recommend_quota_increase(desired)
        console.print(
            f"Request a quota increase of [bold]{recommended} vCPUs[/bold] for family {desired.family} "
            f"with 'gpu-fleet request-quota'"
        )


def _optional(value, fmt: str) -> str:
    return fmt.format(value) if value is not None else "-"


def _print_result(result: ReconciliationResult) -> None:
    if result.group_capacity_updated:
        console.print(
            f"✅ [green]Group {result.group_id}: desired {result.previous_desired} → {result.new_desired}[/green]"
        )
    elif result.success:
        console.print(f"[dim]Group {result.group_id} already converged[/dim]")

    if result.resources_acted_on:
        console.print(f"Tag sweep acted on: {', '.join(result.resources_acted_on)}")

    for error in result.errors:
        target = f" {error.resource_id}" if error.resource_id else ""
        console.print(f"❌ [red]{error.source}{target}: {error.error_type}: {error.message}[/red]")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
