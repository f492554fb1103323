"""End-to-end tests for the CLI entry point with in-memory providers."""

import json
from datetime import datetime
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from gpu_fleet.cli.main import (
    cli, EXIT_SUCCESS, EXIT_CONFIG_ERROR, EXIT_INPUT_ERROR, EXIT_PROVIDER_ERROR, EXIT_INSUFFICIENT_QUOTA
)
from gpu_fleet.core.config import Config, ConfigManager
from gpu_fleet.providers.models import Action, PricingModel, ReconciliationResult
from gpu_fleet.state.result_store import ResultStore

from fakes import InMemoryAdapter


@pytest.fixture
def runner():
    # Wide console so Rich does not wrap table cells and long paths
    with patch('gpu_fleet.cli.main.console', Console(width=200)):
        yield CliRunner()


@pytest.fixture
def config_manager(temp_config_dir):
    return ConfigManager(config_dir=temp_config_dir)


@pytest.fixture
def configured(config_manager, sample_config):
    config_manager.save_config(Config(**sample_config))
    return config_manager


def invoke(runner, config_manager, args):
    return runner.invoke(cli, args, obj={'config_manager': config_manager})


class TestConfigure:

    def test_writes_configuration(self, runner, config_manager):
        result = invoke(runner, config_manager, [
            'configure', '--project', 'asr', '--group', 'asr-staging-gpu', '--target', '3',
            '--start', '07:30', '--stop', '19:00'
        ])

        assert result.exit_code == EXIT_SUCCESS
        config = config_manager.load_config()
        assert config.group_id == 'asr-staging-gpu'
        assert config.target_capacity == 3
        assert config.schedule_start == '07:30'

    def test_invalid_options_are_config_errors(self, runner, config_manager):
        result = invoke(runner, config_manager, [
            'configure', '--project', 'asr', '--group', 'asr-staging-gpu', '--start', '25:00'
        ])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert not config_manager.config_exists()


class TestMissingConfiguration:

    @pytest.mark.parametrize("command", ['quota', 'resolve', 'start', 'stop', 'sync'])
    def test_commands_require_configuration(self, runner, config_manager, command):
        result = invoke(runner, config_manager, [command])

        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "gpu-fleet configure" in result.output


class TestQuotaAndResolve:

    def test_quota_table(self, runner, configured):
        adapter = InMemoryAdapter(quotas={('G', PricingModel.SPOT): 64})

        with patch('gpu_fleet.cli.main.create_adapter', return_value=adapter):
            result = invoke(runner, configured, ['quota'])

        assert result.exit_code == EXIT_SUCCESS
        assert "spot" in result.output
        assert "64" in result.output

    def test_resolve_json(self, runner, configured):
        adapter = InMemoryAdapter(quotas={('G', PricingModel.ON_DEMAND): 0, ('G', PricingModel.SPOT): 64})

        with patch('gpu_fleet.cli.main.create_adapter', return_value=adapter):
            result = invoke(runner, configured, ['resolve', '--json'])

        assert result.exit_code == EXIT_SUCCESS
        payload = json.loads(result.output)
        assert payload['chosen_class'] == 'g5.4xlarge'
        assert payload['chosen_pricing_model'] == 'spot'

    def test_resolve_lists_alternatives(self, runner, configured):
        adapter = InMemoryAdapter(quotas={('G', PricingModel.SPOT): 4})

        with patch('gpu_fleet.cli.main.create_adapter', return_value=adapter):
            result = invoke(runner, configured, ['resolve'])

        assert result.exit_code == EXIT_SUCCESS
        assert "Insufficient quota for g5.4xlarge" in result.output
        assert "g4dn.xlarge" in result.output
        assert "0.526" in result.output
        assert "On-demand $/h" in result.output

    def test_resolve_insufficient_quota_exit_code(self, runner, configured):
        with patch('gpu_fleet.cli.main.create_adapter', return_value=InMemoryAdapter()):
            result = invoke(runner, configured, ['resolve'])

        assert result.exit_code == EXIT_INSUFFICIENT_QUOTA
        assert "64 vCPUs" in result.output

    def test_resolve_unknown_class(self, runner, configured):
        with patch('gpu_fleet.cli.main.create_adapter', return_value=InMemoryAdapter()):
            result = invoke(runner, configured, ['resolve', '--instance-class', 'g9.mega'])

        assert result.exit_code == EXIT_INPUT_ERROR

    def test_request_quota(self, runner, configured):
        adapter = InMemoryAdapter()

        with patch('gpu_fleet.cli.main.create_adapter', return_value=adapter):
            result = invoke(runner, configured, ['request-quota', '--yes'])

        assert result.exit_code == EXIT_SUCCESS
        assert adapter.quota_requests == [('G', PricingModel.SPOT, 64)]
        assert "req-1" in result.output


class TestTriggers:

    def test_start_records_result(self, runner, configured, fleet_adapter):
        with patch('gpu_fleet.handler.create_adapter', return_value=fleet_adapter):
            result = invoke(runner, configured, ['start'])

        assert result.exit_code == EXIT_SUCCESS
        assert fleet_adapter.capacity_calls == [('asr-staging-gpu', 2, 0)]
        latest = ResultStore(configured.config_dir / "results").load_latest()
        assert latest.action is Action.START
        assert latest.resources_acted_on == ('i-stopped',)

    def test_stop_missing_group_exits_with_provider_error(self, runner, configured, fleet_adapter):
        with patch('gpu_fleet.handler.create_adapter', return_value=fleet_adapter):
            result = invoke(runner, configured, ['stop', '--group', 'gone'])

        assert result.exit_code == EXIT_PROVIDER_ERROR
        assert "GroupNotFound" in result.output

    def test_sync_follows_schedule_window(self, runner, configured, fleet_adapter):
        with patch('gpu_fleet.handler.create_adapter', return_value=fleet_adapter), \
             patch('gpu_fleet.cli.main.datetime') as mock_datetime:
            mock_datetime.utcnow.return_value = datetime(2024, 1, 5, 21, 0)
            result = invoke(runner, configured, ['sync'])

        assert result.exit_code == EXIT_SUCCESS
        assert "calls for stop" in result.output
        assert sorted(resource_id for resource_id, _ in fleet_adapter.power_calls) == ['i-pending', 'i-running']


class TestHistory:

    def test_empty_history(self, runner, config_manager):
        result = invoke(runner, config_manager, ['history'])

        assert result.exit_code == EXIT_SUCCESS
        assert "No reconciliation results" in result.output

    def test_lists_recorded_results(self, runner, config_manager):
        ResultStore(config_manager.config_dir / "results").append(ReconciliationResult(
            timestamp=datetime(2024, 1, 5, 20, 0), action=Action.STOP, group_id='asr-staging-gpu',
            group_capacity_updated=True, previous_desired=2, new_desired=0
        ))

        result = invoke(runner, config_manager, ['history'])

        assert result.exit_code == EXIT_SUCCESS
        assert "asr-staging-gpu" in result.output
        assert "2024-01-05 20:00:00" in result.output
