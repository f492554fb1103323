"""
Pytest configuration and shared fixtures for GPU Fleet tests.
"""

import os

import pytest
from moto import mock_aws
from pathlib import Path

from gpu_fleet.providers.catalog import get_catalog
from gpu_fleet.providers.models import FleetTarget, PowerState, TagSelector, TaggedResource

from fakes import InMemoryAdapter, fleet_tags


@pytest.fixture
def aws_credentials():
    """Fake credentials so boto3 never reaches a real account."""
    os.environ['AWS_ACCESS_KEY_ID'] = 'testing'
    os.environ['AWS_SECRET_ACCESS_KEY'] = 'testing'
    os.environ['AWS_SECURITY_TOKEN'] = 'testing'
    os.environ['AWS_SESSION_TOKEN'] = 'testing'
    os.environ['AWS_DEFAULT_REGION'] = 'us-east-1'


@pytest.fixture
def mock_aws_services(aws_credentials):
    """Mock all AWS services used by the application."""
    with mock_aws():
        yield


@pytest.fixture
def temp_config_dir(tmp_path) -> Path:
    """Temporary directory for config and result files during tests."""
    config_dir = tmp_path / "gpu-fleet"
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def sample_config():
    """Saved-config payload for the asr staging fleet."""
    return {
        "provider": "aws",
        "region": "us-east-1",
        "project": "asr",
        "environment": "staging",
        "group_id": "asr-staging-gpu",
        "target_capacity": 2,
        "schedule_start": "08:00",
        "schedule_stop": "20:00",
        "quota_family": "G",
        "desired_class": "g5.4xlarge",
        "created_at": "2024-01-05T14:30:22Z",
        "version": "1.0.0"
    }


@pytest.fixture
def aws_catalog():
    return get_catalog('aws')


@pytest.fixture
def selector():
    return TagSelector(project='asr', environment='staging')


@pytest.fixture
def fleet_adapter():
    """Adapter with one group and three tagged instances in mixed states."""
    return InMemoryAdapter(
        groups=[FleetTarget(group_id='asr-staging-gpu', desired_count=0, min_count=0, max_count=4)],
        resources=[
            TaggedResource('i-running', fleet_tags(), PowerState.RUNNING),
            TaggedResource('i-pending', fleet_tags(), PowerState.PENDING),
            TaggedResource('i-stopped', fleet_tags(), PowerState.STOPPED),
            TaggedResource('i-other-project', fleet_tags(project='tts'), PowerState.RUNNING),
        ]
    )

