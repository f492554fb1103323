"""Tests for the reconciliation result audit trail."""

import re
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from gpu_fleet.core.exceptions import StateError
from gpu_fleet.providers.models import Action, ReconciliationResult
from gpu_fleet.state.result_store import ResultStore


def make_result(group_id='asr-staging-gpu', action=Action.START, timestamp=None):
    return ReconciliationResult(
        timestamp=timestamp or datetime(2024, 1, 5, 8, 0),
        action=action,
        group_id=group_id,
        group_capacity_updated=True,
        previous_desired=0,
        new_desired=2,
        resources_acted_on=('i-stopped',)
    )


@pytest.fixture
def store(temp_config_dir):
    return ResultStore(temp_config_dir / "results")


class TestResultStore:

    def test_append_writes_one_record(self, store):
        path = store.append(make_result())

        assert path.exists()
        assert re.fullmatch(r"20240105T080000000000-asr-staging-gpu-start-[0-9a-f]{8}\.json", path.name)
        assert store.load_latest() == make_result()

    def test_same_timestamp_keeps_every_record(self, store):
        first = store.append(make_result())
        second = store.append(make_result())

        assert first != second
        assert first.exists() and second.exists()
        assert store.list_results() == [make_result(), make_result()]

    def test_name_collision_retries_without_overwriting(self, store):
        taken = store.results_dir / "20240105T080000000000-asr-staging-gpu-start-aaaaaaaa.json"
        taken.write_text("{}")

        with patch('gpu_fleet.state.result_store.uuid4') as mock_uuid:
            mock_uuid.side_effect = [SimpleNamespace(hex='a' * 32), SimpleNamespace(hex='b' * 32)]
            path = store.append(make_result())

        assert path.name.endswith("-bbbbbbbb.json")
        assert taken.read_text() == "{}"

    def test_write_failure_is_state_error(self, store):
        with patch('gpu_fleet.state.result_store.open', side_effect=PermissionError("read-only"), create=True):
            with pytest.raises(StateError, match="Failed to save"):
                store.append(make_result())

    def test_list_newest_first_with_group_filter(self, store):
        base = datetime(2024, 1, 5, 8, 0)
        for i in range(3):
            store.append(make_result(timestamp=base + timedelta(hours=i)))
        store.append(make_result(group_id='tts-gpu', timestamp=base + timedelta(hours=5)))

        history = store.list_results('asr-staging-gpu')

        assert [r.timestamp.hour for r in history] == [10, 9, 8]
        assert store.load_latest().group_id == 'tts-gpu'
        assert len(store.list_results(limit=2)) == 2

    def test_unreadable_records_skipped(self, store):
        store.append(make_result())
        (store.results_dir / "garbage.json").write_text("{not json")

        assert len(store.list_results()) == 1

    def test_empty_store(self, store):
        assert store.list_results() == []
        assert store.load_latest() is None
