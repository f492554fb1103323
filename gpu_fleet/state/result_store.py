"""
Persistence of reconciliation results as an append-only audit trail.
"""
import json
import logging
from pathlib import Path
from typing import Optional, List
from uuid import uuid4

from ..providers.models import ReconciliationResult
from ..core.exceptions import StateError

logger = logging.getLogger(__name__)


class ResultStore:
    """Writes one JSON file per reconciliation result; existing records are never rewritten."""

    def __init__(self, results_dir: Optional[Path] = None):
        """Initialize the result store.

        Args:
            results_dir: Directory to store results. Defaults to ~/.gpu-fleet/results/
        """
        if results_dir is None:
            results_dir = Path.home() / ".gpu-fleet" / "results"

        self.results_dir = results_dir
        self.results_dir.mkdir(parents=True, exist_ok=True)

    def append(self, result: ReconciliationResult) -> Path:
        """Persist a result as a new record.

        Every call writes its own file, so redelivered triggers sharing a
        timestamp each leave a record.

        Returns:
            Path to the written record

        Raises:
            StateError: If writing fails
        """
        record_id = self._record_id(result)

        for _ in range(3):
            filepath = self.results_dir / f"{record_id}-{uuid4().hex[:8]}.json"
            try:
                with open(filepath, 'x') as f:
                    json.dump(result.to_dict(), f, indent=2)
            except FileExistsError:
                continue
            except (OSError, TypeError, ValueError) as e:
                raise StateError(f"Failed to save reconciliation result: {e}")

            logger.info(f"Saved reconciliation result to {filepath}")
            return filepath

        raise StateError(f"Could not allocate a new record name for {record_id}")

    def list_results(self, group_id: Optional[str] = None, limit: Optional[int] = None) -> List[ReconciliationResult]:
        """List stored results, newest first.

        Args:
            group_id: Optional group filter
            limit: Optional maximum number of results
        """
        results = []

        for filepath in self.results_dir.glob("*.json"):
            try:
                with open(filepath, 'r') as f:
                    result = ReconciliationResult.from_dict(json.load(f))
            except Exception as e:
                logger.warning(f"Failed to read result {filepath}: {e}")
                continue

            if group_id and result.group_id != group_id:
                continue
            results.append(result)

        results.sort(key=lambda r: r.timestamp, reverse=True)
        return results[:limit] if limit else results

    def load_latest(self, group_id: Optional[str] = None) -> Optional[ReconciliationResult]:
        """Return the most recent result, optionally for one group."""
        results = self.list_results(group_id=group_id, limit=1)
        return results[0] if results else None

    def _record_id(self, result: ReconciliationResult) -> str:
        stamp = result.timestamp.strftime('%Y%m%dT%H%M%S%f')
        group = ''.join(c if c.isalnum() or c in '-_' else '_' for c in result.group_id)
        return f"{stamp}-{group}-{result.action.value}"
