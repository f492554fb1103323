"""
Quota snapshot fetching for a compute family.
"""
from typing import Dict
import logging

from ..providers.base import BaseProviderAdapter
from ..providers.models import PRICING_PREFERENCE, PricingModel, QuotaSnapshot
from ..core.exceptions import QuotaUnavailable


logger = logging.getLogger(__name__)


class QuotaFetcher:
    """Reads fresh quota snapshots from a provider; never caches across calls."""

    def __init__(self, adapter: BaseProviderAdapter):
        self.adapter = adapter

    def fetch_one(self, family: str, pricing_model: PricingModel) -> QuotaSnapshot:
        """Read one snapshot.

        Raises:
            QuotaUnavailable: If the provider's quota service is unreachable
        """
        return self.adapter.get_quota(family, pricing_model)

    def fetch(self, family: str) -> Dict[PricingModel, QuotaSnapshot]:
        """Read the on-demand and spot snapshots for a family.

        A pricing model whose quota cannot be read is reported as a zero-limit
        snapshot with ``available=False`` so that an outage on one pricing
        model does not block a deployment the other could serve.
        """
        snapshots = {}

        for pricing_model in PRICING_PREFERENCE:
            try:
                snapshots[pricing_model] = self.fetch_one(family, pricing_model)
            except QuotaUnavailable as e:
                logger.warning(
                    f"Quota for {family}/{pricing_model.value} unavailable, assuming zero: {e.message}"
                )
                snapshots[pricing_model] = QuotaSnapshot.unavailable(family, pricing_model)

        logger.info(
            f"Quota snapshot for {family}: "
            + ", ".join(
                f"{model.value}={snapshot.limit_vcpus:g} vCPUs" for model, snapshot in snapshots.items()
            )
        )
        return snapshots
