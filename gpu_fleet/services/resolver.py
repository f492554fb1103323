"""
Quota-aware instance class resolution.
"""
from typing import Dict, List, Mapping, Optional, Sequence
import logging

from ..providers.base import BaseProviderAdapter
from ..providers.models import (
    PRICING_PREFERENCE, Alternative, InstanceClass, PricingModel, QuotaSnapshot, ResolutionDecision
)
from ..core.exceptions import InvalidInstanceClass
from .quota import QuotaFetcher


logger = logging.getLogger(__name__)

# Quota requests leave room for this many instances of the desired class
RECOMMENDED_INSTANCE_HEADROOM = 4


class InstanceResolver:
    """Picks a feasible (instance class, pricing model) for the account's quotas.

    Resolution is a pure function of its arguments: quota snapshots are passed
    in explicitly and nothing is stored between calls, so one resolver can be
    shared across threads.
    """

    def resolve(
        self,
        desired_class: InstanceClass,
        catalog: Sequence[InstanceClass],
        snapshots: Mapping[PricingModel, QuotaSnapshot]
    ) -> ResolutionDecision:
        """Resolve a desired instance class against quota snapshots.

        Spot is preferred over on-demand. When neither admits the desired
        class, same-family catalog classes that fit under some quota are
        returned as alternatives, largest first. An empty alternatives list
        means insufficient quota; it is an outcome, not an error.

        Args:
            desired_class: Instance class the caller would like to run
            catalog: Candidate classes for substitution
            snapshots: Quota snapshot per pricing model (a missing one counts as zero)

        Returns:
            Resolution decision

        Raises:
            InvalidInstanceClass: If the desired class has no vCPUs or an unknown family
        """
        self._validate(desired_class, catalog)

        limits = {
            model: (snapshots[model].limit_vcpus if model in snapshots else 0)
            for model in PRICING_PREFERENCE
        }
        required = desired_class.vcpus

        for pricing_model in PRICING_PREFERENCE:
            if limits[pricing_model] >= required:
                logger.info(f"{desired_class.name} ({required} vCPUs) fits {pricing_model.value} quota")
                return ResolutionDecision(
                    desired_class=desired_class,
                    chosen_class=desired_class,
                    chosen_pricing_model=pricing_model
                )

        alternatives = self._find_alternatives(desired_class, catalog, limits)

        if alternatives:
            logger.warning(
                f"Insufficient quota for {desired_class.name} (needs {required} vCPUs); "
                f"{len(alternatives)} alternatives fit"
            )
        else:
            logger.error(
                f"Insufficient quota for {desired_class.name} (needs {required} vCPUs) "
                f"and no {desired_class.family} family alternative fits"
            )

        return ResolutionDecision(
            desired_class=desired_class,
            chosen_class=None,
            chosen_pricing_model=None,
            alternatives=tuple(alternatives)
        )

    def lookup(self, name: str, catalog: Sequence[InstanceClass]) -> InstanceClass:
        """Find an instance class by name.

        Raises:
            InvalidInstanceClass: If the catalog has no such class
        """
        for instance_class in catalog:
            if instance_class.name == name:
                return instance_class
        raise InvalidInstanceClass(f"Unknown instance class: {name}")

    def recommend_quota_increase(
        self, desired_class: InstanceClass, instances: int = RECOMMENDED_INSTANCE_HEADROOM
    ) -> int:
        """vCPU limit to request so that ``instances`` copies of the class fit."""
        return desired_class.vcpus * max(instances, 1)

    def _validate(self, desired_class: InstanceClass, catalog: Sequence[InstanceClass]) -> None:
        if desired_class.vcpus <= 0:
            raise InvalidInstanceClass(
                f"Instance class {desired_class.name} has no vCPUs ({desired_class.vcpus})"
            )

        families = {instance_class.family for instance_class in catalog}
        if not desired_class.family or desired_class.family not in families:
            raise InvalidInstanceClass(
                f"Instance class {desired_class.name} has unknown family '{desired_class.family}'"
            )

    def _find_alternatives(
        self,
        desired_class: InstanceClass,
        catalog: Sequence[InstanceClass],
        limits: Dict[PricingModel, float]
    ) -> List[Alternative]:
        ceiling = max(limits.values())
        alternatives = []

        for candidate in catalog:
            # Cross-family substitution is never proposed
            if candidate.family != desired_class.family or candidate.vcpus <= 0:
                continue
            if candidate.vcpus > ceiling:
                continue

            pricing_models = tuple(
                model for model in PRICING_PREFERENCE if limits[model] >= candidate.vcpus
            )
            alternatives.append(Alternative(instance_class=candidate, pricing_models=pricing_models))

        alternatives.sort(key=lambda a: (-a.instance_class.vcpus, a.instance_class.name))
        return alternatives


class ResolutionService:
    """Serves resolution requests: fetch quotas, narrow the catalog, resolve."""

    def __init__(
        self,
        adapter: BaseProviderAdapter,
        catalog: Sequence[InstanceClass],
        resolver: Optional[InstanceResolver] = None,
        check_offerings: bool = True
    ):
        self.adapter = adapter
        self.catalog = list(catalog)
        self.resolver = resolver or InstanceResolver()
        self.fetcher = QuotaFetcher(adapter)
        self.check_offerings = check_offerings

    def resolve(self, desired_class_name: str, family: Optional[str] = None) -> ResolutionDecision:
        """Handle a resolution request ``{desired_class_name, family}``.

        Args:
            desired_class_name: Name of the preferred class
            family: Quota family; defaults to the catalog entry's family

        Raises:
            InvalidInstanceClass: If the class is unknown or its family does not match
        """
        desired_class = self.resolver.lookup(desired_class_name, self.catalog)
        if family and family != desired_class.family:
            raise InvalidInstanceClass(
                f"Instance class {desired_class_name} belongs to family "
                f"'{desired_class.family}', not '{family}'"
            )

        # Offerings only narrow the substitutes; the desired class is always evaluated
        catalog = self.offered_catalog()
        if desired_class not in catalog:
            catalog.append(desired_class)

        snapshots = self.fetcher.fetch(desired_class.family)
        return self.resolver.resolve(desired_class, catalog, snapshots)

    def offered_catalog(self) -> List[InstanceClass]:
        """Catalog entries offered at the adapter's location."""
        if not self.check_offerings:
            return list(self.catalog)

        offered = set(self.adapter.list_offered_classes([c.name for c in self.catalog]))
        skipped = [c.name for c in self.catalog if c.name not in offered]
        if skipped:
            logger.debug(f"Skipping classes not offered here: {', '.join(skipped)}")
        return [c for c in self.catalog if c.name in offered]
