"""Built-in GPU instance class catalogs per cloud backend."""

from typing import Dict, List

from .models import InstanceClass


# Format: (name, accelerator_type, vcpus, memory_gib, accelerator_count, family, on_demand_hourly_usd)
# Family is the quota accounting unit: AWS bills G/VT and P instances against separate vCPU quotas.
_AWS_GPU_INSTANCES = [
    ("g4dn.xlarge", "T4", 4, 16.0, 1, "G", 0.526),
    ("g4dn.2xlarge", "T4", 8, 32.0, 1, "G", 0.752),
    ("g4dn.4xlarge", "T4", 16, 64.0, 1, "G", 1.204),
    ("g5.xlarge", "A10G", 4, 16.0, 1, "G", 1.006),
    ("g5.2xlarge", "A10G", 8, 32.0, 1, "G", 1.212),
    ("g5.4xlarge", "A10G", 16, 64.0, 1, "G", 1.624),
    ("g5.12xlarge", "A10G", 48, 192.0, 4, "G", 5.672),
    ("p4d.24xlarge", "A100", 96, 1152.0, 8, "P", 32.77),
]

# GCP N1 machines with attached T4s count against regional CPUS/PREEMPTIBLE_CPUS;
# A2 machines have their own A2_CPUS quota.
_GCP_GPU_INSTANCES = [
    ("n1-standard-4+T4", "T4", 4, 15.0, 1, "N1", 0.55),
    ("n1-standard-8+T4", "T4", 8, 30.0, 1, "N1", 0.75),
    ("n1-highmem-8+T4", "T4", 8, 52.0, 1, "N1", 0.85),
    ("n1-standard-16+T4", "T4", 16, 60.0, 1, "N1", 1.13),
    ("a2-highgpu-1g", "A100", 12, 85.0, 1, "A2", 3.67),
    ("a2-highgpu-2g", "A100", 24, 170.0, 2, "A2", 7.35),
]


def _build(rows) -> List[InstanceClass]:
    return [
        InstanceClass(
            name=name,
            vcpus=vcpus,
            accelerator_count=accelerator_count,
            accelerator_type=accelerator_type,
            family=family,
            memory_gib=memory_gib,
            hourly_price=price
        )
        for name, accelerator_type, vcpus, memory_gib, accelerator_count, family, price in rows
    ]


CATALOGS: Dict[str, List[InstanceClass]] = {
    'aws': _build(_AWS_GPU_INSTANCES),
    'gcp': _build(_GCP_GPU_INSTANCES),
}


def get_catalog(provider: str) -> List[InstanceClass]:
    """Return the built-in catalog for a provider.

    Raises:
        KeyError: If the provider has no catalog
    """
    return list(CATALOGS[provider])
