"""Dependency inventory engine — manifests, lock artifacts, cross-project aggregation."""

from nuscan.engines.inventory.aggregator import aggregate
from nuscan.engines.inventory.models import (
    InventoryReport,
    Package,
    PackageInfo,
    PackageVersionMismatch,
    ProjectDescriptor,
    ProjectReference,
    TransitiveDependency,
)

__all__ = [
    "InventoryReport",
    "Package",
    "PackageInfo",
    "PackageVersionMismatch",
    "ProjectDescriptor",
    "ProjectReference",
    "TransitiveDependency",
    "aggregate",
]
