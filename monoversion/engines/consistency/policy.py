"""Include/exclude rules and manual version locks."""

from __future__ import annotations

from dataclasses import replace
from typing import Union

from monoversion.core.config import (
    ALL,
    DependencyPolicy,
    IncludeOrExcludeRules,
    LockRules,
    LockValue,
    PackageRules,
)
from monoversion.engines.consistency.models import DependencyRecord, ManualLock, PackageInfo

# "*" or the dependency names a scope lists
EffectiveRules = Union[str, tuple[str, ...]]


def _package_entry(table: dict, package: PackageInfo | None):
    """Per-package table entry, keyed by package name first, then relative name."""
    if package is None:
        return None
    if package.name in table:
        return table[package.name]
    return table.get(package.relative_name)


def merge_scope(common: list[str], per_package: PackageRules | None) -> EffectiveRules:
    """Effective include/exclude names for one package.

    A per-package ``"*"`` overrides everything; otherwise the common and
    per-package names are combined.
    """
    if per_package == ALL:
        return ALL
    return (*common, *(per_package or ()))


def merge_lock_scope(
    common: dict[str, LockValue], per_package: dict[str, LockValue] | None
) -> dict[str, LockValue]:
    """Effective lock table for one package; per-package entries win."""
    return {**common, **(per_package or {})}


def effective_rules(rules: IncludeOrExcludeRules, package: PackageInfo | None) -> EffectiveRules:
    return merge_scope(rules.common, _package_entry(rules.package, package))


def is_included(record: DependencyRecord, policy: DependencyPolicy) -> bool:
    rules = effective_rules(policy.include, record.package)
    if rules == ALL:
        return True
    if policy.include.is_configured:
        return record.name in rules
    return True


def is_excluded(record: DependencyRecord, policy: DependencyPolicy) -> bool:
    rules = effective_rules(policy.exclude, record.package)
    if rules == ALL:
        return True
    if policy.exclude.is_configured:
        return record.name in rules
    return False


def passes_policy(record: DependencyRecord, policy: DependencyPolicy) -> bool:
    return is_included(record, policy) and not is_excluded(record, policy)


def _lock_versions(value: LockValue | None) -> tuple[str | None, str | None]:
    if isinstance(value, str):
        return value or None, value or None
    if isinstance(value, (list, tuple)) and value:
        version = value[0] or None
        peer_version = (value[1] if len(value) > 1 else None) or version
        return version, peer_version
    return None, None


def manual_lock_for(record: DependencyRecord, rules: LockRules) -> ManualLock | None:
    """Build the manual lock of *record*, or ``None`` when no lock applies."""
    table = merge_lock_scope(rules.common, _package_entry(rules.package, record.package))
    version, peer_version = _lock_versions(table.get(record.name))
    if version is None and peer_version is None:
        return None
    return ManualLock(
        version=version,
        peer_version=peer_version,
        diff_from_declared=version is not None and record.version != version,
        diff_from_peer_declared=(
            peer_version is not None
            and record.peer_version is not None
            and record.peer_version != peer_version
        ),
    )


def apply_manual_lock(record: DependencyRecord, policy: DependencyPolicy) -> DependencyRecord:
    manual_lock = manual_lock_for(record, policy.lock)
    if manual_lock is None:
        return record
    return replace(record, manual_lock=manual_lock)


def apply_manual_locks(
    records: list[DependencyRecord], policy: DependencyPolicy
) -> list[DependencyRecord]:
    return [apply_manual_lock(record, policy) for record in records]
