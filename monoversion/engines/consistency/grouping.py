"""Version grouping and divergence classification."""

from __future__ import annotations

from dataclasses import dataclass, field

from monoversion.core.config import DependencyPolicy
from monoversion.engines.consistency.models import DependencyRecord, GroupedByVersion
from monoversion.engines.consistency.policy import passes_policy


class _Unknown:
    """Bucket key of records without a lock version."""

    def __repr__(self) -> str:
        return "UNKNOWN_VERSION"


UNKNOWN_VERSION = _Unknown()


def bucket_key(record: DependencyRecord) -> str | _Unknown:
    version = record.stripped_lock_version
    return UNKNOWN_VERSION if version is None else version


def _add(grouped: dict, keys: dict, record: DependencyRecord) -> None:
    buckets = grouped.setdefault(record.name, [])
    index = keys.setdefault(record.name, {})
    key = bucket_key(record)
    if key in index:
        buckets[index[key]].append(record)
    else:
        index[key] = len(buckets)
        buckets.append([record])


def group_records(records: list[DependencyRecord]) -> GroupedByVersion:
    """Group records by name, then by stripped lock version (first-encountered order).

    Workspace links are skipped.
    """
    grouped: GroupedByVersion = {}
    keys: dict[str, dict] = {}
    for record in records:
        if not record.is_workspace_link:
            _add(grouped, keys, record)
    return grouped


@dataclass
class VersionGrouping:
    """Unfiltered and policy-filtered groupings built in one pass."""

    all: GroupedByVersion = field(default_factory=dict)
    filtered: GroupedByVersion = field(default_factory=dict)


def group_by_version(
    records: list[DependencyRecord], policy: DependencyPolicy
) -> VersionGrouping:
    grouping = VersionGrouping()
    all_keys: dict[str, dict] = {}
    filtered_keys: dict[str, dict] = {}
    for record in records:
        if record.is_workspace_link:
            continue
        _add(grouping.all, all_keys, record)
        if passes_policy(record, policy):
            _add(grouping.filtered, filtered_keys, record)
    return grouping


def group_dependency(
    name: str, records: list[DependencyRecord], policy: DependencyPolicy
) -> list[list[DependencyRecord]]:
    """Buckets of one dependency name, restricted to records passing *policy*."""
    selected = [r for r in records if r.name == name and passes_policy(r, policy)]
    return group_records(selected).get(name, [])


@dataclass
class Divergence:
    """Classifier output: divergent buckets, auto-fixable and unresolved records."""

    divergent: GroupedByVersion = field(default_factory=dict)
    auto_fixable: dict[str, list[DependencyRecord]] = field(default_factory=dict)
    # names whose divergence comes from a manual lock disagreeing with a manifest
    manual_diff: set[str] = field(default_factory=set)
    # records missing from the lockfile, one bucket per name
    unresolved: GroupedByVersion = field(default_factory=dict)


def _is_manual_diff(record: DependencyRecord) -> bool:
    return record.manual_lock is not None and record.manual_lock.is_different


def _carries_signal(record: DependencyRecord) -> bool:
    # a manual lock agreeing with the manifest says nothing about divergence
    return record.manual_lock is None or record.manual_lock.is_different


def _is_unknown(bucket: list[DependencyRecord]) -> bool:
    return bucket_key(bucket[0]) is UNKNOWN_VERSION


def classify_divergence(filtered: GroupedByVersion) -> Divergence:
    """Keep the dependencies that resolve to more than one version.

    A dependency with a single resolved version still counts when one of
    its manual locks disagrees with the declared version. Unresolved
    records never count as a version of their own; they are collected in
    ``unresolved`` instead.
    """
    result = Divergence()
    for name, buckets in filtered.items():
        unknown = [r for bucket in buckets if _is_unknown(bucket) for r in bucket]
        if unknown:
            result.unresolved[name] = [unknown]

        any_manual_diff = any(_is_manual_diff(r) for bucket in buckets for r in bucket)
        remaining = [
            kept for kept in ([r for r in bucket if _carries_signal(r)] for bucket in buckets) if kept
        ]
        resolved = [bucket for bucket in remaining if not _is_unknown(bucket)]
        if len(resolved) > 1 or (remaining and any_manual_diff):
            # a manual diff on unresolved records alone still needs its bucket shown
            result.divergent[name] = resolved or remaining
            fixable = [r for bucket in remaining for r in bucket if _is_manual_diff(r)]
            if fixable:
                result.auto_fixable[name] = fixable
            if any_manual_diff:
                result.manual_diff.add(name)
    return result
