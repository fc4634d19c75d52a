"""Convergence suggestions for dependencies resolved to several versions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import semver
import structlog

from monoversion.core.config import DependencyPolicy
from monoversion.engines.consistency.grouping import group_dependency
from monoversion.engines.consistency.models import (
    DependencyKind,
    DependencyRecord,
    GroupedByVersion,
)

log = structlog.get_logger("monoversion.engine")


class SuggestionType(str, Enum):
    NORMAL = "normal"
    PEER_DEPENDENCY = "differentPeerDependencyVersion"
    TRANSITIVE_PEER_DEPENDENCY = "transitivePeerDependencies"


@dataclass(frozen=True)
class Suggestion:
    type: SuggestionType
    dependency_name: str
    min_version: str
    max_version: str

    @property
    def message(self) -> str:
        return f"lock {self.dependency_name} to {self.min_version} or {self.max_version}"


@dataclass
class SuggestionReport:
    suggestions: list[Suggestion] = field(default_factory=list)
    peer_dependencies: GroupedByVersion = field(default_factory=dict)
    transitive_peer_dependencies: GroupedByVersion = field(default_factory=dict)


def _parse(version: str) -> semver.Version | None:
    try:
        return semver.Version.parse(version)
    except (ValueError, TypeError):
        return None


def satisfying_bounds(versions: list[str]) -> tuple[str, str] | None:
    """Lowest and highest version matching the "any version" range.

    Like a ``*`` range, prereleases do not match; neither do strings that
    are not valid semver.
    """
    parsed = []
    for version in versions:
        v = _parse(version)
        if v is None:
            log.debug("suggestions.version_skipped", version=version)
        elif v.prerelease is None:
            parsed.append(v)
    if not parsed:
        return None
    return str(min(parsed)), str(max(parsed))


def leader_versions(buckets: list[list[DependencyRecord]]) -> list[str]:
    """Distinct stripped lock versions of each bucket's first record."""
    versions: list[str] = []
    for bucket in buckets:
        if not bucket:
            continue
        version = bucket[0].stripped_lock_version
        if version is not None and version not in versions:
            versions.append(version)
    return versions


def _suggest_for(
    name: str, buckets: list[list[DependencyRecord]], kind: SuggestionType
) -> Suggestion | None:
    versions = leader_versions(buckets)
    if len(versions) < 2:
        return None
    bounds = satisfying_bounds(versions)
    if bounds is None:
        return None
    return Suggestion(type=kind, dependency_name=name, min_version=bounds[0], max_version=bounds[1])


def _related(
    names: list[str],
    records: list[DependencyRecord],
    policy: DependencyPolicy,
    kind: SuggestionType,
    report: SuggestionReport,
    target: GroupedByVersion,
) -> None:
    for name in names:
        if name in target:
            continue
        buckets = group_dependency(name, records, policy)
        suggestion = _suggest_for(name, buckets, kind)
        if suggestion is not None:
            target[name] = buckets
            report.suggestions.append(suggestion)


def suggest(
    buckets: list[list[DependencyRecord]],
    records: list[DependencyRecord],
    policy: DependencyPolicy,
    manual_diff: bool = False,
) -> SuggestionReport | None:
    """Compute convergence suggestions for one dependency's buckets.

    When the buckets resolve to several versions, suggest the lowest and
    highest. When the classifier flagged *manual_diff* and the buckets
    share one version, look at the peer dependencies and transitive peer
    dependencies of the resolved packages instead.
    """
    base = next((bucket[0] for bucket in buckets if bucket), None)
    if base is None:
        return None

    report = SuggestionReport()
    if not manual_diff or len(leader_versions(buckets)) > 1:
        suggestion = _suggest_for(base.name, buckets, SuggestionType.NORMAL)
        if suggestion is not None:
            report.suggestions.append(suggestion)
        return report

    collapsed = [record for bucket in buckets for record in bucket]
    peer_names: list[str] = []
    transitive_names: list[str] = []
    for record in collapsed:
        for child in record.children:
            if child.kind is DependencyKind.PEER and child.name not in peer_names:
                peer_names.append(child.name)
        for name in record.transitive_peer_names:
            if name not in transitive_names:
                transitive_names.append(name)

    _related(
        peer_names, records, policy, SuggestionType.PEER_DEPENDENCY, report,
        report.peer_dependencies,
    )
    _related(
        transitive_names, records, policy, SuggestionType.TRANSITIVE_PEER_DEPENDENCY, report,
        report.transitive_peer_dependencies,
    )
    return report
