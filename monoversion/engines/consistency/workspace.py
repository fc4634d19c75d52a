"""Scan, resolve, check and lock the dependency versions of a workspace."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import structlog

# Ensure resolvers are registered before any workspace loads.
import monoversion.engines.consistency.resolvers  # noqa: F401
from monoversion.core.config import WorkspaceConfig, resolve_lock_dir
from monoversion.engines.consistency.aggregator import aggregate_dependencies
from monoversion.engines.consistency.grouping import classify_divergence, group_by_version
from monoversion.engines.consistency.models import DependencyRecord, GroupedByVersion, Package
from monoversion.engines.consistency.policy import apply_manual_locks, passes_policy
from monoversion.engines.consistency.resolvers.registry import resolve_lock_versions
from monoversion.engines.consistency.scanner import DEFAULT_IGNORE, scan_workspace
from monoversion.engines.consistency.suggestions import SuggestionReport, suggest
from monoversion.engines.consistency.writer import VersionUpdate, WriteResult, write_manifests
from monoversion.exceptions import MissingArgumentError

log = structlog.get_logger("monoversion.engine")


@dataclass
class CheckResult:
    """Everything the reporting layer needs after a version check."""

    grouped: GroupedByVersion = field(default_factory=dict)
    filtered: GroupedByVersion = field(default_factory=dict)
    divergent: GroupedByVersion = field(default_factory=dict)
    auto_fixable: dict[str, list[DependencyRecord]] = field(default_factory=dict)
    manual_diff: set[str] = field(default_factory=set)
    unresolved: GroupedByVersion = field(default_factory=dict)
    only_different: bool = True

    @property
    def has_divergence(self) -> bool:
        return bool(self.divergent)

    @property
    def report(self) -> GroupedByVersion:
        return self.divergent if self.only_different else self.filtered


def _by_package_path(
    records: list[DependencyRecord], update_for
) -> dict[str, list[VersionUpdate]]:
    plan: dict[str, list[VersionUpdate]] = {}
    for record in records:
        if record.package is None:
            continue
        plan.setdefault(record.package.path, []).append(update_for(record))
    return plan


class Workspace:
    """A loaded monorepo: its packages and their flattened dependency records."""

    def __init__(
        self,
        root: Path,
        config: WorkspaceConfig | None = None,
        ignore: tuple[str, ...] | list[str] = DEFAULT_IGNORE,
    ) -> None:
        self.root = Path(root).resolve()
        self.config = config or WorkspaceConfig()
        self._ignore = ignore
        self.packages: list[Package] = []
        self.records: list[DependencyRecord] = []

    @property
    def policy(self):
        return self.config.dependencies

    async def load(self) -> Workspace:
        """Scan manifests, then attach lockfile versions and manual locks."""
        packages = await scan_workspace(self.root, self._ignore)
        lock_dir = resolve_lock_dir(self.root, self.config)
        self.packages = resolve_lock_versions(self.config.package_manager, lock_dir, packages)
        self.records = apply_manual_locks(aggregate_dependencies(self.packages), self.policy)
        log.info(
            "workspace.loaded",
            root=str(self.root),
            packages=len(self.packages),
            dependencies=len(self.records),
        )
        return self

    def check_version(
        self, dependency_names: list[str] | tuple[str, ...] = (), only_different: bool = True
    ) -> CheckResult:
        """Group dependencies by resolved version and classify divergence.

        *dependency_names* restricts the check to those dependencies.
        """
        records = self.records
        if dependency_names:
            wanted = set(dependency_names)
            records = [r for r in records if r.name in wanted]
        grouping = group_by_version(records, self.policy)
        divergence = classify_divergence(grouping.filtered)
        return CheckResult(
            grouped=grouping.all,
            filtered=grouping.filtered,
            divergent=divergence.divergent,
            auto_fixable=divergence.auto_fixable,
            manual_diff=divergence.manual_diff,
            unresolved=divergence.unresolved,
            only_different=only_different,
        )

    def get_suggestions(
        self, buckets: list[list[DependencyRecord]], manual_diff: bool = False
    ) -> SuggestionReport | None:
        return suggest(buckets, self.records, self.policy, manual_diff)

    async def lock_version(
        self, dependency_name: str, version: str, peer_version: str | None = None
    ) -> list[WriteResult]:
        """Lock *dependency_name* to *version* in every package that declares it.

        The peer target defaults to the configured peer version style.
        Raises :class:`MissingArgumentError` before touching any file when
        the name or version is missing.
        """
        if not dependency_name:
            raise MissingArgumentError("dependency name is required")
        if not version:
            raise MissingArgumentError("version is required")
        peer_version = peer_version or self.config.peer_target(version)

        targets = [
            r
            for r in self.records
            if r.name == dependency_name
            and not r.is_workspace_link
            and passes_policy(r, self.policy)
            and (r.version != version or (r.peer_version is not None and r.peer_version != peer_version))
        ]
        plan = _by_package_path(
            targets, lambda r: VersionUpdate(name=r.name, version=version, peer_version=peer_version)
        )
        log.info("workspace.lock", dependency=dependency_name, version=version, packages=len(plan))
        return await write_manifests(plan)

    async def fix(self, auto_fixable: dict[str, list[DependencyRecord]]) -> list[WriteResult]:
        """Apply the manual lock of every auto-fixable record."""
        records = [r for items in auto_fixable.values() for r in items if r.manual_lock]
        plan = _by_package_path(
            records,
            lambda r: VersionUpdate(
                name=r.name,
                version=r.manual_lock.version or r.version,
                peer_version=r.manual_lock.peer_version,
            ),
        )
        log.info("workspace.fix", dependencies=len(auto_fixable), packages=len(plan))
        return await write_manifests(plan)
