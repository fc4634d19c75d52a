"""Resolver for pnpm ``pnpm-lock.yaml`` lockfiles (v5, v6 and v9)."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import structlog
import yaml

from monoversion.engines.consistency.models import (
    ChildDependency,
    DependencyKind,
    DependencyRecord,
    Package,
    strip_peer_suffix,
)
from monoversion.engines.consistency.resolvers.registry import register_resolver
from monoversion.exceptions import LockfileError

log = structlog.get_logger("monoversion.engine")

LOCKFILE_NAME = "pnpm-lock.yaml"

# importer section -> record kind it resolves
_IMPORTER_SECTIONS = {
    "dependencies": DependencyKind.NORMAL,
    "devDependencies": DependencyKind.DEV,
}


def load_lockfile(lock_dir: Path) -> dict[str, Any] | None:
    """Read ``pnpm-lock.yaml`` from *lock_dir*; ``None`` when it does not exist."""
    path = lock_dir / LOCKFILE_NAME
    if not path.is_file():
        return None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise LockfileError(f"Invalid lockfile {path}: {e}") from e
    if not isinstance(data, dict):
        raise LockfileError(f"Invalid lockfile {path}: expected a mapping")
    return data


def _normalize_importer(key: str) -> str:
    parts = [p for p in key.replace("\\", "/").split("/") if p not in ("", ".", "..")]
    return "/".join(parts) or "."


def find_importer(importers: dict[str, Any], relative_name: str) -> dict[str, Any] | None:
    """Find the importer entry of a package.

    Keys are compared after dropping ``./`` / ``../`` segments, so rush's
    ``../../apps/web`` matches ``apps/web``. Exact matches win over suffix
    matches.
    """
    target = _normalize_importer(relative_name)
    normalized = {_normalize_importer(k): v for k, v in importers.items()}
    if target in normalized:
        return normalized[target]
    if target == ".":
        return None
    for key, value in normalized.items():
        if key.endswith("/" + target) or target.endswith("/" + key):
            return value
    return None


def _importer_version(value: Any) -> str | None:
    # v5: "4.17.21"; v6+: {"specifier": "^4.17.0", "version": "4.17.21"}
    if isinstance(value, dict):
        value = value.get("version")
    if value is None:
        return None
    return str(value)


def _snapshot_keys(name: str, version: str) -> list[str]:
    return [f"/{name}/{version}", f"/{name}@{version}", f"{name}@{version}"]


def find_snapshot(lockfile: dict[str, Any], name: str, lock_version: str) -> dict[str, Any]:
    """Merge the ``packages`` and ``snapshots`` entries of a resolved dependency.

    Lookups try the full lock version first, then the stripped one (v9 keys
    ``packages`` without the peer suffix).
    """
    candidates = _snapshot_keys(name, lock_version)
    stripped = strip_peer_suffix(lock_version)
    if stripped != lock_version:
        candidates += _snapshot_keys(name, stripped)

    merged: dict[str, Any] = {}
    for section in ("packages", "snapshots"):
        entries = lockfile.get(section) or {}
        for key in candidates:
            entry = entries.get(key)
            if isinstance(entry, dict):
                for field_name, value in entry.items():
                    if isinstance(value, dict) and isinstance(merged.get(field_name), dict):
                        merged[field_name] = {**merged[field_name], **value}
                    else:
                        merged[field_name] = value
                break
    return merged


def _children(snapshot: dict[str, Any]) -> tuple[ChildDependency, ...]:
    children: list[ChildDependency] = []
    for section, kind in (
        ("dependencies", DependencyKind.NORMAL),
        ("peerDependencies", DependencyKind.PEER),
    ):
        for name, version in (snapshot.get(section) or {}).items():
            children.append(ChildDependency(name=name, version=str(version), kind=kind))
    return tuple(children)


def _resolve_record(
    record: DependencyRecord, resolved: dict[str, Any], lockfile: dict[str, Any]
) -> DependencyRecord:
    if record.name not in resolved:
        return record
    lock_version = _importer_version(resolved[record.name])
    if lock_version is None:
        return record
    snapshot = find_snapshot(lockfile, record.name, lock_version)
    return replace(
        record,
        lock_version=lock_version,
        children=_children(snapshot),
        transitive_peer_names=tuple(snapshot.get("transitivePeerDependencies") or ()),
    )


class PnpmLockfileResolver:
    package_manager = "pnpm"

    def resolve(self, lock_dir: Path, packages: list[Package]) -> list[Package]:
        lockfile = load_lockfile(lock_dir)
        if lockfile is None:
            log.warning("resolver.lockfile_missing", lock_dir=str(lock_dir))
            return packages

        importers = lockfile.get("importers")
        if not importers:
            # single-project lockfile: the root package is the only importer
            importers = {
                ".": {section: lockfile.get(section) or {} for section in _IMPORTER_SECTIONS}
            }

        results: list[Package] = []
        for package in packages:
            importer = find_importer(importers, package.relative_name)
            if importer is None:
                log.debug("resolver.importer_missing", package=package.relative_name)
                results.append(package)
                continue

            records = []
            for record in package.dependencies:
                section = next(
                    (s for s, kind in _IMPORTER_SECTIONS.items() if kind == record.kind), None
                )
                if section is not None:
                    record = _resolve_record(record, importer.get(section) or {}, lockfile)
                records.append(record)
            results.append(replace(package, dependencies=tuple(records)))
        return results


register_resolver(PnpmLockfileResolver())
