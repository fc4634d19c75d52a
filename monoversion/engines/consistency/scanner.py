"""Manifest scanner — discover ``package.json`` files and load workspace packages."""

from __future__ import annotations

import asyncio
import fnmatch
import json
import os
from pathlib import Path
from typing import Any

import structlog

from monoversion.engines.consistency.models import (
    MANIFEST_SECTIONS,
    DependencyKind,
    DependencyRecord,
    Package,
    PackageInfo,
)

log = structlog.get_logger("monoversion.engine")

MANIFEST_NAME = "package.json"

DEFAULT_IGNORE: tuple[str, ...] = (
    "**/node_modules/**",
    "**/temp/**",
    "**/common/autoinstallers/**",
)


def _is_ignored(rel_path: str, patterns: tuple[str, ...] | list[str]) -> bool:
    # anchor with "/" so "**/x/**" also matches top-level "x/"
    candidate = "/" + rel_path
    return any(fnmatch.fnmatch(candidate, pattern) for pattern in patterns)


def discover_manifests(
    root: Path, ignore: tuple[str, ...] | list[str] = DEFAULT_IGNORE
) -> list[Path]:
    """Walk *root* and return every manifest outside ignored directories.

    The root manifest comes first, the rest in path order.
    """
    matches: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"
        dirnames[:] = sorted(d for d in dirnames if not _is_ignored(f"{prefix}{d}/", ignore))
        if MANIFEST_NAME in filenames and not _is_ignored(prefix + MANIFEST_NAME, ignore):
            matches.append(Path(dirpath) / MANIFEST_NAME)
    return sorted(matches, key=lambda p: (p.parent != root, p))


def dependency_records(
    raw: dict[str, str] | None, kind: DependencyKind, package: PackageInfo | None = None
) -> list[DependencyRecord]:
    """Turn a raw ``{name: version}`` map into records of *kind*."""
    if not isinstance(raw, dict):
        return []
    return [
        DependencyRecord(name=name, version=str(version), kind=kind, package=package)
        for name, version in raw.items()
    ]


def relative_name(root: Path, manifest: Path) -> str:
    rel = manifest.parent.relative_to(root).as_posix().strip("/")
    return rel if rel and rel != "." else "."


def build_package(root: Path, manifest: Path, data: dict[str, Any]) -> Package:
    """Build a :class:`Package` from parsed manifest *data*."""
    rel = relative_name(root, manifest)
    is_root = rel == "."
    info = PackageInfo(
        path=str(manifest),
        name=data.get("name") or rel,
        relative_name=rel,
        version=data.get("version"),
        is_root=is_root,
    )
    records: list[DependencyRecord] = []
    for kind, section in MANIFEST_SECTIONS.items():
        records.extend(dependency_records(data.get(section), kind, info))
    return Package(
        path=info.path,
        name=info.name,
        relative_name=info.relative_name,
        version=info.version,
        is_root=info.is_root,
        dependencies=tuple(records),
    )


def _read_manifest(manifest: Path) -> dict[str, Any] | None:
    """Parse a manifest; ``None`` for empty, unparseable or non-object files."""
    try:
        content = manifest.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.debug("scanner.manifest_unreadable", path=str(manifest), error=str(e))
        return None
    if not content.strip():
        log.debug("scanner.manifest_skipped", path=str(manifest), reason="empty")
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        log.debug("scanner.manifest_skipped", path=str(manifest), reason=str(e))
        return None
    if not isinstance(data, dict) or not data:
        log.debug("scanner.manifest_skipped", path=str(manifest), reason="not an object")
        return None
    return data


async def scan_workspace(
    root: Path, ignore: tuple[str, ...] | list[str] = DEFAULT_IGNORE
) -> list[Package]:
    """Load every package of the workspace rooted at *root*.

    Manifests are read concurrently; packages come back in manifest path
    order, which later stages use as their tie-break.
    """
    root = root.resolve()
    manifests = discover_manifests(root, ignore)
    contents = await asyncio.gather(
        *(asyncio.to_thread(_read_manifest, manifest) for manifest in manifests)
    )
    packages = [
        build_package(root, manifest, data)
        for manifest, data in zip(manifests, contents)
        if data is not None
    ]
    log.debug("scanner.done", root=str(root), manifests=len(manifests), packages=len(packages))
    return packages
