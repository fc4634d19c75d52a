"""Data models for the dependency consistency engine."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

WORKSPACE_PROTOCOL = "workspace:"

# pnpm appends the peer resolution to a version: ``1.0.0_react@18.2.0`` (v5)
# or ``1.0.0(react@18.2.0)`` (v6+).
_PEER_SUFFIX_RE = re.compile(r"[_(]")


def strip_peer_suffix(version: str) -> str:
    """Drop the package-manager peer suffix from a resolved version."""
    return _PEER_SUFFIX_RE.split(version, maxsplit=1)[0]


class DependencyKind(str, Enum):
    """Which manifest map a dependency was declared in."""

    NORMAL = "dependency"
    DEV = "devDependency"
    PEER = "peerDependency"


# Manifest map names, in the order the scanner reads them.
MANIFEST_SECTIONS: dict[DependencyKind, str] = {
    DependencyKind.NORMAL: "dependencies",
    DependencyKind.DEV: "devDependencies",
    DependencyKind.PEER: "peerDependencies",
}


@dataclass(frozen=True)
class PackageInfo:
    """The owning package of a dependency record."""

    path: str  # absolute path of the package.json
    name: str
    relative_name: str  # "." for the workspace root
    version: str | None = None
    is_root: bool = False

    @property
    def label(self) -> str:
        return "root" if self.is_root else self.relative_name


@dataclass(frozen=True)
class ChildDependency:
    """A dependency of a resolved dependency, as reported by the lockfile."""

    name: str
    version: str
    kind: DependencyKind


@dataclass(frozen=True)
class ManualLock:
    """Version lock coming from the ``dependencies.lock`` policy."""

    version: str | None = None
    peer_version: str | None = None
    diff_from_declared: bool = False
    diff_from_peer_declared: bool = False

    @property
    def is_different(self) -> bool:
        return self.diff_from_declared or self.diff_from_peer_declared


@dataclass(frozen=True)
class DependencyRecord:
    """A single dependency declaration of one workspace package."""

    name: str
    version: str  # raw version from package.json
    kind: DependencyKind
    package: PackageInfo | None = None
    lock_version: str | None = None
    peer_version: str | None = None
    dev_version: str | None = None
    children: tuple[ChildDependency, ...] = ()
    transitive_peer_names: tuple[str, ...] = ()
    manual_lock: ManualLock | None = None

    @property
    def is_resolved(self) -> bool:
        return self.lock_version is not None

    @property
    def stripped_lock_version(self) -> str | None:
        if self.lock_version is None:
            return None
        return strip_peer_suffix(self.lock_version)

    @property
    def is_workspace_link(self) -> bool:
        return self.version.startswith(WORKSPACE_PROTOCOL)


@dataclass(frozen=True)
class Package:
    """A workspace package loaded from its manifest."""

    path: str
    name: str
    relative_name: str
    version: str | None = None
    is_root: bool = False
    dependencies: tuple[DependencyRecord, ...] = field(default_factory=tuple)

    @property
    def info(self) -> PackageInfo:
        return PackageInfo(
            path=self.path,
            name=self.name,
            relative_name=self.relative_name,
            version=self.version,
            is_root=self.is_root,
        )


# dependency name -> version buckets, each bucket sharing one resolved version
GroupedByVersion = dict[str, list[list[DependencyRecord]]]
