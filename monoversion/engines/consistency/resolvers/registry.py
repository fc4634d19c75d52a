"""Resolver registry — map package managers to lockfile resolvers."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

import structlog

from monoversion.engines.consistency.models import Package

log = structlog.get_logger("monoversion.engine")


@runtime_checkable
class LockfileResolver(Protocol):
    """Interface that every lockfile resolver must satisfy.

    ``resolve`` returns new packages whose dependency records carry the
    lockfile data. It must be a no-op when no lockfile is found.
    """

    package_manager: str

    def resolve(self, lock_dir: Path, packages: list[Package]) -> list[Package]: ...


RESOLVER_REGISTRY: dict[str, LockfileResolver] = {}


def register_resolver(resolver: LockfileResolver) -> None:
    """Register a resolver instance by its package_manager."""
    RESOLVER_REGISTRY[resolver.package_manager] = resolver


def get_resolver(package_manager: str) -> LockfileResolver | None:
    return RESOLVER_REGISTRY.get(package_manager)


def resolve_lock_versions(
    package_manager: str, lock_dir: Path, packages: list[Package]
) -> list[Package]:
    """Attach lockfile versions with the resolver of *package_manager*.

    An unsupported package manager is not an error: the packages are
    returned unchanged and every dependency stays unresolved.
    """
    resolver = get_resolver(package_manager)
    if resolver is None:
        log.warning(
            "resolver.unsupported_package_manager",
            package_manager=package_manager,
            supported=sorted(RESOLVER_REGISTRY),
        )
        return packages
    return resolver.resolve(lock_dir, packages)
