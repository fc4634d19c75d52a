"""Flatten every package's dependency records into one list."""

from __future__ import annotations

from dataclasses import replace

from monoversion.engines.consistency.models import DependencyKind, DependencyRecord, Package


def aggregate_package(package: Package) -> list[DependencyRecord]:
    """Merge one package's records into the form used for grouping.

    Peer records only feed ``peer_version``. A dev record whose declared
    version equals the normal record of the same name is folded into that
    record's ``dev_version``; any other dev record is kept on its own after
    the normal records.
    """
    peers = {r.name: r.version for r in package.dependencies if r.kind is DependencyKind.PEER}
    normal = [r for r in package.dependencies if r.kind is DependencyKind.NORMAL]
    dev = [r for r in package.dependencies if r.kind is DependencyKind.DEV]

    merged: dict[str, DependencyRecord] = {r.name: r for r in normal}
    extra: list[DependencyRecord] = []
    for record in dev:
        base = merged.get(record.name)
        if base is not None and base.version == record.version:
            merged[record.name] = replace(base, dev_version=record.version)
        else:
            extra.append(record)

    return [
        replace(record, peer_version=peers.get(record.name))
        for record in [*merged.values(), *extra]
    ]


def aggregate_dependencies(packages: list[Package]) -> list[DependencyRecord]:
    """Concatenate every package's merged records in package scan order."""
    records: list[DependencyRecord] = []
    for package in packages:
        records.extend(aggregate_package(package))
    return records
