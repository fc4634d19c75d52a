"""Plain-text tree rendering of version groupings for the CLI."""

from __future__ import annotations

import click

from monoversion.engines.consistency.models import DependencyRecord, GroupedByVersion

BRANCH = "├── "
LAST_BRANCH = "└── "
VERTICAL = "│   "
INDENT = "    "


def _record_line(record: DependencyRecord) -> str:
    package = record.package
    label = f"{package.name} ({package.label})" if package else "?"
    parts = [label, record.version]
    lock = record.manual_lock
    if lock and lock.diff_from_declared:
        parts.append(click.style(f"-> {lock.version}", fg="yellow"))
    if record.peer_version:
        parts.append(f"peer {record.peer_version}")
    if lock and lock.diff_from_peer_declared:
        parts.append(click.style(f"-> {lock.peer_version}", fg="yellow"))
    return " ".join(parts)


def render_buckets(name: str, buckets: list[list[DependencyRecord]], highlight: bool = False) -> list[str]:
    """Render one dependency's version buckets as tree lines."""
    lines = [click.style(name, bold=True, fg="blue" if highlight else None)]
    for index, bucket in enumerate(buckets):
        is_last = index == len(buckets) - 1
        version = bucket[0].lock_version or click.style("lock version unknown", fg="yellow")
        lines.append((LAST_BRANCH if is_last else BRANCH) + version)
        prefix = INDENT if is_last else VERTICAL
        for item_index, record in enumerate(bucket):
            item_last = item_index == len(bucket) - 1
            lines.append(prefix + (LAST_BRANCH if item_last else BRANCH) + _record_line(record))
    return lines


def render_grouping(grouped: GroupedByVersion, highlight: bool = False) -> list[str]:
    lines: list[str] = []
    for name, buckets in grouped.items():
        if not buckets:
            continue
        if lines:
            lines.append("")
        lines.extend(render_buckets(name, buckets, highlight))
    return lines
