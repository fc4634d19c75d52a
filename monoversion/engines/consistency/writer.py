"""Manifest writer — lock dependency versions in ``package.json`` files."""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass
from json.decoder import scanstring
from pathlib import Path

import structlog

from monoversion.exceptions import ManifestWriteError

log = structlog.get_logger("monoversion.engine")

_LOCKED_SECTIONS = ("dependencies", "devDependencies")
_PEER_SECTION = "peerDependencies"
_DECODER = json.JSONDecoder()
_WHITESPACE = re.compile(r"[ \t\n\r]*")


@dataclass(frozen=True)
class VersionUpdate:
    """Target version of one dependency inside one manifest."""

    name: str
    version: str
    peer_version: str | None = None


@dataclass(frozen=True)
class WriteResult:
    path: str
    changed: bool = False
    error: ManifestWriteError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _skip(text: str, pos: int) -> int:
    return _WHITESPACE.match(text, pos).end()


def _members(text: str, pos: int):
    """Yield ``(key, value, start, end)`` for the object opening at ``text[pos]``.

    *text* must already be known to be valid JSON.
    """
    pos = _skip(text, pos + 1)
    if text[pos] == "}":
        return
    while True:
        key, pos = scanstring(text, pos + 1)
        start = _skip(text, _skip(text, pos) + 1)
        value, end = _DECODER.raw_decode(text, start)
        yield key, value, start, end
        pos = _skip(text, end)
        if text[pos] == "}":
            return
        pos = _skip(text, pos + 1)


def _targets(updates: list[VersionUpdate]) -> dict[str, dict[str, str]]:
    targets: dict[str, dict[str, str]] = {section: {} for section in (*_LOCKED_SECTIONS, _PEER_SECTION)}
    for update in updates:
        for section in _LOCKED_SECTIONS:
            targets[section][update.name] = update.version
        if update.peer_version:
            targets[_PEER_SECTION][update.name] = update.peer_version
    return targets


def rewrite_manifest_text(text: str, updates: list[VersionUpdate]) -> str:
    """Apply *updates* to manifest *text*.

    Only the ``dependencies`` and ``devDependencies`` entries of each name
    change, plus the ``peerDependencies`` entry when a peer version is given
    and the package already declares the peer. Each change replaces the
    value in place, so every other byte of *text* is kept. Returns *text*
    unchanged when nothing differs.
    """
    if not isinstance(json.loads(text), dict):
        return text
    targets = _targets(updates)

    edits: list[tuple[int, int, str]] = []
    for section, value, start, _ in _members(text, _skip(text, 0)):
        wanted = targets.get(section)
        if not wanted or not isinstance(value, dict):
            continue
        for name, current, value_start, value_end in _members(text, start):
            if name in wanted and current != wanted[name]:
                edits.append((value_start, value_end, json.dumps(wanted[name])))
    if not edits:
        return text

    for start, end, replacement in reversed(edits):
        text = text[:start] + replacement + text[end:]
    return text


def _rewrite_file(path: Path, updates: list[VersionUpdate]) -> bool:
    # bytes in and out so CRLF manifests keep their line endings
    text = path.read_bytes().decode("utf-8")
    new_text = rewrite_manifest_text(text, updates)
    if new_text == text:
        return False
    path.write_bytes(new_text.encode("utf-8"))
    return True


async def lock_manifest(path: str | Path, updates: list[VersionUpdate]) -> bool:
    """Rewrite one manifest; returns whether the file changed."""
    return await asyncio.to_thread(_rewrite_file, Path(path), updates)


async def _write_one(path: str, updates: list[VersionUpdate]) -> WriteResult:
    try:
        changed = await lock_manifest(path, updates)
    except (OSError, ValueError) as e:
        log.error("writer.failed", path=path, error=str(e))
        return WriteResult(path=path, error=ManifestWriteError(path, str(e)))
    log.debug("writer.done", path=path, changed=changed, dependencies=[u.name for u in updates])
    return WriteResult(path=path, changed=changed)


async def write_manifests(plan: dict[str, list[VersionUpdate]]) -> list[WriteResult]:
    """Rewrite every manifest of *plan* in one batch.

    Each write is independent: one failing manifest does not stop the
    others and already written files are not rolled back.
    """
    return list(
        await asyncio.gather(*(_write_one(path, updates) for path, updates in plan.items() if updates))
    )
