"""Shared fixtures: pnpm workspaces written to tmp_path."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


def write_manifest(path: Path, data: dict) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    manifest = path / "package.json"
    manifest.write_text(json.dumps(data, indent=2) + "\n")
    return manifest


def write_lockfile(path: Path, importers: dict[str, dict], packages: dict | None = None) -> Path:
    """Write a lockfile v6 ``pnpm-lock.yaml``.

    *importers* maps importer key -> {section: {name: version}}.
    """
    data = {
        "lockfileVersion": "6.0",
        "importers": {
            key: {
                section: {name: {"specifier": "*", "version": version} for name, version in deps.items()}
                for section, deps in sections.items()
            }
            for key, sections in importers.items()
        },
        "packages": packages or {},
    }
    lockfile = path / "pnpm-lock.yaml"
    lockfile.write_text(yaml.safe_dump(data, sort_keys=False))
    return lockfile


@pytest.fixture
def lodash_workspace(tmp_path):
    """Root + pkg-a both declaring lodash, resolved to one version (scenario A)."""

    def build(pkg_a_lock: str = "4.17.21") -> Path:
        write_manifest(
            tmp_path,
            {"name": "root", "version": "1.0.0", "dependencies": {"lodash": "^4.17.0"}},
        )
        write_manifest(
            tmp_path / "packages" / "pkg-a",
            {"name": "pkg-a", "version": "1.0.0", "dependencies": {"lodash": "^4.16.0"}},
        )
        write_lockfile(
            tmp_path,
            {
                ".": {"dependencies": {"lodash": "4.17.21"}},
                "packages/pkg-a": {"dependencies": {"lodash": pkg_a_lock}},
            },
        )
        return tmp_path

    return build


@pytest.fixture
def make_manifest():
    return write_manifest


@pytest.fixture
def make_lockfile():
    return write_lockfile
