"""Tests for the manifest writer."""

from __future__ import annotations

import json

import pytest

from monoversion.engines.consistency.writer import (
    VersionUpdate,
    lock_manifest,
    rewrite_manifest_text,
    write_manifests,
)

MANIFEST = """{
  "name": "pkg-a",
  "version": "1.0.0",
  "description": "caf\\u00e9 uses react",
  "files": ["dist", "lib"],
  "dependencies": {
    "react": "^17.0.0",
    "lodash": "^4.16.0"
  },
  "devDependencies": {
    "react": "^17.0.0"
  },
  "peerDependencies": {
    "react": "^17.0.0"
  },
  "keywords": ["react"]
}
"""


# ── rewrite_manifest_text ────────────────────────────────────────────────


class TestRewriteManifestText:
    def test_dependencies_and_dev_dependencies(self):
        text = rewrite_manifest_text(MANIFEST, [VersionUpdate("react", "18.2.0")])
        data = json.loads(text)
        assert data["dependencies"]["react"] == "18.2.0"
        assert data["devDependencies"]["react"] == "18.2.0"
        # no peer version given: peerDependencies untouched
        assert data["peerDependencies"]["react"] == "^17.0.0"
        assert data["keywords"] == ["react"]
        assert data["dependencies"]["lodash"] == "^4.16.0"

    def test_untouched_lines_kept(self):
        text = rewrite_manifest_text(MANIFEST, [VersionUpdate("react", "18.2.0")])
        before, after = MANIFEST.splitlines(), text.splitlines()
        assert len(before) == len(after)
        assert [(a, b) for a, b in zip(before, after) if a != b] == [
            ('    "react": "^17.0.0",', '    "react": "18.2.0",'),
            ('    "react": "^17.0.0"', '    "react": "18.2.0"'),
        ]

    def test_compact_manifest(self):
        manifest = '{"dependencies":{"react":"^17.0.0"},"files":["a"]}'
        text = rewrite_manifest_text(manifest, [VersionUpdate("react", "18.2.0")])
        assert text == '{"dependencies":{"react":"18.2.0"},"files":["a"]}'

    def test_peer_version(self):
        text = rewrite_manifest_text(MANIFEST, [VersionUpdate("react", "18.2.0", "^18.0.0")])
        assert json.loads(text)["peerDependencies"]["react"] == "^18.0.0"

    def test_peer_not_added_when_absent(self):
        manifest = '{\n  "dependencies": {\n    "react": "^17.0.0"\n  }\n}\n'
        text = rewrite_manifest_text(manifest, [VersionUpdate("react", "18.2.0", "18.2.0")])
        assert "peerDependencies" not in json.loads(text)

    def test_key_order_and_indent_kept(self):
        text = rewrite_manifest_text(MANIFEST, [VersionUpdate("lodash", "4.17.21")])
        assert list(json.loads(text)) == list(json.loads(MANIFEST))
        assert text.startswith('{\n  "name": "pkg-a",\n')
        assert text.endswith("}\n")

    def test_tab_indent(self):
        manifest = '{\n\t"dependencies": {\n\t\t"react": "^17.0.0"\n\t}\n}'
        text = rewrite_manifest_text(manifest, [VersionUpdate("react", "18.2.0")])
        assert text == '{\n\t"dependencies": {\n\t\t"react": "18.2.0"\n\t}\n}'

    def test_crlf_kept(self):
        manifest = MANIFEST.replace("\n", "\r\n")
        text = rewrite_manifest_text(manifest, [VersionUpdate("lodash", "4.17.21")])
        assert "\r\n" in text
        assert "\n" not in text.replace("\r\n", "")

    def test_no_match_returns_same_text(self):
        assert rewrite_manifest_text(MANIFEST, [VersionUpdate("vue", "3.0.0")]) is MANIFEST

    def test_idempotent(self):
        updates = [VersionUpdate("react", "18.2.0", "18.2.0")]
        once = rewrite_manifest_text(MANIFEST, updates)
        assert rewrite_manifest_text(once, updates) == once


# ── file writes ──────────────────────────────────────────────────────────


class TestLockManifest:
    @pytest.mark.anyio
    async def test_writes_and_second_run_is_noop(self, tmp_path):
        path = tmp_path / "package.json"
        path.write_text(MANIFEST)
        updates = [VersionUpdate("react", "18.2.0")]

        assert await lock_manifest(path, updates) is True
        first = path.read_bytes()
        assert await lock_manifest(path, updates) is False
        assert path.read_bytes() == first

    @pytest.mark.anyio
    async def test_untouched_when_no_occurrence(self, tmp_path):
        path = tmp_path / "package.json"
        path.write_text(MANIFEST)
        assert await lock_manifest(path, [VersionUpdate("vue", "3.0.0")]) is False
        assert path.read_text() == MANIFEST


class TestWriteManifests:
    @pytest.mark.anyio
    async def test_failure_does_not_stop_siblings(self, tmp_path):
        good = tmp_path / "a" / "package.json"
        good.parent.mkdir()
        good.write_text(MANIFEST)
        missing = tmp_path / "missing" / "package.json"
        broken = tmp_path / "b" / "package.json"
        broken.parent.mkdir()
        broken.write_text("{ broken")

        results = await write_manifests(
            {
                str(missing): [VersionUpdate("react", "18.2.0")],
                str(good): [VersionUpdate("react", "18.2.0")],
                str(broken): [VersionUpdate("react", "18.2.0")],
            }
        )

        by_path = {r.path: r for r in results}
        assert by_path[str(good)].ok and by_path[str(good)].changed
        assert not by_path[str(missing)].ok
        assert by_path[str(missing)].error.path == str(missing)
        assert not by_path[str(broken)].ok
        assert json.loads(good.read_text())["dependencies"]["react"] == "18.2.0"

    @pytest.mark.anyio
    async def test_empty_plan(self):
        assert await write_manifests({}) == []
