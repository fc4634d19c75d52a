"""Tests for version grouping and divergence classification."""

from __future__ import annotations

from monoversion.core.config import DependencyPolicy
from monoversion.engines.consistency.grouping import (
    UNKNOWN_VERSION,
    bucket_key,
    classify_divergence,
    group_by_version,
    group_dependency,
    group_records,
)
from monoversion.engines.consistency.models import (
    DependencyKind,
    DependencyRecord,
    ManualLock,
    PackageInfo,
)
from monoversion.engines.consistency.policy import apply_manual_locks


def _info(name: str) -> PackageInfo:
    rel = "." if name == "root" else f"packages/{name}"
    return PackageInfo(path=f"/ws/{rel}/package.json", name=name, relative_name=rel, is_root=rel == ".")


def _record(package: str, name: str, version: str, lock: str | None = None, **kw) -> DependencyRecord:
    return DependencyRecord(
        name=name,
        version=version,
        kind=DependencyKind.NORMAL,
        package=_info(package),
        lock_version=lock,
        **kw,
    )


# ── grouping ─────────────────────────────────────────────────────────────


class TestGroupRecords:
    def test_same_lock_version_one_bucket(self):
        records = [
            _record("root", "lodash", "^4.17.0", "4.17.21"),
            _record("pkg-a", "lodash", "^4.16.0", "4.17.21"),
        ]
        grouped = group_records(records)
        assert [len(b) for b in grouped["lodash"]] == [2]

    def test_peer_suffix_ignored_for_bucketing(self):
        records = [
            _record("root", "react-dom", "^18.0.0", "18.2.0_react@18.2.0"),
            _record("pkg-a", "react-dom", "^18.0.0", "18.2.0(react@18.2.0)"),
        ]
        assert len(group_records(records)["react-dom"]) == 1

    def test_first_encountered_order(self):
        records = [
            _record("root", "lodash", "^4.17.0", "4.17.21"),
            _record("pkg-a", "lodash", "^4.16.0", "4.16.6"),
            _record("pkg-b", "lodash", "^4.17.0", "4.17.21"),
        ]
        buckets = group_records(records)["lodash"]
        assert [b[0].lock_version for b in buckets] == ["4.17.21", "4.16.6"]
        assert [r.package.name for r in buckets[0]] == ["root", "pkg-b"]

    def test_unresolved_share_unknown_bucket(self):
        records = [
            _record("root", "lodash", "^4.17.0"),
            _record("pkg-a", "lodash", "^4.16.0"),
            _record("pkg-b", "lodash", "^4.16.0", "4.16.6"),
        ]
        buckets = group_records(records)["lodash"]
        assert len(buckets) == 2
        assert bucket_key(buckets[0][0]) is UNKNOWN_VERSION
        assert len(buckets[0]) == 2

    def test_unknown_never_equals_a_version_string(self):
        assert UNKNOWN_VERSION != "unknown"

    def test_workspace_links_skipped(self):
        records = [_record("root", "pkg-a", "workspace:*", "link:packages/pkg-a")]
        assert group_records(records) == {}

    def test_union_of_buckets_equals_input(self):
        records = [
            _record("root", "lodash", "^4.17.0", "4.17.21"),
            _record("pkg-a", "lodash", "^4.16.0", "4.16.6"),
            _record("pkg-b", "lodash", "^4.16.0"),
            _record("pkg-c", "react", "^18.0.0", "18.2.0"),
        ]
        grouped = group_records(records)
        for name in ("lodash", "react"):
            flattened = [r for bucket in grouped[name] for r in bucket]
            expected = [r for r in records if r.name == name]
            assert sorted(flattened, key=id) == sorted(expected, key=id)
            assert len(flattened) == len(expected)


class TestGroupByVersion:
    def test_exclude_only_affects_filtered(self):
        """Excluded dependencies stay in the unfiltered grouping."""
        records = [
            _record("root", "lodash", "^4.17.0", "4.17.21"),
            _record("pkg-a", "lodash", "^4.16.0", "4.16.6"),
            _record("pkg-a", "react", "^18.0.0", "18.2.0"),
        ]
        policy = DependencyPolicy.model_validate({"exclude": {"common": ["lodash"]}})
        grouping = group_by_version(records, policy)
        assert len(grouping.all["lodash"]) == 2
        assert "lodash" not in grouping.filtered
        assert "react" in grouping.filtered
        assert classify_divergence(grouping.filtered).divergent == {}

    def test_group_dependency(self):
        records = [
            _record("root", "react", "^18.0.0", "18.2.0"),
            _record("pkg-a", "react", "^17.0.0", "17.0.2"),
            _record("pkg-a", "lodash", "^4.16.0", "4.16.6"),
        ]
        buckets = group_dependency("react", records, DependencyPolicy())
        assert [b[0].lock_version for b in buckets] == ["18.2.0", "17.0.2"]


# ── divergence ───────────────────────────────────────────────────────────


class TestClassifyDivergence:
    def test_single_version_not_divergent(self):
        grouped = group_records(
            [
                _record("root", "lodash", "^4.17.0", "4.17.21"),
                _record("pkg-a", "lodash", "^4.16.0", "4.17.21"),
            ]
        )
        result = classify_divergence(grouped)
        assert result.divergent == {}
        assert result.auto_fixable == {}

    def test_two_versions_divergent(self):
        grouped = group_records(
            [
                _record("root", "lodash", "^4.17.0", "4.17.21"),
                _record("pkg-a", "lodash", "^4.16.0", "4.16.6"),
            ]
        )
        result = classify_divergence(grouped)
        assert list(result.divergent) == ["lodash"]
        assert len(result.divergent["lodash"]) == 2
        assert result.auto_fixable == {}

    def test_manual_lock_disagreement_is_divergent(self):
        records = [
            _record("root", "lodash", "^4.17.0", "4.17.21"),
            _record("pkg-a", "lodash", "^4.16.0", "4.17.21"),
        ]
        policy = DependencyPolicy.model_validate({"lock": {"package": {"pkg-a": {"lodash": "4.17.21"}}}})
        grouped = group_records(apply_manual_locks(records, policy))

        result = classify_divergence(grouped)

        assert len(result.divergent["lodash"]) == 1
        (fixable,) = result.auto_fixable["lodash"]
        assert fixable.package.name == "pkg-a"
        assert fixable.manual_lock.version == "4.17.21"
        assert "lodash" in result.manual_diff

    def test_agreeing_manual_lock_dropped(self):
        agreeing = _record(
            "root", "lodash", "4.17.21", "4.17.21",
            manual_lock=ManualLock(version="4.17.21", peer_version="4.17.21"),
        )
        other = _record("pkg-a", "lodash", "^4.16.0", "4.16.6")
        result = classify_divergence(group_records([agreeing, other]))
        # only the 4.16.6 bucket remains and no manual lock disagrees
        assert result.divergent == {}

    def test_agreeing_manual_locks_everywhere(self):
        lock = ManualLock(version="^4.17.0", peer_version="^4.17.0")
        grouped = group_records(
            [
                _record("root", "lodash", "^4.17.0", "4.17.21", manual_lock=lock),
                _record("pkg-a", "lodash", "^4.17.0", "4.17.20", manual_lock=lock),
            ]
        )
        assert classify_divergence(grouped).divergent == {}

    def test_peer_manual_diff_auto_fixable(self):
        lock = ManualLock(version="18.2.0", peer_version="^18.0.0", diff_from_peer_declared=True)
        grouped = group_records(
            [_record("pkg-a", "react", "18.2.0", "18.2.0", peer_version="^17.0.0", manual_lock=lock)]
        )
        result = classify_divergence(grouped)
        assert "react" in result.divergent
        assert result.auto_fixable["react"][0].manual_lock.peer_version == "^18.0.0"

    def test_unresolved_is_not_a_version(self):
        grouped = group_records(
            [
                _record("root", "lodash", "^4.17.0", "4.17.21"),
                _record("pkg-a", "lodash", "^4.16.0"),
            ]
        )
        result = classify_divergence(grouped)
        assert result.divergent == {}
        ((unknown,),) = result.unresolved["lodash"]
        assert unknown.package.name == "pkg-a"

    def test_unresolved_reported_beside_divergence(self):
        grouped = group_records(
            [
                _record("root", "lodash", "^4.17.0", "4.17.21"),
                _record("pkg-a", "lodash", "^4.16.0", "4.16.6"),
                _record("pkg-b", "lodash", "^4.16.0"),
            ]
        )
        result = classify_divergence(grouped)
        assert [b[0].lock_version for b in result.divergent["lodash"]] == ["4.17.21", "4.16.6"]
        assert [r.package.name for r in result.unresolved["lodash"][0]] == ["pkg-b"]
