"""Unit tests for conflict detection and replica merging.

Covers:
- no-conflict path returning the local snapshot untouched
- local / remote strategies returning one side verbatim
- link merge order, same-URL overwrite rules and dedup
- category union and the single ``Default`` invariant
- merge idempotence
- replica-granularity overwrite of concurrent same-link edits
"""

from __future__ import annotations

import unittest

from codex_sync.domain.models.replica import (
    LinkRecord,
    MergeStrategy,
    Replica,
    ReplicaMetadata,
    SyncMetadata,
)
from codex_sync.sync.merge import (
    ConflictResolver,
    merge_categories,
    merge_links,
    merge_replicas,
    normalize_replica,
)


def _link(url: str, name: str, category: str = "Default") -> LinkRecord:
    return LinkRecord(name=name, url=url, category=category)


def _meta(local: int, remote: int) -> ReplicaMetadata:
    return ReplicaMetadata(
        local=SyncMetadata(version=local, last_modified=local),
        remote=SyncMetadata(version=remote, last_modified=remote),
    )


class TestConflictResolver(unittest.TestCase):
    def setUp(self):
        self.resolver = ConflictResolver()
        self.local = Replica(
            links=[_link("https://a.com", "A")], categories=["Default", "Work"]
        )
        self.remote = Replica(
            links=[_link("https://b.com", "B")], categories=["Default", "Home"]
        )

    def test_equal_versions_return_local_snapshot(self):
        outcome = self.resolver.resolve(self.local, self.remote, _meta(5, 5), MergeStrategy.MERGE)

        assert outcome.conflict is False
        assert outcome.replica is self.local

    def test_equal_versions_ignore_strategy(self):
        outcome = self.resolver.resolve(self.local, self.remote, _meta(0, 0), MergeStrategy.REMOTE)

        assert outcome.replica is self.local

    def test_local_strategy_returns_local_verbatim(self):
        outcome = self.resolver.resolve(self.local, self.remote, _meta(1, 2), MergeStrategy.LOCAL)

        assert outcome.conflict is True
        assert outcome.replica is self.local

    def test_remote_strategy_returns_remote_verbatim(self):
        outcome = self.resolver.resolve(self.local, self.remote, _meta(1, 2), MergeStrategy.REMOTE)

        assert outcome.conflict is True
        assert outcome.replica is self.remote

    def test_merge_example(self):
        local = Replica(links=[_link("https://a.com", "A")])
        remote = Replica(links=[_link("https://b.com", "B")])

        outcome = self.resolver.resolve(local, remote, _meta(1, 2), MergeStrategy.MERGE)

        assert [link.url for link in outcome.replica.links] == ["https://a.com", "https://b.com"]
        assert outcome.replica.categories == ["Default"]
        assert outcome.strategy is MergeStrategy.MERGE

    def test_category_union_example(self):
        outcome = self.resolver.resolve(self.local, self.remote, _meta(1, 2))

        assert outcome.replica.categories == ["Default", "Work", "Home"]


class TestMergeLinks(unittest.TestCase):
    def test_remote_only_links_append_in_remote_order(self):
        merged = merge_links(
            [_link("https://a.com", "A")],
            [_link("https://c.com", "C"), _link("https://b.com", "B")],
            prefer_remote=False,
        )

        assert [link.name for link in merged] == ["A", "C", "B"]

    def test_newer_remote_overwrites_same_url_in_place(self):
        merged = merge_links(
            [_link("https://a.com", "A"), _link("https://x.com", "X")],
            [_link("https://x.com", "X remote")],
            prefer_remote=True,
        )

        assert [link.name for link in merged] == ["A", "X remote"]

    def test_older_remote_does_not_overwrite(self):
        merged = merge_links(
            [_link("https://x.com", "X local")],
            [_link("https://x.com", "X remote")],
            prefer_remote=False,
        )

        assert [link.name for link in merged] == ["X local"]

    def test_duplicate_urls_collapse_to_last_occurrence(self):
        merged = merge_links(
            [
                _link("https://a.com", "first"),
                _link("https://b.com", "B"),
                _link("https://a.com", "second"),
            ],
            [],
            prefer_remote=False,
        )

        assert [(link.url, link.name) for link in merged] == [
            ("https://a.com", "second"),
            ("https://b.com", "B"),
        ]


class TestMergeCategories(unittest.TestCase):
    def test_default_prepended_when_missing(self):
        assert merge_categories(["Work"], ["Home"]) == ["Default", "Work", "Home"]

    def test_default_kept_once_at_existing_position(self):
        merged = merge_categories(["Work", "Default"], ["Default", "Home", "Work"])

        assert merged == ["Work", "Default", "Home"]
        assert merged.count("Default") == 1

    def test_normalize_removes_duplicate_defaults(self):
        replica = normalize_replica(Replica(categories=["Default", "Work", "Default"]))

        assert replica.categories == ["Default", "Work"]


class TestMergeInvariants(unittest.TestCase):
    def setUp(self):
        self.a = Replica(
            links=[_link("https://a.com", "A"), _link("https://shared.com", "shared local")],
            categories=["Default", "Work"],
        )
        self.b = Replica(
            links=[_link("https://shared.com", "shared remote"), _link("https://b.com", "B")],
            categories=["Home"],
        )

    def _assert_invariants(self, replica: Replica) -> None:
        urls = [link.url for link in replica.links]
        assert len(urls) == len(set(urls))
        assert replica.categories.count("Default") == 1

    def test_merge_is_idempotent(self):
        for metadata in (_meta(1, 2), _meta(2, 1)):
            once = merge_replicas(self.a, self.b, metadata)
            twice = merge_replicas(once, self.b, metadata)

            assert twice == once
            self._assert_invariants(once)

    def test_merge_keeps_invariants_with_dirty_inputs(self):
        dirty = Replica(
            links=[_link("https://a.com", "A1"), _link("https://a.com", "A2")],
            categories=["Work", "Work"],
        )

        merged = merge_replicas(dirty, self.b, _meta(1, 2))

        self._assert_invariants(merged)
        assert merged.categories == ["Default", "Work", "Home"]


class TestReplicaGranularity(unittest.TestCase):
    def test_later_remote_stamp_overwrites_newer_local_edit_of_same_link(self):
        # Device 1 edits the link after device 2 did, but device 2's replica
        # was stamped later. Without per-link timestamps the remote copy wins.
        local = Replica(links=[_link("https://a.com", "renamed on this device, later")])
        remote = Replica(links=[_link("https://a.com", "renamed elsewhere, earlier")])
        metadata = ReplicaMetadata(
            local=SyncMetadata(version=100, last_modified=100),
            remote=SyncMetadata(version=200, last_modified=200),
        )

        merged = merge_replicas(local, remote, metadata)

        assert [link.name for link in merged.links] == ["renamed elsewhere, earlier"]

    def test_remote_edit_of_other_link_never_overwrites_local_link(self):
        local = Replica(links=[_link("https://a.com", "A local")])
        remote = Replica(links=[_link("https://b.com", "B remote")])

        merged = merge_replicas(local, remote, _meta(1, 2))

        assert [link.name for link in merged.links] == ["A local", "B remote"]


if __name__ == "__main__":
    unittest.main()
