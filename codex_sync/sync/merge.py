"""Conflict detection and replica reconciliation.

Everything here is pure: snapshots in, snapshot out, no storage access.

Same-URL conflicts are decided at replica granularity: a remote link
replaces the local link with the same URL only when the remote replica as a
whole was modified later. There are no per-link timestamps, so concurrent
edits to the same link on two devices keep whichever replica was stamped
last, even if the other side's edit to that link was newer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from codex_sync.domain.models.replica import (
    DEFAULT_CATEGORY,
    LinkRecord,
    MergeStrategy,
    Replica,
    ReplicaMetadata,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolveOutcome:
    replica: Replica
    conflict: bool
    strategy: MergeStrategy


def merge_links(
    local_links: list[LinkRecord],
    remote_links: list[LinkRecord],
    *,
    prefer_remote: bool,
) -> list[LinkRecord]:
    """Union two link lists keyed by URL, local order first.

    A URL repeated within one list collapses to a single entry at its first
    position holding the last occurrence.
    """
    by_url: dict[str | None, LinkRecord] = {}
    for link in local_links:
        by_url[link.url] = link

    for link in remote_links:
        if link.url not in by_url or prefer_remote:
            # Re-assignment keeps the key's original position in the dict.
            by_url[link.url] = link
    return list(by_url.values())


def merge_categories(local: list[str], remote: list[str]) -> list[str]:
    """Ordered union of category names; ``Default`` is always present once."""
    merged = list(dict.fromkeys([*local, *remote]))
    if DEFAULT_CATEGORY not in merged:
        merged.insert(0, DEFAULT_CATEGORY)
    return merged


def normalize_replica(replica: Replica) -> Replica:
    """Collapse duplicate URLs and category names and make sure ``Default`` exists."""
    return Replica(
        links=merge_links(replica.links, [], prefer_remote=False),
        categories=merge_categories(replica.categories, []),
    )


def merge_replicas(local: Replica, remote: Replica, metadata: ReplicaMetadata) -> Replica:
    prefer_remote = metadata.remote.last_modified > metadata.local.last_modified
    return Replica(
        links=merge_links(local.links, remote.links, prefer_remote=prefer_remote),
        categories=merge_categories(local.categories, remote.categories),
    )


class ConflictResolver:
    """Stateless policy object choosing the resolved snapshot for a cycle."""

    def resolve(
        self,
        local: Replica,
        remote: Replica,
        metadata: ReplicaMetadata,
        strategy: MergeStrategy = MergeStrategy.MERGE,
        *,
        correlation_id: str | None = None,
    ) -> ResolveOutcome:
        if not metadata.in_conflict:
            logger.debug(
                "sync_no_conflict",
                extra={
                    "correlation_id": correlation_id,
                    "local_version": metadata.local.version,
                },
            )
            return ResolveOutcome(replica=local, conflict=False, strategy=strategy)

        logger.info(
            "sync_conflict_detected",
            extra={
                "correlation_id": correlation_id,
                "strategy": strategy.value,
                "local_version": metadata.local.version,
                "remote_version": metadata.remote.version,
            },
        )
        if strategy is MergeStrategy.LOCAL:
            resolved = local
        elif strategy is MergeStrategy.REMOTE:
            resolved = remote
        else:
            resolved = merge_replicas(local, remote, metadata)
        return ResolveOutcome(replica=resolved, conflict=True, strategy=strategy)
