"""Similarity clustering of embedded chunks and diverse cluster selection.

Clustering is greedy and seed-based: each unvisited chunk (in chunk-index
order) starts a cluster and absorbs every other unvisited chunk whose
cosine similarity with the *seed* exceeds the threshold.  The pairwise
similarity matrix makes a run O(n^2) in time and memory, which is fine
for the 100-200 chunks a document is capped at but is the ceiling for
anything larger.

When every chunk ends up alone (all pairwise similarities at or below the
threshold), the run degrades to sequential grouping by chunk index so the
labeling step still receives a handful of multi-chunk groups.
"""

from __future__ import annotations

import math

import structlog

from src.models.document import Chunk
from src.models.subject import Cluster
from src.utils.similarity import similarity_matrix

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.60
DEFAULT_TARGET_GROUPS = 8
DEFAULT_MAX_SELECTED = 10
# Clusters always kept by :meth:`ClusterEngine.select_diverse` before striding.
_TOP_KEPT = 3
_MIN_FALLBACK_GROUP = 5
# Float noise tolerance so identical vectors clear a threshold of 1.0.
_EPSILON = 1e-9


class ClusterEngine:
    """Groups chunks by embedding similarity.

    Parameters
    ----------
    similarity_threshold:
        Minimum cosine similarity with a cluster's seed for membership.
    target_groups:
        Divisor for the fallback group size ``max(5, ceil(n / target_groups))``.
    """

    def __init__(
        self,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        target_groups: int = DEFAULT_TARGET_GROUPS,
    ) -> None:
        if not -1.0 <= similarity_threshold <= 1.0:
            raise ValueError(
                f"similarity_threshold must be within [-1, 1], got {similarity_threshold}"
            )
        if target_groups <= 0:
            raise ValueError(f"target_groups must be positive, got {target_groups}")
        self._threshold = similarity_threshold
        self._target_groups = target_groups

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def cluster(self, chunks: list[Chunk]) -> list[Cluster]:
        """Cluster *chunks* and return clusters sorted by importance.

        Chunks without an embedding are left out of the run.  If the
        natural clustering yields one cluster per chunk (and there is more
        than one chunk), sequential fallback groups are returned instead.

        Raises
        ------
        DimensionMismatchError
            If the embeddings do not all share one dimension.
        """
        embedded = [c for c in chunks if c.embedding]
        skipped = len(chunks) - len(embedded)
        if skipped:
            logger.warning("cluster_chunks_without_embedding", skipped=skipped)
        if not embedded:
            return []

        natural = self.cluster_by_similarity(embedded)
        if len(embedded) > 1 and len(natural) == len(embedded):
            groups = self.group_sequential(embedded)
            logger.info(
                "cluster_fallback_grouping",
                chunks=len(embedded),
                groups=len(groups),
            )
            return groups

        logger.info(
            "clustering_complete",
            chunks=len(embedded),
            clusters=len(natural),
            largest=natural[0].importance,
        )
        return natural

    def cluster_by_similarity(self, chunks: list[Chunk]) -> list[Cluster]:
        """Run the greedy seed-based pass without the degenerate fallback."""
        ordered = sorted(chunks, key=lambda c: c.chunk_index)
        vectors = [c.embedding or [] for c in ordered]
        sims = similarity_matrix(vectors)

        visited = [False] * len(ordered)
        clusters: list[Cluster] = []
        for i, seed in enumerate(ordered):
            if visited[i]:
                continue
            visited[i] = True
            members = [seed]
            for j in range(len(ordered)):
                if visited[j]:
                    continue
                if sims[i, j] > self._threshold or sims[i, j] >= 1.0 - _EPSILON:
                    visited[j] = True
                    members.append(ordered[j])
            clusters.append(
                Cluster(centroid=list(vectors[i]), members=members, importance=len(members))
            )

        # sorted() is stable: equal-sized clusters keep seed order.
        return sorted(clusters, key=lambda c: c.importance, reverse=True)

    def group_sequential(self, chunks: list[Chunk]) -> list[Cluster]:
        """Group chunks by index into windows of ``max(5, ceil(n / target))``.

        With more than one chunk this always yields fewer groups than
        chunks.
        """
        ordered = sorted(chunks, key=lambda c: c.chunk_index)
        size = max(_MIN_FALLBACK_GROUP, math.ceil(len(ordered) / self._target_groups))
        groups = [
            Cluster(
                centroid=list(window[0].embedding or []),
                members=window,
                importance=len(window),
                is_fallback=True,
            )
            for window in (ordered[i : i + size] for i in range(0, len(ordered), size))
        ]
        return sorted(groups, key=lambda c: c.importance, reverse=True)

    @staticmethod
    def select_diverse(clusters: list[Cluster], cap: int = DEFAULT_MAX_SELECTED) -> list[Cluster]:
        """Pick at most *cap* clusters spread across the document.

        The three most important clusters are always kept.  The rest are
        ordered by the mean chunk index of their members and sampled at a
        fixed stride, so later sections of a long document are represented
        too.  The result is returned in importance order.
        """
        if cap <= 0:
            return []
        if len(clusters) <= cap:
            return list(clusters)

        kept = min(_TOP_KEPT, cap)
        top = clusters[:kept]
        rest = sorted(clusters[kept:], key=lambda c: c.mean_chunk_index)
        slots = cap - kept
        selected = list(top)
        if slots > 0:
            step = max(1, len(rest) // slots)
            selected.extend(rest[::step][:slots])

        rank = {id(c): i for i, c in enumerate(clusters)}
        return sorted(selected, key=lambda c: rank[id(c)])
