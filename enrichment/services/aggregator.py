"""Group per-image analyses into per-post records."""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional

from enrichment.schemas import AnalysisItem, AnalysisResult, PostAggregate


class PostAggregator:
    """Collect ``(item, result)`` pairs in arrival order, keyed by post.

    A post whose first image lacks a ``username`` in its metadata is dropped
    together with every later image of that post.
    """

    def __init__(self, *, logger: Optional[logging.Logger] = None) -> None:
        self._log = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._posts: Dict[str, Dict[str, Any]] = {}
        self._dropped: set[str] = set()

    @property
    def dropped_posts(self) -> set[str]:
        with self._lock:
            return set(self._dropped)

    def __len__(self) -> int:
        with self._lock:
            return len(self._posts)

    def add(self, item: AnalysisItem, result: AnalysisResult) -> bool:
        """Append ``result`` to the post of ``item``; False when dropped."""
        with self._lock:
            if item.post_id in self._dropped:
                self._log.warning(
                    "Skipping image %s of dropped post %s", item.image_path, item.post_id
                )
                return False

            post = self._posts.get(item.post_id)
            if post is None:
                username = item.username
                if not username:
                    self._dropped.add(item.post_id)
                    self._log.error(
                        "Skipping post %s: missing required metadata (username)",
                        item.post_id,
                    )
                    return False
                post = {
                    "post_id": item.post_id,
                    "username": username,
                    "metadata": dict(item.metadata),
                    "image_paths": [],
                    "analyses": [],
                }
                self._posts[item.post_id] = post

            post["image_paths"].append(item.image_path)
            post["analyses"].append(result)
            return True

    def posts(self) -> List[PostAggregate]:
        """Aggregates in first-seen post order."""
        with self._lock:
            snapshot = [
                {
                    **post,
                    "image_paths": list(post["image_paths"]),
                    "analyses": list(post["analyses"]),
                }
                for post in self._posts.values()
            ]
        return [PostAggregate(**post) for post in snapshot]


__all__ = ["PostAggregator"]
