"""
Collaborative Filter
====================

Tính item-level scores cho một target user từ profiles của tất cả users.

Logic:
1. User-based: neighbors có similarity > threshold đóng góp
   sim * rating cho các activities target chưa rate
2. Item-based: với mỗi activity target đã rate, các activities khác
   (target chưa rate) có rating vector tương tự được cộng
   sim * rating của target cho activity gốc

Hai kết quả được giữ riêng đến bước aggregation.
Tất cả là pure functions trên immutable snapshots.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Mapping

from ekskul_recommender.recommender.models import (
    RatingIndex,
    RatingRecord,
    ScoringConfig,
    UserProfile,
)
from ekskul_recommender.recommender.profile_builder import rated_activities
from ekskul_recommender.recommender.similarity import passes_threshold, similarity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollaborativeScores:
    """
    Scores từ collaborative filtering, tách theo nguồn.

    Attributes:
        user_based: activity_id -> score từ user-based CF
        item_based: activity_id -> score từ item-based CF
    """
    user_based: Dict[str, float] = field(default_factory=dict)
    item_based: Dict[str, float] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.user_based and not self.item_based

    def combined(self, user_weight: float = 0.5, item_weight: float = 0.5) -> Dict[str, float]:
        """Merge hai nguồn: ub * user_weight + ib * item_weight."""
        activity_ids = list(self.user_based)
        activity_ids += [a for a in self.item_based if a not in self.user_based]
        return {
            a: self.user_based.get(a, 0.0) * user_weight + self.item_based.get(a, 0.0) * item_weight
            for a in activity_ids
        }


def build_rating_index(ratings: Iterable[RatingRecord]) -> RatingIndex:
    """
    Build index activity_id -> {user_id: rating}.

    Args:
        ratings: Rating records (mỗi cặp user/activity tối đa một record)

    Returns:
        Read-only index, sắp xếp theo activity_id rồi user_id
    """
    index: Dict[str, Dict[str, float]] = defaultdict(dict)
    for r in ratings:
        index[r.activity_id][r.user_id] = float(r.rating)

    return MappingProxyType({
        activity_id: MappingProxyType({u: index[activity_id][u] for u in sorted(index[activity_id])})
        for activity_id in sorted(index)
    })


def user_based_scores(
    target: UserProfile,
    profiles: Mapping[str, UserProfile],
    config: ScoringConfig
) -> Dict[str, float]:
    """
    User-based CF.

    Args:
        target: Profile của target user
        profiles: Profiles của tất cả users
        config: Scoring config (metric + threshold)

    Returns:
        activity_id -> sum(sim * neighbor_rating)
    """
    if target.is_empty():
        return {}

    my_ratings = rated_activities(target)
    scores: Dict[str, float] = {}

    for other_id, other in profiles.items():
        if other_id == target.user_id or other.is_empty():
            continue

        sim = similarity(target.features, other.features, config.similarity_metric)
        if not passes_threshold(sim, config.similarity_threshold):
            continue

        for activity_id, rating in rated_activities(other).items():
            if activity_id in my_ratings:
                continue
            scores[activity_id] = scores.get(activity_id, 0.0) + sim * rating

    return scores


def item_based_scores(
    target: UserProfile,
    rating_index: RatingIndex,
    config: ScoringConfig
) -> Dict[str, float]:
    """
    Item-based CF.

    Args:
        target: Profile của target user
        rating_index: activity_id -> {user_id: rating}
        config: Scoring config (metric + threshold)

    Returns:
        activity_id -> sum(sim * target_rating(base_activity))
    """
    my_ratings = rated_activities(target)
    if not my_ratings:
        return {}

    scores: Dict[str, float] = {}

    for base_id, my_rating in my_ratings.items():
        base_vector = rating_index.get(base_id)
        if not base_vector:
            continue

        for other_id, other_vector in rating_index.items():
            if other_id == base_id or other_id in my_ratings:
                continue

            sim = similarity(base_vector, other_vector, config.similarity_metric)
            if not passes_threshold(sim, config.similarity_threshold):
                continue

            scores[other_id] = scores.get(other_id, 0.0) + sim * my_rating

    return scores


def collaborative_scores(
    target_user_id: str,
    profiles: Mapping[str, UserProfile],
    rating_index: RatingIndex,
    config: ScoringConfig
) -> CollaborativeScores:
    """
    Chạy cả user-based và item-based CF cho một user.

    Args:
        target_user_id: User ID
        profiles: Profiles của tất cả users
        rating_index: activity_id -> {user_id: rating}
        config: Scoring config

    Returns:
        CollaborativeScores (rỗng nếu user không có signal)
    """
    target = profiles.get(target_user_id)
    if target is None or target.is_empty():
        logger.debug(f"No profile for user {target_user_id}, skipping CF")
        return CollaborativeScores()

    result = CollaborativeScores(
        user_based=user_based_scores(target, profiles, config),
        item_based=item_based_scores(target, rating_index, config),
    )
    logger.debug(
        f"CF for user {target_user_id}: "
        f"user_based={len(result.user_based)}, item_based={len(result.item_based)}"
    )
    return result
