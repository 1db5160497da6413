"""
Score Aggregator
================

Kết hợp CF scores với direct signals thành một ranked list cho mỗi user.

Công thức (cho mọi activity trong catalog):
    total = cf_score * W_cf + direct_rating * W_self + category_boost * W_cat

- category_boost = tổng category_interest trên các tags của activity
- Activities có total <= 0 bị loại
- Sort giảm dần theo total, tie giữ thứ tự catalog
"""

import logging
from typing import List, Mapping, Optional, Sequence, Tuple

from ekskul_recommender.recommender.collaborative_filter import CollaborativeScores
from ekskul_recommender.recommender.models import (
    ActivityRecord,
    RankedActivity,
    RankedList,
    ScoringConfig,
)

logger = logging.getLogger(__name__)

_UNSET = object()


def category_boost(activity: ActivityRecord, interest: Mapping[str, float]) -> float:
    """Tổng interest của user trên các tags của activity."""
    return sum(interest.get(tag, 0.0) for tag in activity.categories)


def matching_categories(activity: ActivityRecord, interest: Mapping[str, float]) -> Tuple[str, ...]:
    """Tags của activity mà user có interest dương."""
    return tuple(tag for tag in activity.categories if interest.get(tag, 0.0) > 0)


def aggregate(
    user_id: str,
    cf_scores: CollaborativeScores,
    direct_ratings: Mapping[str, float],
    category_interest: Mapping[str, float],
    activities: Sequence[ActivityRecord],
    config: ScoringConfig,
    top_n: Optional[int] = _UNSET  # type: ignore[assignment]
) -> RankedList:
    """
    Tính total score và rank activities cho một user.

    Args:
        user_id: User ID (chỉ dùng cho logging)
        cf_scores: Scores từ collaborative filter
        direct_ratings: activity_id -> rating của chính user
        category_interest: category -> interest từ questionnaire
        activities: Catalog theo thứ tự gốc
        config: Scoring config (weights)
        top_n: Giới hạn output. Mặc định dùng config.top_n, None = trả về tất cả

    Returns:
        List of RankedActivity, rank 1-based
    """
    limit: Optional[int] = config.top_n if top_n is _UNSET else top_n

    cf = cf_scores.combined(config.weight_user_based, config.weight_item_based)

    scored = []
    for activity in activities:
        cf_score = cf.get(activity.id, 0.0)
        direct = float(direct_ratings.get(activity.id, 0.0))
        boost = category_boost(activity, category_interest)

        total = (
            cf_score * config.weight_cf
            + direct * config.weight_self
            + boost * config.weight_category
        )
        if total <= 0:
            continue

        scored.append((activity, total, cf_score, direct, boost))

    # sorted() stable -> tie giữ thứ tự catalog
    scored = sorted(scored, key=lambda entry: entry[1], reverse=True)
    if limit is not None:
        scored = scored[:limit]

    ranked: List[RankedActivity] = [
        RankedActivity(
            activity=activity,
            rank=position,
            total_score=total,
            cf_score=cf_score,
            direct_rating=direct,
            category_boost=boost,
            matching_categories=matching_categories(activity, category_interest),
        )
        for position, (activity, total, cf_score, direct, boost) in enumerate(scored, start=1)
    ]

    logger.debug(f"Aggregated {len(ranked)} activities for user {user_id}")
    return ranked
