"""
Profile Builder
===============

Chuyển raw rating/response records thành sparse profile cho từng user.

- Rating -> FeatureKey(RATING, activity_id)
- Response -> FeatureKey(CATEGORY, category của question), cộng dồn
  khi nhiều questions cùng category
"""

import logging
from collections import defaultdict
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Tuple

from ekskul_recommender.recommender.models import (
    FeatureKey,
    FeatureKind,
    ProfileMap,
    QuestionRecord,
    RatingRecord,
    ResponseRecord,
    UserProfile,
)

logger = logging.getLogger(__name__)


def question_category_map(questions: Iterable[QuestionRecord]) -> Dict[str, str]:
    """Map question_id -> category."""
    return {q.id: q.category for q in questions}


def build_profiles(
    ratings: Iterable[RatingRecord],
    responses: Iterable[ResponseRecord],
    question_categories: Mapping[str, str]
) -> ProfileMap:
    """
    Build profiles cho tất cả users có rating hoặc response.

    Args:
        ratings: Rating records
        responses: Response records
        question_categories: Mapping question_id -> category

    Returns:
        Dict user_id -> UserProfile, sắp xếp theo user_id
    """
    accumulated: Dict[str, Dict[FeatureKey, float]] = defaultdict(lambda: defaultdict(float))

    for r in ratings:
        feature = FeatureKey(FeatureKind.RATING, r.activity_id)
        accumulated[r.user_id][feature] += float(r.rating)

    skipped = 0
    for resp in responses:
        category = question_categories.get(resp.question_id)
        if category is None:
            skipped += 1
            logger.debug(
                f"Skipping response of user {resp.user_id}: "
                f"unknown question {resp.question_id}"
            )
            continue
        feature = FeatureKey(FeatureKind.CATEGORY, category)
        accumulated[resp.user_id][feature] += float(resp.score)

    if skipped:
        logger.warning(f"Skipped {skipped} responses with unknown question ids")

    # Sort để output không phụ thuộc thứ tự input
    profiles: ProfileMap = {}
    for user_id in sorted(accumulated):
        features = accumulated[user_id]
        ordered = {key: features[key] for key in sorted(features)}
        profiles[user_id] = UserProfile(user_id=user_id, features=MappingProxyType(ordered))

    logger.debug(f"Built {len(profiles)} profiles")
    return profiles


def _features_of_kind(profile: UserProfile, kind: FeatureKind) -> Dict[str, float]:
    return {
        feature.key: weight
        for feature, weight in profile.features.items()
        if feature.kind == kind
    }


def rated_activities(profile: UserProfile) -> Dict[str, float]:
    """Mapping activity_id -> rating của user."""
    return _features_of_kind(profile, FeatureKind.RATING)


def category_interest(profile: UserProfile) -> Dict[str, float]:
    """Mapping category -> tổng response score của user."""
    return _features_of_kind(profile, FeatureKind.CATEGORY)


def split_profile(profile: UserProfile) -> Tuple[Dict[str, float], Dict[str, float]]:
    """Tách profile thành (ratings, category interest)."""
    return rated_activities(profile), category_interest(profile)
