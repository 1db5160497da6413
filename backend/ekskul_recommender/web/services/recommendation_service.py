"""
Recommendation Service
======================

Service để generate recommendations cho tất cả users non-admin.

Pipeline:
Fetch (ratings, responses, cached activities/questions) -> Profiles
-> Collaborative Filter -> Score Aggregator -> ranked output

- Data được fetch một lần mỗi run, không query lại cho từng user
- Users được xử lý theo batches; trong một batch chạy song song,
  các batches chạy tuần tự
- Run thất bại thì raise RecommendationGenerationError, không trả partial
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ekskul_recommender.exceptions import (
    RecommendationGenerationError,
    UserNotFoundError,
)
from ekskul_recommender.recommender.collaborative_filter import (
    build_rating_index,
    collaborative_scores,
)
from ekskul_recommender.recommender.models import (
    ActivityRecord,
    RankedList,
    RatingIndex,
    RatingRecord,
    ScoringConfig,
    UserRecord,
)
from ekskul_recommender.recommender.profile_builder import (
    build_profiles,
    question_category_map,
    split_profile,
)
from ekskul_recommender.recommender.reference_cache import (
    DEFAULT_TTL_SECONDS,
    ReferenceDataCache,
)
from ekskul_recommender.recommender.score_aggregator import aggregate
from ekskul_recommender.web.schemas.recommendation import (
    RecommendationItem,
    UserRecommendations,
)
from ekskul_recommender.web.services.data_service import RecommendationDataSource

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5


@dataclass(frozen=True)
class ScoringSnapshot:
    """
    Snapshot bất biến dùng chung cho tất cả users trong một run.

    Attributes:
        activities: Catalog theo thứ tự gốc
        profiles: user_id -> UserProfile
        rating_index: activity_id -> {user_id: rating}
    """
    activities: Tuple[ActivityRecord, ...]
    profiles: Mapping
    rating_index: RatingIndex


def drop_dangling_ratings(
    ratings: Sequence[RatingRecord],
    activities: Sequence[ActivityRecord]
) -> List[RatingRecord]:
    """Bỏ ratings trỏ tới activity không còn trong catalog."""
    known = {a.id for a in activities}
    kept = [r for r in ratings if r.activity_id in known]
    dropped = len(ratings) - len(kept)
    if dropped:
        logger.warning(f"Dropped {dropped} ratings referencing unknown activities")
    return kept


def confidence_score(raw_score: float, scale: float) -> float:
    """Normalize raw score về [0, 1]: min(raw / scale, 1)."""
    return round(max(0.0, min(raw_score / scale, 1.0)), 4)


class RecommendationService:
    """
    Service để generate recommendations.

    Sở hữu reference data cache (activities, questions).
    """

    def __init__(
        self,
        data_source: RecommendationDataSource,
        config: Optional[ScoringConfig] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        reference_cache: Optional[ReferenceDataCache] = None,
        cache_ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Khởi tạo RecommendationService.

        Args:
            data_source: Persistence layer (fetch_* methods)
            config: Scoring config. Nếu None, dùng default
            batch_size: Số users xử lý song song trong một batch
            reference_cache: Cache cho activities/questions. Nếu None, tạo mới
            cache_ttl_seconds: TTL cho reference cache mới
            clock: Clock cho reference cache mới
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        self.data_source = data_source
        self.config = config or ScoringConfig()
        self.batch_size = batch_size
        self.reference_cache = reference_cache or ReferenceDataCache(
            ttl_seconds=cache_ttl_seconds,
            clock=clock
        )

        logger.info(
            f"RecommendationService initialized: "
            f"metric={self.config.similarity_metric.value}, "
            f"threshold={self.config.similarity_threshold}, "
            f"batch_size={batch_size}, top_n={self.config.top_n}"
        )

    async def _load_reference_data(self) -> Tuple[list, list]:
        activities, questions = await asyncio.gather(
            self.data_source.fetch_activities(),
            self.data_source.fetch_questions(),
        )
        return activities, questions

    async def load_snapshot(self) -> ScoringSnapshot:
        """
        Fetch data một lần và build snapshot cho cả run.

        Returns:
            ScoringSnapshot
        """
        ratings, responses, reference = await asyncio.gather(
            self.data_source.fetch_ratings(),
            self.data_source.fetch_responses(),
            self.reference_cache.get(self._load_reference_data),
        )

        ratings = drop_dangling_ratings(ratings, reference.activities)
        categories = question_category_map(reference.questions)

        profiles = build_profiles(ratings, responses, categories)
        rating_index = build_rating_index(ratings)

        logger.info(
            f"Snapshot built: {len(ratings)} ratings, {len(responses)} responses, "
            f"{len(profiles)} profiles, {len(reference.activities)} activities"
        )
        return ScoringSnapshot(
            activities=reference.activities,
            profiles=MappingProxyType(profiles),
            rating_index=rating_index,
        )

    def score_user(
        self,
        user_id: str,
        snapshot: ScoringSnapshot,
        top_n: Optional[int] = None
    ) -> RankedList:
        """
        Pipeline cho một user: profile lookup -> CF -> aggregate.

        Pure function trên snapshot, an toàn khi chạy song song.

        Args:
            user_id: User ID
            snapshot: Scoring snapshot của run
            top_n: Override config.top_n (None = dùng config)

        Returns:
            Ranked activities ([] nếu user không có signal)
        """
        profile = snapshot.profiles.get(user_id)
        if profile is None or profile.is_empty():
            logger.debug(f"User {user_id} has no ratings or responses")
            return []

        cf_scores = collaborative_scores(
            user_id,
            snapshot.profiles,
            snapshot.rating_index,
            self.config
        )
        direct_ratings, interest = split_profile(profile)

        return aggregate(
            user_id,
            cf_scores,
            direct_ratings,
            interest,
            snapshot.activities,
            self.config,
            top_n=top_n if top_n is not None else self.config.top_n
        )

    async def _score_batches(
        self,
        users: Sequence[UserRecord],
        snapshot: ScoringSnapshot
    ) -> Dict[str, RankedList]:
        results: Dict[str, RankedList] = {}

        for start in range(0, len(users), self.batch_size):
            batch = users[start:start + self.batch_size]
            ranked_lists = await asyncio.gather(*[
                asyncio.to_thread(self.score_user, user.id, snapshot)
                for user in batch
            ])
            for user, ranked in zip(batch, ranked_lists):
                results[user.id] = ranked

            logger.debug(f"Scored batch {start // self.batch_size + 1} ({len(batch)} users)")

        return results

    async def generate_all(
        self,
        users: Sequence[UserRecord],
        snapshot: Optional[ScoringSnapshot] = None
    ) -> Dict[str, RankedList]:
        """
        Generate ranked lists cho danh sách users.

        Args:
            users: Users cần score
            snapshot: Snapshot có sẵn. Nếu None, fetch mới

        Returns:
            Dict user_id -> ranked list

        Raises:
            RecommendationGenerationError: Nếu fetch hoặc scoring thất bại
        """
        users = list(users)
        try:
            if snapshot is None:
                snapshot = await self.load_snapshot()
            results = await self._score_batches(users, snapshot)
        except Exception as e:
            logger.error(f"Error generating recommendations: {e}", exc_info=True)
            raise RecommendationGenerationError("Failed to generate recommendations") from e

        logger.info(f"Generated recommendations for {len(results)} users")
        return results

    def format_recommendations(
        self,
        user: UserRecord,
        ranked: RankedList
    ) -> UserRecommendations:
        """Chuyển ranked list thành response schema."""
        items = [
            RecommendationItem(
                rank=entry.rank,
                activity_id=entry.activity.id,
                activity_name=entry.activity.name,
                confidence_score=confidence_score(entry.total_score, self.config.confidence_scale),
                raw_score=round(entry.total_score, 4),
                matching_categories=list(entry.matching_categories),
                is_best=entry.rank == 1,
            )
            for entry in ranked
        ]
        return UserRecommendations(
            user_id=user.id,
            name=user.name,
            handle=user.handle,
            photo_url=user.photo_url,
            recommendations=items,
        )

    async def _fetch_users(self) -> List[UserRecord]:
        try:
            return await self.data_source.fetch_users(non_admin_only=True)
        except Exception as e:
            logger.error(f"Error fetching users: {e}", exc_info=True)
            raise RecommendationGenerationError("Failed to fetch users") from e

    async def generate_recommendations(self) -> List[UserRecommendations]:
        """
        Generate recommendations cho tất cả users non-admin.

        Returns:
            List of UserRecommendations (theo thứ tự users)
        """
        users = await self._fetch_users()
        results = await self.generate_all(users)
        return [self.format_recommendations(user, results[user.id]) for user in users]

    async def generate_for_user(self, user_id: str) -> UserRecommendations:
        """
        Generate recommendations cho một user non-admin.

        Raises:
            UserNotFoundError: Nếu user không tồn tại hoặc là admin
        """
        users = await self._fetch_users()
        user = next((u for u in users if u.id == str(user_id)), None)
        if user is None:
            raise UserNotFoundError(str(user_id))

        results = await self.generate_all([user])
        return self.format_recommendations(user, results[user.id])

    def invalidate_reference_data(self) -> None:
        self.reference_cache.invalidate()


# Singleton instance
_recommendation_service_instance: Optional[RecommendationService] = None


def get_recommendation_service() -> RecommendationService:
    """
    Get singleton instance của RecommendationService (config từ settings).

    Returns:
        RecommendationService instance
    """
    global _recommendation_service_instance

    if _recommendation_service_instance is None:
        from ekskul_recommender.config import settings
        from ekskul_recommender.web.services.data_service import DataService
        from ekskul_recommender.web.utils.database import AsyncSessionLocal

        _recommendation_service_instance = RecommendationService(
            data_source=DataService(AsyncSessionLocal),
            config=settings.scoring_config(),
            batch_size=settings.batch_size,
            cache_ttl_seconds=settings.reference_cache_ttl_seconds,
        )

    return _recommendation_service_instance
