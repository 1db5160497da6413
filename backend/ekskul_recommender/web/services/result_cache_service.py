"""
Result Cache Service
====================

Cache ngắn hạn cho output của generate_recommendations() trong Redis.
Recommendations là ephemeral: TTL ngắn (default 60s), regenerate khi miss.
Lỗi Redis chỉ log warning và được coi như cache miss.
"""

import json
import logging
from typing import List, Optional

import redis
from pydantic import TypeAdapter, ValidationError

from ekskul_recommender.web.schemas.recommendation import UserRecommendations

logger = logging.getLogger(__name__)

_ADAPTER = TypeAdapter(List[UserRecommendations])


class RecommendationResultCache:
    """
    Cache recommendations của tất cả users.

    Redis keys:
    - recommendations:all (String, JSON)
    """

    KEY_ALL = "recommendations:all"

    def __init__(self, redis_client: redis.Redis, ttl_seconds: int = 60):
        """
        Khởi tạo RecommendationResultCache.

        Args:
            redis_client: Redis client
            ttl_seconds: TTL cho cached result (default: 60s)
        """
        self.redis_client = redis_client
        self.ttl_seconds = ttl_seconds

        logger.info(f"RecommendationResultCache initialized: ttl={ttl_seconds}s")

    @classmethod
    def from_url(cls, redis_url: str, ttl_seconds: int = 60) -> "RecommendationResultCache":
        client = redis.Redis.from_url(redis_url, decode_responses=True)
        return cls(client, ttl_seconds=ttl_seconds)

    def get_all(self) -> Optional[List[UserRecommendations]]:
        """
        Lấy cached recommendations.

        Returns:
            List of UserRecommendations, hoặc None nếu miss/lỗi
        """
        try:
            raw = self.redis_client.get(self.KEY_ALL)
        except redis.RedisError as e:
            logger.warning(f"Failed to read recommendations from Redis: {e}")
            return None

        if raw is None:
            return None

        try:
            return _ADAPTER.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding malformed cached recommendations: {e}")
            return None

    def set_all(self, recommendations: List[UserRecommendations]) -> bool:
        """
        Ghi recommendations vào Redis với TTL.

        Returns:
            True nếu thành công, False nếu có lỗi
        """
        payload = json.dumps(_ADAPTER.dump_python(recommendations, mode="json"))
        try:
            self.redis_client.set(self.KEY_ALL, payload, ex=self.ttl_seconds)
            return True
        except redis.RedisError as e:
            logger.warning(f"Failed to write recommendations to Redis: {e}")
            return False

    def invalidate(self) -> None:
        try:
            self.redis_client.delete(self.KEY_ALL)
        except redis.RedisError as e:
            logger.warning(f"Failed to invalidate cached recommendations: {e}")
