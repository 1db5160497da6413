"""
Recommendation API routes
========================

API endpoints để lấy và regenerate recommendations.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from ekskul_recommender.config import settings
from ekskul_recommender.exceptions import RecommendationGenerationError, UserNotFoundError
from ekskul_recommender.web.schemas.recommendation import GenerateResponse, UserRecommendations
from ekskul_recommender.web.services.recommendation_service import (
    RecommendationService,
    get_recommendation_service,
)
from ekskul_recommender.web.services.result_cache_service import RecommendationResultCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recommendations", tags=["recommendations"])

GENERIC_FAILURE = "Failed to generate recommendations"

# Singleton instance (None nếu không config REDIS_URL)
_result_cache_instance: Optional[RecommendationResultCache] = None


def get_result_cache() -> Optional[RecommendationResultCache]:
    """Dependency để lấy result cache; None khi Redis không được config."""
    global _result_cache_instance

    if settings.redis_url is None:
        return None
    if _result_cache_instance is None:
        _result_cache_instance = RecommendationResultCache.from_url(
            settings.redis_url,
            ttl_seconds=settings.result_cache_ttl_seconds
        )
    return _result_cache_instance


@router.get(
    "/",
    response_model=List[UserRecommendations],
    summary="Get recommendations for all students",
)
async def list_recommendations(
    service: RecommendationService = Depends(get_recommendation_service),
    result_cache: Optional[RecommendationResultCache] = Depends(get_result_cache)
):
    """
    Lấy recommendations cho tất cả users non-admin.

    Dùng cached result nếu còn fresh.
    """
    if result_cache is not None:
        cached = result_cache.get_all()
        if cached is not None:
            logger.debug(f"Serving {len(cached)} cached recommendation lists")
            return cached

    try:
        recommendations = await service.generate_recommendations()
    except RecommendationGenerationError as e:
        logger.error(f"Error generating recommendations: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=GENERIC_FAILURE
        )

    if result_cache is not None:
        result_cache.set_all(recommendations)

    return recommendations


@router.post(
    "/generate",
    response_model=GenerateResponse,
    summary="Regenerate recommendations",
)
async def regenerate_recommendations(
    service: RecommendationService = Depends(get_recommendation_service),
    result_cache: Optional[RecommendationResultCache] = Depends(get_result_cache)
):
    """
    Bỏ cache (reference data + result) và generate lại cho tất cả users.

    An toàn khi gọi lại nhiều lần (idempotent).
    """
    service.invalidate_reference_data()
    if result_cache is not None:
        result_cache.invalidate()

    try:
        recommendations = await service.generate_recommendations()
    except RecommendationGenerationError as e:
        logger.error(f"Error regenerating recommendations: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=GENERIC_FAILURE
        )

    if result_cache is not None:
        result_cache.set_all(recommendations)

    return GenerateResponse(
        success=True,
        message="Recommendations regenerated successfully",
        total_users=len(recommendations)
    )


@router.get(
    "/{user_id}",
    response_model=UserRecommendations,
    summary="Get recommendations for one student",
)
async def get_user_recommendations(
    user_id: str,
    service: RecommendationService = Depends(get_recommendation_service)
):
    """Lấy recommendations cho một user non-admin."""
    try:
        return await service.generate_for_user(user_id)
    except UserNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except RecommendationGenerationError as e:
        logger.error(f"Error generating recommendations for user {user_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=GENERIC_FAILURE
        )
