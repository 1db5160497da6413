"""
Recommendation schemas cho Recommendation API.
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class RecommendationItem(BaseModel):
    """
    Response schema cho một activity được recommend.
    """
    rank: int = Field(..., ge=1, description="Rank position (1-based)")
    activity_id: str = Field(..., description="Ekstrakurikuler ID")
    activity_name: str = Field(..., description="Ekstrakurikuler name")
    confidence_score: float = Field(..., ge=0.0, le=1.0, description="Normalized score [0, 1]")
    raw_score: float = Field(..., description="Aggregated score trước khi normalize")
    matching_categories: List[str] = Field(default_factory=list, description="Tags khớp với interest của user")
    is_best: bool = Field(False, description="True cho rank 1")


class UserRecommendations(BaseModel):
    """
    Response schema cho recommendations của một user.
    """
    user_id: str = Field(..., description="User ID")
    name: str = Field(..., description="Display name")
    handle: str = Field(..., description="Username")
    photo_url: Optional[str] = Field(None, description="Avatar URL (foto_url)")
    recommendations: List[RecommendationItem] = Field(default_factory=list, description="Ranked activities")


class GenerateResponse(BaseModel):
    """
    Response schema cho regenerate endpoint.
    """
    success: bool = Field(..., description="Regenerate thành công hay không")
    message: str = Field(..., description="Status message")
    total_users: int = Field(..., description="Số users đã được score")
