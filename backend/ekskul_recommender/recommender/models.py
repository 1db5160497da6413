"""
Recommender Models
==================

Records và config dùng chung cho scoring engine.

Records là snapshot bất biến (frozen dataclasses) do persistence layer cung cấp.
Profile là sparse vector keyed bằng FeatureKey để rating signal và
category signal không bao giờ đụng nhau.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, NamedTuple, Optional, Tuple


class SimilarityMetric(str, Enum):
    """Similarity algorithms hỗ trợ bởi engine."""
    COSINE = "cosine"
    PEARSON = "pearson"


class FeatureKind(str, Enum):
    """Loại signal trong profile."""
    RATING = "rating"
    CATEGORY = "category"


class FeatureKey(NamedTuple):
    """
    Key của một feature trong profile.

    Attributes:
        kind: RATING (key = activity id) hoặc CATEGORY (key = question category)
        key: Activity id hoặc category name
    """
    kind: FeatureKind
    key: str


@dataclass(frozen=True)
class UserRecord:
    id: str
    name: str
    handle: str
    is_admin: bool = False
    photo_url: Optional[str] = None


@dataclass(frozen=True)
class ActivityRecord:
    """Một ekstrakurikuler trong catalog."""
    id: str
    name: str
    categories: Tuple[str, ...] = ()


@dataclass(frozen=True)
class QuestionRecord:
    id: str
    category: str
    text: str = ""


@dataclass(frozen=True)
class RatingRecord:
    """Rating của user cho một activity."""
    user_id: str
    activity_id: str
    rating: float


@dataclass(frozen=True)
class ResponseRecord:
    """Câu trả lời questionnaire của user."""
    user_id: str
    question_id: str
    score: float


@dataclass(frozen=True)
class UserProfile:
    """
    Sparse feature vector của một user.

    Attributes:
        user_id: User ID
        features: Read-only mapping FeatureKey -> accumulated weight
    """
    user_id: str
    features: Mapping[FeatureKey, float] = field(default_factory=lambda: MappingProxyType({}))

    def is_empty(self) -> bool:
        return len(self.features) == 0


@dataclass(frozen=True)
class RankedActivity:
    """
    Activity đã được score và rank cho một user.

    Attributes:
        activity: Activity record
        rank: Vị trí (1-based)
        total_score: Score cuối cùng sau khi áp dụng weights
        cf_score: Collaborative filtering score (đã combine user/item-based)
        direct_rating: Rating của chính user (0 nếu chưa rate)
        category_boost: Tổng category interest trên các tags của activity
        matching_categories: Tags của activity mà user có interest dương
    """
    activity: ActivityRecord
    rank: int
    total_score: float
    cf_score: float = 0.0
    direct_rating: float = 0.0
    category_boost: float = 0.0
    matching_categories: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ScoringConfig:
    """
    Tunable constants của scoring engine.

    Attributes:
        similarity_metric: cosine hoặc pearson
        similarity_threshold: Neighbors có similarity <= threshold bị bỏ qua
        weight_cf: W_cf, weight cho collaborative score
        weight_self: W_self, weight cho rating của chính user
        weight_category: W_cat, weight cho category boost
        weight_user_based: Tỉ trọng user-based trong collaborative score
        weight_item_based: Tỉ trọng item-based trong collaborative score
        confidence_scale: Divisor để normalize raw score về [0, 1]
        top_n: Số recommendations hiển thị cho mỗi user
    """
    similarity_metric: SimilarityMetric = SimilarityMetric.COSINE
    similarity_threshold: float = 0.1
    weight_cf: float = 0.2
    weight_self: float = 1.0
    weight_category: float = 0.5
    weight_user_based: float = 0.5
    weight_item_based: float = 0.5
    confidence_scale: float = 10.0
    top_n: Optional[int] = 3

    def __post_init__(self):
        # Cho phép truyền metric dạng string ("cosine", "pearson")
        object.__setattr__(self, "similarity_metric", SimilarityMetric(self.similarity_metric))

        weights = {
            "weight_cf": self.weight_cf,
            "weight_self": self.weight_self,
            "weight_category": self.weight_category,
            "weight_user_based": self.weight_user_based,
            "weight_item_based": self.weight_item_based,
        }
        for name, value in weights.items():
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
        if self.confidence_scale <= 0:
            raise ValueError(f"confidence_scale must be > 0, got {self.confidence_scale}")
        if self.top_n is not None and self.top_n < 1:
            raise ValueError(f"top_n must be >= 1, got {self.top_n}")


# Type aliases
ProfileMap = Dict[str, UserProfile]
RatingIndex = Mapping[str, Mapping[str, float]]
RankedList = List[RankedActivity]
