"""
Exceptions dùng chung cho recommender.
"""


class RecommenderError(Exception):
    """Base exception."""


class DataFetchError(RecommenderError):
    """Persistence layer không trả được data (query lỗi, mất kết nối...)."""

    def __init__(self, source: str, message: str = ""):
        self.source = source
        super().__init__(f"Failed to fetch {source}" + (f": {message}" if message else ""))


class RecommendationGenerationError(RecommenderError):
    """Một lần generate thất bại; không có partial recommendations."""


class UserNotFoundError(RecommenderError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")
