"""
Data Service
============

Service để lấy raw records (users, ratings, responses, questions,
ekstrakurikuler) từ database cho recommendation engine.

Mỗi fetch mở session riêng để các fetch có thể chạy đồng thời.
Lỗi database (kể cả lỗi kết nối: OSError, timeout) được wrap
thành DataFetchError.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Protocol

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ekskul_recommender.exceptions import DataFetchError
from ekskul_recommender.recommender.models import (
    ActivityRecord,
    QuestionRecord,
    RatingRecord,
    ResponseRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)


class RecommendationDataSource(Protocol):
    """Interface của persistence layer mà RecommendationService cần."""

    async def fetch_ratings(self) -> List[RatingRecord]: ...

    async def fetch_responses(self) -> List[ResponseRecord]: ...

    async def fetch_questions(self) -> List[QuestionRecord]: ...

    async def fetch_activities(self) -> List[ActivityRecord]: ...

    async def fetch_users(self, non_admin_only: bool = True) -> List[UserRecord]: ...


# Latest row cho mỗi cặp (user, activity) / (user, question)
RATINGS_QUERY = """
    SELECT DISTINCT ON (user_id, ekskul_id)
        user_id, ekskul_id, rating
    FROM ratings
    WHERE user_id IS NOT NULL
      AND ekskul_id IS NOT NULL
      AND rating IS NOT NULL
    ORDER BY user_id, ekskul_id, created_at DESC NULLS LAST, id DESC
"""

RESPONSES_QUERY = """
    SELECT DISTINCT ON (user_id, question_id)
        user_id, question_id, score
    FROM responses
    WHERE score IS NOT NULL
    ORDER BY user_id, question_id, created_at DESC NULLS LAST, id DESC
"""

QUESTIONS_QUERY = """
    SELECT id, text, category
    FROM questions
    ORDER BY id
"""

ACTIVITIES_QUERY = """
    SELECT id, nama, kategori
    FROM ekstrakurikuler
    ORDER BY created_at NULLS LAST, id
"""

USERS_QUERY = """
    SELECT id, nama_lengkap, username, foto_url, is_admin
    FROM users
    {where}
    ORDER BY created_at NULLS LAST, id
"""


def row_to_rating(row: Any) -> Optional[RatingRecord]:
    if row.user_id is None or row.ekskul_id is None or row.rating is None:
        return None
    return RatingRecord(user_id=str(row.user_id), activity_id=str(row.ekskul_id), rating=row.rating)


def row_to_response(row: Any) -> Optional[ResponseRecord]:
    if row.user_id is None or row.question_id is None or row.score is None:
        return None
    return ResponseRecord(user_id=str(row.user_id), question_id=str(row.question_id), score=row.score)


def row_to_question(row: Any) -> QuestionRecord:
    return QuestionRecord(id=str(row.id), category=row.category or "", text=row.text or "")


def row_to_activity(row: Any) -> ActivityRecord:
    # kategori là text[] (có thể NULL)
    categories = tuple(c for c in (row.kategori or []) if c)
    return ActivityRecord(id=str(row.id), name=row.nama, categories=categories)


def row_to_user(row: Any) -> UserRecord:
    return UserRecord(
        id=str(row.id),
        name=row.nama_lengkap,
        handle=row.username,
        is_admin=bool(row.is_admin),
        photo_url=row.foto_url or None,
    )


class DataService:
    """Service đọc records cho recommendation engine."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        """
        Khởi tạo DataService.

        Args:
            session_factory: async_sessionmaker (mỗi fetch một session)
        """
        self.session_factory = session_factory

    async def _fetch_rows(self, source: str, query: str) -> list:
        try:
            async with self.session_factory() as session:
                result = await session.execute(text(query))
                rows = result.fetchall()
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error(f"Error fetching {source}: {e}")
            raise DataFetchError(source, str(e)) from e

        logger.debug(f"Fetched {len(rows)} {source}")
        return rows

    async def fetch_ratings(self) -> List[RatingRecord]:
        rows = await self._fetch_rows("ratings", RATINGS_QUERY)
        records = [row_to_rating(row) for row in rows]
        return [r for r in records if r is not None]

    async def fetch_responses(self) -> List[ResponseRecord]:
        rows = await self._fetch_rows("responses", RESPONSES_QUERY)
        records = [row_to_response(row) for row in rows]
        return [r for r in records if r is not None]

    async def fetch_questions(self) -> List[QuestionRecord]:
        rows = await self._fetch_rows("questions", QUESTIONS_QUERY)
        return [row_to_question(row) for row in rows]

    async def fetch_activities(self) -> List[ActivityRecord]:
        rows = await self._fetch_rows("ekstrakurikuler", ACTIVITIES_QUERY)
        return [row_to_activity(row) for row in rows]

    async def fetch_users(self, non_admin_only: bool = True) -> List[UserRecord]:
        """
        Lấy danh sách users.

        Args:
            non_admin_only: Chỉ lấy users có is_admin = false (hoặc NULL)

        Returns:
            List of UserRecord
        """
        where = "WHERE is_admin IS NOT TRUE" if non_admin_only else ""
        rows = await self._fetch_rows("users", USERS_QUERY.format(where=where))
        return [row_to_user(row) for row in rows]
