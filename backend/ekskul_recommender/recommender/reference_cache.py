"""
Reference Data Cache
====================

Cache cho reference data ít thay đổi (activities, questions).

- Hết hạn theo wall-clock age (TTL), không theo event
- invalidate() chỉ là admin override (POST /generate), không phải
  cơ chế expiry thông thường
- Clock được inject để test
- Refresh swap cả snapshot (không mutate in-place), đọc không cần lock
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

from ekskul_recommender.recommender.models import ActivityRecord, QuestionRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 300.0  # 5 phút


@dataclass(frozen=True)
class ReferenceSnapshot:
    """Snapshot bất biến của reference data."""
    activities: Tuple[ActivityRecord, ...]
    questions: Tuple[QuestionRecord, ...]
    fetched_at: float


Loader = Callable[[], Awaitable[Tuple[list, list]]]


class ReferenceDataCache:
    """
    Cache activities/questions với bounded freshness window.

    Attributes:
        ttl_seconds: Thời gian snapshot còn fresh
        clock: Callable trả về thời gian hiện tại (seconds)
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Khởi tạo ReferenceDataCache.

        Args:
            ttl_seconds: TTL cho snapshot (default: 300 = 5 phút)
            clock: Clock source (default: time.monotonic)
        """
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")

        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._snapshot: Optional[ReferenceSnapshot] = None
        # Tạo trong event loop ở lần get() đầu tiên
        self._lock: Optional[asyncio.Lock] = None

        logger.info(f"ReferenceDataCache initialized: ttl={ttl_seconds}s")

    def is_fresh(self) -> bool:
        snapshot = self._snapshot
        if snapshot is None:
            return False
        return (self.clock() - snapshot.fetched_at) < self.ttl_seconds

    def peek(self) -> Optional[ReferenceSnapshot]:
        """Trả về snapshot hiện tại (có thể đã stale) mà không refresh."""
        return self._snapshot

    async def get(self, loader: Loader) -> ReferenceSnapshot:
        """
        Lấy snapshot, gọi loader nếu chưa có hoặc đã hết hạn.

        Args:
            loader: Async callable trả về (activities, questions)

        Returns:
            ReferenceSnapshot

        Raises:
            Exception từ loader được propagate, snapshot cũ giữ nguyên
        """
        snapshot = self._snapshot
        if snapshot is not None and self.is_fresh():
            return snapshot

        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            # Request khác có thể đã refresh trong lúc chờ lock
            if self.is_fresh():
                return self._snapshot

            activities, questions = await loader()
            fresh = ReferenceSnapshot(
                activities=tuple(activities),
                questions=tuple(questions),
                fetched_at=self.clock(),
            )
            self._snapshot = fresh

        logger.info(
            f"Reference data refreshed: "
            f"{len(fresh.activities)} activities, {len(fresh.questions)} questions"
        )
        return fresh

    def invalidate(self) -> None:
        """Drop snapshot để lần get() tiếp theo fetch lại."""
        self._snapshot = None
        logger.info("Reference data cache invalidated")
