"""SQL persistence of pronunciation scores."""

import math
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ipa_coach.db.models import Score
from ipa_coach.services.interfaces import ScoreRepository
from ipa_coach.services.scoring import PronunciationScore


class SqlScoreRepository(ScoreRepository):
    """Stores one score row per recording, replacing it on re-score."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    @staticmethod
    def _insert_for(session: AsyncSession):
        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise ValueError(f"Unsupported database dialect for score upsert: {dialect}")

    async def upsert_score(
        self, recording_id: UUID, score: PronunciationScore, latency_ms: int = 0
    ) -> None:
        values = {
            "recording_id": str(recording_id),
            "overall_pct": score.overall_pct,
            "per_phoneme": dict(score.per_phoneme),
            "confidence": score.confidence,
            "alignment_cost": score.alignment_cost if math.isfinite(score.alignment_cost) else None,
            "latency_ms": latency_ms,
        }

        async with self.session_maker() as db:
            insert = self._insert_for(db)
            stmt = insert(Score).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Score.recording_id],
                set_={
                    "overall_pct": stmt.excluded.overall_pct,
                    "per_phoneme": stmt.excluded.per_phoneme,
                    "confidence": stmt.excluded.confidence,
                    "alignment_cost": stmt.excluded.alignment_cost,
                    "latency_ms": stmt.excluded.latency_ms,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
            await db.execute(stmt)
            await db.commit()

    async def get_score(self, recording_id: UUID) -> Optional[Score]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(Score).where(Score.recording_id == str(recording_id))
            )
            return result.scalar_one_or_none()
