"""Vocabulary search index updates (Meilisearch HTTP API)."""

import logging
from typing import Any, Optional
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from ipa_coach.config import get_settings
from ipa_coach.db.models import Word
from ipa_coach.services.interfaces import SearchIndexer

settings = get_settings()
logger = logging.getLogger(__name__)


class MeilisearchIndexer(SearchIndexer):
    """Reads words from SQL and pushes them to a Meilisearch index."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        http_client: Optional[httpx.AsyncClient] = None,
        index: Optional[str] = None,
    ):
        self.session_maker = session_maker
        self.index = index or settings.meilisearch_index
        self._http_client = http_client

    async def load_word(self, word_id: UUID) -> dict[str, Any]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(Word)
                .where(Word.id == str(word_id))
                .options(selectinload(Word.variants))
            )
            word = result.scalar_one_or_none()

        if word is None:
            raise LookupError(f"Word {word_id} not found")

        variant = word.variants[0] if word.variants else None
        return {
            "id": word.id,
            "text": word.text,
            "ipa": variant.ipa if variant else "",
            "dialect": variant.dialect.value if variant else None,
            "pos": word.pos,
            "difficulty": word.difficulty,
            "language": word.language,
            "audio_url": variant.audio_url if variant else None,
            "video_url": variant.video_url if variant else None,
            "created_at": word.created_at.isoformat() if word.created_at else None,
        }

    async def _post(self, client: httpx.AsyncClient, documents: list[dict]) -> None:
        response = await client.post(
            f"{settings.meilisearch_url}/indexes/{self.index}/documents",
            json=documents,
            headers={"Authorization": f"Bearer {settings.meilisearch_key}"},
        )
        response.raise_for_status()

    async def index_word(self, document: dict[str, Any]) -> None:
        if self._http_client is not None:
            await self._post(self._http_client, [document])
        else:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
                await self._post(client, [document])

        logger.info(f"Updated search index '{self.index}' with word {document.get('id')}")
