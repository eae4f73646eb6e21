"""Contracts for the external collaborators the job worker depends on."""

from abc import ABC, abstractmethod
from typing import Any
from uuid import UUID

import numpy as np

from ipa_coach.services.scoring import PronunciationScore


class AudioSource(ABC):
    """Where learner recordings and reference pronunciations come from."""

    @abstractmethod
    async def fetch(self, url: str) -> np.ndarray:
        """Download a recording and return 16 kHz mono samples."""
        pass

    @abstractmethod
    async def lookup_reference(self, word_id: UUID, dialect: str) -> np.ndarray:
        """Return the reference pronunciation of a word in a dialect."""
        pass


class ScoreRepository(ABC):
    """Durable storage of computed scores."""

    @abstractmethod
    async def upsert_score(
        self, recording_id: UUID, score: PronunciationScore, latency_ms: int = 0
    ) -> None:
        """Insert or replace the score of a recording."""
        pass


class ScoreNotifier(ABC):
    """Tells interested clients that a score is ready."""

    @abstractmethod
    async def notify(self, recording_id: UUID, score: PronunciationScore) -> None:
        pass


class SearchIndexer(ABC):
    """Keeps the vocabulary search index in sync with the word store."""

    @abstractmethod
    async def load_word(self, word_id: UUID) -> dict[str, Any]:
        """
        Build the search document for a word.

        Raises:
            LookupError: If the word doesn't exist
        """
        pass

    @abstractmethod
    async def index_word(self, document: dict[str, Any]) -> None:
        """Add or replace a document in the index."""
        pass
