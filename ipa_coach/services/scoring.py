"""Pronunciation scoring: compares learner audio with reference audio."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from uuid import UUID

import numpy as np

from ipa_coach.services.alignment import dtw_align
from ipa_coach.services.features import MFCCExtractor

logger = logging.getLogger(__name__)

NUM_PHONEME_SEGMENTS = 5
# Cost per frame treated as a total mismatch for the overall score
FRAME_COST_SCALE = 10.0
# Absolute cost treated as a total mismatch for one segment
SEGMENT_COST_SCALE = 10.0


@dataclass(frozen=True)
class PronunciationScore:
    """Result of scoring one recording."""

    overall_pct: float
    per_phoneme: dict[str, float] = field(default_factory=dict)
    alignment_cost: float = 0.0
    confidence: float = 0.0

    def to_payload(self, recording_id: UUID) -> dict:
        """JSON-ready payload published and stored as the job result."""
        return {
            "recording_id": str(recording_id),
            "overall_pct": self.overall_pct,
            "per_phoneme": dict(self.per_phoneme),
            "confidence": self.confidence,
        }


class PhonemeSegmenter(ABC):
    """Splits a feature sequence into per-phoneme frame ranges."""

    @abstractmethod
    def segments(self, num_frames: int) -> list[tuple[int, int]]:
        """Return (start, end) frame ranges, one per phoneme, in order."""
        pass


class UniformSegmenter(PhonemeSegmenter):
    """
    Equal-length contiguous segments by index proportion.

    A stand-in for forced alignment: it knows nothing about where phonemes
    actually start and end.
    """

    def __init__(self, count: int = NUM_PHONEME_SEGMENTS):
        self.count = count

    def segments(self, num_frames: int) -> list[tuple[int, int]]:
        return [
            (i * num_frames // self.count, (i + 1) * num_frames // self.count)
            for i in range(self.count)
        ]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def cost_to_pct(cost: float, scale: float) -> float:
    """Map an alignment cost to 0-100; cost >= scale (or infinite) gives 0."""
    if scale <= 0 or not np.isfinite(cost):
        return 0.0
    normalized = min(1.0, cost / scale)
    return _clamp((1.0 - normalized) * 100.0, 0.0, 100.0)


def confidence_for(overall_pct: float) -> float:
    if overall_pct > 80.0:
        return 0.9
    elif overall_pct > 60.0:
        return 0.7
    elif overall_pct > 40.0:
        return 0.5
    return 0.3


class PronunciationScorer:
    """Scores learner audio against reference audio with MFCC features and DTW."""

    def __init__(
        self,
        extractor: MFCCExtractor | None = None,
        segmenter: PhonemeSegmenter | None = None,
    ):
        self.extractor = extractor or MFCCExtractor()
        self.segmenter = segmenter or UniformSegmenter()

    def score_pronunciation(self, user_audio, reference_audio) -> PronunciationScore:
        """
        Score a recording against the reference pronunciation.

        Args:
            user_audio: Learner samples at 16 kHz
            reference_audio: Reference samples at 16 kHz

        Returns:
            PronunciationScore with overall_pct in [0, 100] and confidence in [0, 1]

        Raises:
            TransformError: If feature extraction fails for either clip
        """
        user_features = self.extractor.extract_features(user_audio)
        reference_features = self.extractor.extract_features(reference_audio)

        alignment_cost = dtw_align(user_features, reference_features)
        max_cost = (len(user_features) + len(reference_features)) * FRAME_COST_SCALE
        overall_pct = cost_to_pct(alignment_cost, max_cost)

        per_phoneme = self.per_phoneme_scores(user_features, reference_features)

        logger.debug(
            f"Scored {len(user_features)} vs {len(reference_features)} frames: "
            f"cost={alignment_cost:.3f} overall={overall_pct:.1f}"
        )

        return PronunciationScore(
            overall_pct=overall_pct,
            per_phoneme=per_phoneme,
            alignment_cost=alignment_cost,
            confidence=confidence_for(overall_pct),
        )

    def per_phoneme_scores(
        self, user_features: np.ndarray, reference_features: np.ndarray
    ) -> dict[str, float]:
        """Align matching segments of both sequences and score each one."""
        user_segments = self.segmenter.segments(len(user_features))
        reference_segments = self.segmenter.segments(len(reference_features))

        scores = {}
        for i, ((us, ue), (rs, re)) in enumerate(zip(user_segments, reference_segments)):
            user_segment = user_features[us:ue]
            reference_segment = reference_features[rs:re]
            # An empty side aligns to infinity, which scores 0
            cost = dtw_align(user_segment, reference_segment)
            scores[f"phoneme_{i}"] = cost_to_pct(cost, SEGMENT_COST_SCALE)

        return scores
