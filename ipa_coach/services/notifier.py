"""Score-ready notifications over Redis pub/sub."""

import json
import logging
from uuid import UUID

from redis.asyncio import Redis

from ipa_coach.config import get_settings
from ipa_coach.services.interfaces import ScoreNotifier
from ipa_coach.services.scoring import PronunciationScore

settings = get_settings()
logger = logging.getLogger(__name__)


class RedisScoreNotifier(ScoreNotifier):
    """
    Publishes the scoring payload on score_updates:<recording_id>.

    The WebSocket layer subscribes to these channels and forwards the
    message to the learner's open connection.
    """

    def __init__(self, redis: Redis, channel_prefix: str | None = None):
        self.redis = redis
        self.channel_prefix = channel_prefix or settings.score_channel_prefix

    def channel_for(self, recording_id: UUID) -> str:
        return f"{self.channel_prefix}:{recording_id}"

    async def notify(self, recording_id: UUID, score: PronunciationScore) -> None:
        message = json.dumps({"event": "score.completed", "data": score.to_payload(recording_id)})
        receivers = await self.redis.publish(self.channel_for(recording_id), message)
        logger.info(
            f"Score completed for recording {recording_id}: "
            f"{score.overall_pct:.1f}% ({receivers} subscriber(s))"
        )
