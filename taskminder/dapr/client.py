"""Dapr client for publishing reminder events through the Dapr sidecar."""
import json
import uuid
from datetime import datetime
from typing import Any, Dict

from dapr.clients import DaprClient

from taskminder.config import settings
from taskminder.utils.logger import get_logger

logger = get_logger(__name__)


class DaprEventPublisher:
    """Publishes events to a pub/sub topic via Dapr."""

    def __init__(self, pubsub_name: str = None, source: str = "taskminder"):
        """Initialize Dapr event publisher."""
        self.pubsub_name = pubsub_name or settings.dapr_pubsub_name
        self.source = source

    def build_envelope(self, event_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Wrap event data in the envelope consumers expect."""
        return {
            "event_id": str(uuid.uuid4()),
            "type": event_type,
            "timestamp": datetime.utcnow().isoformat(),
            "source": self.source,
            "data": data,
        }

    def publish_event(self, topic: str, event_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Publish an event to a topic via Dapr pub/sub."""
        event_envelope = self.build_envelope(event_type, data)
        try:
            with DaprClient() as client:
                client.publish_event(
                    pubsub_name=self.pubsub_name,
                    topic_name=topic,
                    data=json.dumps(event_envelope),
                    data_content_type="application/json",
                )
        except Exception as e:
            logger.error("Failed to publish event", topic=topic, event_type=event_type, error=str(e))
            raise

        logger.info("Published event", topic=topic, event_type=event_type)
        return {"success": True, "event_id": event_envelope["event_id"]}
