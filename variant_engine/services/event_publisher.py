"""
Dapr Event Publisher
Publishes catalog events via Dapr Pub/Sub using the CloudEvents envelope.

Publishing is fire-and-report: a failed publish is logged and returns False,
it never fails the business operation that triggered it.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import httpx

from variant_engine.core.config import config
from variant_engine.core.logger import logger

VARIANTS_GENERATED = "variants.generated"
STOCK_LOW = "inventory.stock.low"

_EVENT_TYPES = {
    VARIANTS_GENERATED: "com.catalog.variants.generated.v1",
    STOCK_LOW: "com.catalog.inventory.stock.low.v1",
}


class EventPublisher:
    """Publisher for sending events through the Dapr sidecar"""

    def __init__(
        self,
        dapr_http_port: Optional[int] = None,
        pubsub_name: Optional[str] = None,
        enabled: Optional[bool] = None
    ):
        self.dapr_http_port = dapr_http_port or config.dapr_http_port
        self.pubsub_name = pubsub_name or config.dapr_pubsub_name
        self.enabled = config.events_enabled if enabled is None else enabled
        self.dapr_url = f"http://localhost:{self.dapr_http_port}"
        self.service_name = config.service_name

    def build_event(
        self,
        topic: str,
        data: Dict[str, Any],
        correlation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        CloudEvents 1.0 envelope:
        {
            "specversion": "1.0",
            "type": "com.catalog.variants.generated.v1",
            "source": "variant-engine",
            "id": "<uuid>",
            "time": "2026-01-01T10:00:00+00:00",
            "datacontenttype": "application/json",
            "data": { ... },
            "correlationid": "optional-correlation-id"
        }
        """
        event = {
            "specversion": "1.0",
            "type": _EVENT_TYPES.get(topic, f"com.catalog.{topic}.v1"),
            "source": self.service_name,
            "id": str(uuid4()),
            "time": datetime.now(timezone.utc).isoformat(),
            "datacontenttype": "application/json",
            "data": data,
        }
        if correlation_id:
            event["correlationid"] = correlation_id
        return event

    async def publish(
        self,
        topic: str,
        data: Dict[str, Any],
        correlation_id: Optional[str] = None
    ) -> bool:
        """
        Publish ``data`` to ``topic``.

        Returns:
            bool: True if the sidecar accepted the event, False otherwise
        """
        if not self.enabled:
            logger.debug(
                f"Event publishing disabled, dropping {topic}",
                correlation_id=correlation_id,
            )
            return False

        event = self.build_event(topic, data, correlation_id)
        publish_url = f"{self.dapr_url}/v1.0/publish/{self.pubsub_name}/{topic}"
        headers = {"Content-Type": "application/cloudevents+json"}
        if correlation_id:
            headers[config.correlation_id_header] = correlation_id

        metadata = {"topic": topic, "eventId": event["id"], "eventType": event["type"]}
        try:
            async with httpx.AsyncClient(timeout=5.0) as client:
                response = await client.post(publish_url, json=event, headers=headers)
        except httpx.TimeoutException:
            logger.error(
                f"Timeout publishing event to Dapr: {topic}",
                correlation_id=correlation_id,
                metadata={**metadata, "daprUrl": self.dapr_url},
            )
            return False
        except httpx.ConnectError as e:
            logger.error(
                f"Cannot connect to Dapr sidecar: {e}",
                correlation_id=correlation_id,
                metadata={
                    **metadata,
                    "daprUrl": self.dapr_url,
                    "hint": f"Ensure Dapr sidecar is running on port {self.dapr_http_port}",
                },
            )
            return False
        except Exception as e:
            logger.error(
                f"Error publishing event to Dapr: {topic}",
                correlation_id=correlation_id,
                error=e,
                metadata=metadata,
            )
            return False

        if response.status_code in (200, 204):
            logger.info(
                f"Published event to Dapr: {topic}",
                correlation_id=correlation_id,
                metadata={**metadata, "daprPubSubName": self.pubsub_name},
            )
            return True

        logger.error(
            f"Failed to publish event to Dapr: {topic}",
            correlation_id=correlation_id,
            metadata={**metadata, "statusCode": response.status_code, "response": response.text},
        )
        return False


# Singleton instance
_publisher: Optional[EventPublisher] = None


def get_event_publisher() -> EventPublisher:
    """Get singleton event publisher instance"""
    global _publisher
    if _publisher is None:
        _publisher = EventPublisher()
    return _publisher
