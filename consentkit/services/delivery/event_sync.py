"""
Event Delivery Sync

Sends preference saves and banner-open events to the consent backend.

Robustness Guarantees:
1. Every send goes through the retrying transport first
2. A send that still fails is appended to the persisted pending queue
3. The caller is always told about the failure, even though it was queued
4. A flush removes only events whose delivery was confirmed; failures
   keep their original relative order, and events queued while the flush
   was in flight are kept
"""

import asyncio
from typing import Any, NamedTuple

from ...common.config import ConsentConfig
from ...common.exceptions import ConsentError, StorageError
from ...common.logging_setup import get_service_logger, log_delivery, log_flush
from ...common.preferences import ConsentPreferences
from ...common.state import ConsentStore, Endpoint, PendingEvent
from ..network.client import NetworkClient
from ..network.retry import RetryingTransport
from .payloads import SaveOpenPayload, SavePreferencesPayload, to_query_params

logger = get_service_logger("delivery.event_sync")


class FlushResult(NamedTuple):
    """Outcome of replaying the pending queue"""
    success_count: int
    failure_count: int


class EventDeliverySync:
    """
    Delivers consent events to https://<privacy_domain>/<endpoint>.

    `privacy_domain` is the host used for queued events; live sends use the
    privacy domain of the config they were made with.
    """

    def __init__(
        self,
        client: NetworkClient,
        store: ConsentStore,
        transport: RetryingTransport,
        privacy_domain: str,
    ):
        self.client = client
        self.store = store
        self.transport = transport
        self.privacy_domain = privacy_domain

        self._sent_count = 0
        self._queued_count = 0

    def _build_url(self, endpoint: Endpoint, privacy_domain: str | None = None) -> str:
        return f"https://{privacy_domain or self.privacy_domain}/{endpoint.value}"

    async def send_preferences(
        self,
        preferences: ConsentPreferences,
        config: ConsentConfig,
    ) -> None:
        """
        POST preferences to the backend.

        Raises:
            ConsentError: Delivery failed after all retries (event queued)
        """
        payload = SavePreferencesPayload.build(
            preferences, config, consent_id=self.store.get_or_create_unique_id()
        ).model_dump(mode="json")
        url = self._build_url(Endpoint.SAVE_PREFERENCES, config.privacy_domain)

        await self._deliver_or_queue(
            Endpoint.SAVE_PREFERENCES,
            payload,
            lambda: self.client.request(url, method="POST", json_body=payload),
        )

    async def send_open_event(self, config: ConsentConfig) -> None:
        """
        Record that the banner was opened.

        Raises:
            ConsentError: Delivery failed after all retries (event queued)
        """
        payload = SaveOpenPayload.build(
            config, consent_id=self.store.get_or_create_unique_id()
        ).model_dump(mode="json")
        url = self._build_url(Endpoint.SAVE_OPEN, config.privacy_domain)

        await self._deliver_or_queue(
            Endpoint.SAVE_OPEN,
            payload,
            lambda: self.client.request(url, method="GET", params=to_query_params(payload)),
        )

    async def flush_pending(self) -> FlushResult:
        """
        Replay every queued event once, concurrently, without retry.

        Returns:
            FlushResult(success_count, failure_count)
        """
        events = self.store.load_pending_events()
        if not events:
            return FlushResult(0, 0)

        logger.info(f"Flushing {len(events)} pending event(s)")
        outcomes = await asyncio.gather(*(self._send_once(event) for event in events))

        delivered_ids = {event.event_id for event, ok in zip(events, outcomes) if ok}
        if delivered_ids:
            try:
                self.store.update_pending_events(
                    lambda current: [e for e in current if e.event_id not in delivered_ids]
                )
            except StorageError as e:
                # Delivered events stay queued and will be re-sent (at-least-once)
                logger.error(f"Failed to prune delivered events: {e}")

        result = FlushResult(len(delivered_ids), len(events) - len(delivered_ids))
        self._sent_count += result.success_count
        log_flush(logger, result.success_count, result.failure_count)
        return result

    async def _send_once(self, event: PendingEvent) -> bool:
        """Single delivery attempt for a queued event"""
        try:
            if event.endpoint == Endpoint.SAVE_PREFERENCES:
                await self.client.request(
                    self._build_url(event.endpoint),
                    method="POST",
                    json_body=event.payload,
                )
            else:
                await self.client.request(
                    self._build_url(event.endpoint),
                    method="GET",
                    params=to_query_params(event.payload),
                )
        except ConsentError as e:
            logger.debug(f"Pending {event.endpoint.value} still failing: {e}")
            return False
        return True

    async def _deliver_or_queue(self, endpoint: Endpoint, payload: dict[str, Any], send) -> None:
        try:
            await self.transport.retry(send, label=endpoint.value)
        except ConsentError as e:
            self._queue_failed(endpoint, payload)
            log_delivery(logger, endpoint.value, success=False, error=str(e))
            raise

        self._sent_count += 1
        log_delivery(logger, endpoint.value)

    def _queue_failed(self, endpoint: Endpoint, payload: dict[str, Any]) -> None:
        """Best-effort append; the delivery error is the one reported"""
        try:
            self.store.append_pending_event(PendingEvent(endpoint=endpoint, payload=payload))
            self._queued_count += 1
        except StorageError as e:
            logger.error(f"Failed to queue {endpoint.value} event: {e}")

    def get_stats(self) -> dict[str, int]:
        return {
            "sent": self._sent_count,
            "queued": self._queued_count,
            "pending": len(self.store.load_pending_events()),
        }
