"""Operator notifications for the human control protocol.

Subscribes to override and evaluation-failure events and tells the
configured operators. Delivery from the bus is at-least-once, so events
are deduplicated by id, and a redelivery after a partial failure only
reaches the recipients that were not yet sent to.
"""

from collections import deque

from steward.config.models import NotificationsConfig
from steward.events.bus import EventBus
from steward.events.models import EventType, OrchestrationEvent
from steward.notifications.sender import NotificationSender
from steward.observability.logging import get_logger

logger = get_logger(__name__)

SEEN_EVENTS_LIMIT = 1000


class OverrideNotifier:
    """Emails operators on override changes; emails and texts them on failures."""

    def __init__(self, sender: NotificationSender, config: NotificationsConfig) -> None:
        self._sender = sender
        self._config = config
        self._seen: deque[str] = deque(maxlen=SEEN_EVENTS_LIMIT)
        self._sent: dict[str, set[str]] = {}

    async def subscribe(self, bus: EventBus) -> None:
        """Register for the events operators are told about."""
        await bus.subscribe(EventType.OVERRIDE_SET.value, self.handle_event)
        await bus.subscribe(EventType.EVALUATION_FAILED.value, self.handle_event)

    async def handle_event(self, event: OrchestrationEvent) -> bool:
        """Notify operators about an event.

        Returns:
            True if notifications were sent, False if skipped
        """
        if not self._config.enabled:
            return False
        key = str(event.id)
        if key in self._seen:
            logger.debug("notification_duplicate_skipped", event_id=key)
            return False

        payload = event.payload
        task_id = payload.get("taskId")
        if event.type == EventType.OVERRIDE_SET:
            if payload.get("overridden"):
                subject = f"Task {task_id} paused for manual handling"
                body = (
                    f"Agent actions on task {task_id} are suppressed.\n"
                    f"Reason: {payload.get('reason') or 'not given'}\n"
                    f"Set by: {payload.get('byUserId') or 'unknown'} at {payload.get('at')}"
                )
            else:
                subject = f"Task {task_id} handed back to the agent"
                body = f"The override on task {task_id} was cleared; evaluation resumed."
            sms = None
        elif event.type == EventType.EVALUATION_FAILED:
            subject = f"Evaluation failed for task {task_id}"
            body = f"Task {task_id} could not be evaluated: {payload.get('error')}"
            sms = f"Steward: evaluation failed for task {task_id}"
        else:
            return False

        # Marked seen only once every send succeeded
        sent = self._sent.setdefault(key, set())
        if len(self._sent) > SEEN_EVENTS_LIMIT:
            self._sent.pop(next(iter(self._sent)))
        for address in self._config.operator_emails:
            if f"email:{address}" not in sent:
                await self._sender.send_email(address, subject, body)
                sent.add(f"email:{address}")
        if sms:
            for phone in self._config.operator_phones:
                if f"sms:{phone}" not in sent:
                    await self._sender.send_sms(phone, sms)
                    sent.add(f"sms:{phone}")
        self._sent.pop(key, None)
        self._seen.append(key)

        logger.info(
            "operators_notified",
            event_type=event.type.value,
            task_id=task_id,
            emails=len(self._config.operator_emails),
        )
        return True
