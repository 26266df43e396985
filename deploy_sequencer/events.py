"""
Structured event stream for deployment progress

Every state change of a step or post-action is emitted as an Event, in order,
to each subscribed observer. Observers are plain callables.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, List, Optional

import requests

from .models import StepStatus, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Event:
    run_id: str
    step: str
    status: StepStatus
    action: Optional[str] = None
    detail: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload


Observer = Callable[[Event], None]


class EventStream:
    def __init__(self):
        self._observers: List[Observer] = []
        self.history: List[Event] = []

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def emit(self, event: Event) -> None:
        self.history.append(event)
        for observer in self._observers:
            try:
                observer(event)
            except Exception as e:
                logger.error(f"Event observer {observer!r} failed on {event.step}: {e}")


def log_event(event: Event) -> None:
    """Observer writing each event to the sequencer log"""
    target = event.step if event.action is None else f"{event.step} ({event.action})"
    if event.status == StepStatus.FAILED:
        logger.error(f"[{event.run_id}] {target}: failed - {event.detail.get('error')}")
    elif event.status == StepStatus.SUCCEEDED:
        parts = []
        if event.detail.get("address"):
            parts.append(f"address {event.detail['address']}")
        if event.detail.get("transaction_id"):
            parts.append(f"tx {event.detail['transaction_id']}")
        logger.info(f"[{event.run_id}] {target}: succeeded {', '.join(parts)}".rstrip())
    else:
        logger.info(f"[{event.run_id}] {target}: {event.status.value}")


class SlackNotifier:
    """Posts failure events to a Slack incoming webhook"""

    def __init__(self, webhook_url: str, timeout: int = 10):
        self.webhook_url = webhook_url
        self.timeout = timeout

    def __call__(self, event: Event) -> None:
        if event.status != StepStatus.FAILED:
            return
        data = event.to_dict()
        target = data["step"] if data["action"] is None else f"{data['step']} / {data['action']}"
        payload = {
            "text": f"Deployment run {data['run_id']} failed at {target}",
            "attachments": [
                {
                    "fields": [
                        {"title": "Step", "value": data["step"], "short": True},
                        {"title": "Action", "value": data["action"] or "deploy", "short": True},
                        {"title": "Error", "value": str(data["detail"].get("error")), "short": False},
                        {"title": "Time", "value": data["timestamp"], "short": True},
                    ]
                }
            ]
        }
        try:
            response = requests.post(self.webhook_url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send Slack alert: {e}")
