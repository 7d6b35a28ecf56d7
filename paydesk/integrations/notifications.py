import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

LIQUIDATION_AVAILABLE = "liquidation_available"
PAYMENT_COMPLETED = "payment_completed"

class Notifier(ABC):
    """Employee notification sink: notify(employee_id, event_type, payload)."""

    @abstractmethod
    def notify(self, employee_id: str, event_type: str, payload: Dict[str, Any]):
        pass

class LogNotifier(Notifier):
    def notify(self, employee_id: str, event_type: str, payload: Dict[str, Any]):
        logger.info("Notify employee %s: %s %s", employee_id, event_type, payload)

class WebhookNotifier(Notifier):
    """POSTs each event as JSON to a webhook URL."""

    def __init__(self, url: str, timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def test_connection(self) -> bool:
        try:
            r = self.session.head(self.url, timeout=self.timeout)
        except requests.RequestException:
            return False
        return r.status_code < 500

    def notify(self, employee_id: str, event_type: str, payload: Dict[str, Any]):
        body = {"employee_id": employee_id, "event": event_type, "payload": payload}
        try:
            r = self.session.post(self.url, json=body, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise RuntimeError(f"Webhook notification failed: {e}") from e

def build_notifier(webhook_url: Optional[str] = None, timeout: float = 10.0) -> Notifier:
    if webhook_url:
        return WebhookNotifier(webhook_url, timeout=timeout)
    return LogNotifier()

def safe_notify(notifier: Optional[Notifier], employee_id: str, event_type: str, payload: Dict[str, Any]) -> bool:
    """Fire and forget; returns False when the sink failed."""
    if notifier is None:
        return False
    try:
        notifier.notify(employee_id, event_type, payload)
    except Exception as e:
        logger.warning("Notification %s for employee %s failed: %s", event_type, employee_id, e)
        return False
    return True
