"""Slack notifications for deployment runs"""

import logging
from datetime import datetime
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class SlackNotifier:
    def __init__(self, webhook: Optional[str], timeout: int = 10):
        self.webhook = webhook
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.webhook)

    def send(self, text: str, fields=None) -> bool:
        """Post a message; failures are logged, never raised"""
        if not self.enabled:
            return False

        payload = {"text": text}
        if fields:
            payload["attachments"] = [{
                "fields": [
                    {"title": title, "value": str(value), "short": True}
                    for title, value in fields.items()
                ]
            }]

        try:
            response = requests.post(self.webhook, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to send Slack alert: {e}")
            return False
        return True

    def deployment_succeeded(self, profile, result) -> bool:
        fields = {kind: handle.address for kind, handle in result.handles.items()}
        fields["Steps"] = len(result)
        return self.send(f"Deployment to '{profile.name}' completed", fields)

    def deployment_failed(self, profile_name: str, error: Exception, completed: int = 0) -> bool:
        return self.send(
            f"Deployment to '{profile_name}' failed: {error}",
            {"Completed steps": completed, "Time": datetime.now().strftime('%Y-%m-%d %H:%M:%S')},
        )
