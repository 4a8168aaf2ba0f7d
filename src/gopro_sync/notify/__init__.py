"""
Push notifications through the Automate cloud messaging endpoint.

Failures are logged and never interrupt the pipeline.
"""

import logging
from typing import Optional

import requests

logger = logging.getLogger(__name__)


class PushNotifier:
    """Sends short messages to a phone running Automate."""

    def __init__(self, config, session: Optional[requests.Session] = None):
        """
        Initialize the notifier.

        Args:
            config: Configuration with notify settings
            session: Optional requests session for connection reuse
        """
        self.config = config.notify
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.config.enabled and self.config.secret and self.config.account)

    def send(self, message: str) -> bool:
        """Send ``message`` to the configured device."""
        return self.notify(self.config.device, message)

    def notify(self, device: str, message: str) -> bool:
        """
        Send ``message`` to ``device``.

        Returns:
            True if the message was accepted
        """
        if not self.configured:
            logger.debug(f"Push notifications not configured, skipping: {message}")
            return False

        try:
            response = self._session.post(
                self.config.address,
                data={
                    "secret": self.config.secret,
                    "to": self.config.account,
                    "device": device,
                    "payload": message,
                },
                timeout=self.config.timeout_sec,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to send push notification: {e}")
            return False

        logger.info(f"Push notification sent successfully to device \"{device}\": {message}")
        return True
