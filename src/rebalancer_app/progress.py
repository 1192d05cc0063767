"""Progress sinks: rebalance progress to logs and ntfy notifications"""

import logging
from typing import List, Optional
import aiohttp

from broker_gateway import ProgressEvent, ProgressSink, Severity
from rebalancer_config import NotificationConfig

SEVERITY_LEVELS = {
    'info': logging.INFO,
    'notice': logging.INFO,
    'success': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
}


class LoggingProgressSink(ProgressSink):
    """Write progress messages to a logger, keeping every event for later inspection"""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('rebalancer.progress')
        self.events: List[ProgressEvent] = []

    async def emit(self, message: str, severity: Severity = 'info', is_final: bool = False):
        self.events.append(ProgressEvent(message=message, severity=severity, is_final=is_final))
        self.logger.log(SEVERITY_LEVELS.get(severity, logging.INFO), message)


class NtfyProgressSink(ProgressSink):
    """Send the final outcome of a run, and any errors leading up to it, via ntfy"""

    def __init__(self, notification_config: NotificationConfig, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.enabled = notification_config.enabled
        self.channel_name = notification_config.channel
        self.ntfy_url = notification_config.ntfy_url.rstrip('/')
        self._errors: List[str] = []

    async def emit(self, message: str, severity: Severity = 'info', is_final: bool = False):
        if severity == 'error' and not is_final:
            self._errors.append(message.strip())

        if not is_final:
            return

        if not self.enabled:
            self.logger.debug("Notifications disabled, skipping")
            return

        if not self.channel_name:
            self.logger.warning("Notification channel not set, skipping notification")
            return

        success = severity != 'error'
        message_lines = [message.strip()]
        if self._errors:
            message_lines.extend(["", f"Order errors ({len(self._errors)}):"])
            message_lines.extend(self._errors)

        try:
            await self._send_ntfy(
                title="Rebalance Success" if success else "Rebalance Failed",
                message="\n".join(message_lines),
                tags=["white_check_mark"] if success else ["x"]
            )
        except Exception as e:
            self.logger.error(f"Failed to send notification: {e}")
        finally:
            self._errors = []

    async def _send_ntfy(self, title: str, message: str, priority: str = "default",
                         tags: Optional[list] = None):
        """Send notification via ntfy"""
        url = f"{self.ntfy_url}/{self.channel_name}"

        headers = {
            "Title": title,
            "Priority": priority,
        }

        if tags:
            headers["Tags"] = ",".join(tags)

        async with aiohttp.ClientSession() as session:
            async with session.post(url, data=message.encode('utf-8'), headers=headers) as response:
                self.logger.debug(f"ntfy response status: {response.status}")
                if response.status != 200:
                    error_text = await response.text()
                    self.logger.error(
                        f"Failed to send notification: {response.status} - {error_text}"
                    )


class CompositeProgressSink(ProgressSink):
    """Fan out to several sinks; one failing sink does not stop the others"""

    def __init__(self, sinks: List[ProgressSink], logger: Optional[logging.Logger] = None):
        self.sinks = sinks
        self.logger = logger or logging.getLogger(__name__)

    async def emit(self, message: str, severity: Severity = 'info', is_final: bool = False):
        for sink in self.sinks:
            try:
                await sink.emit(message, severity, is_final)
            except Exception as e:
                self.logger.warning(f"{type(sink).__name__} failed: {e}")
