import json
import re
import logging
import threading
from typing import Optional, Tuple

import requests

from action_status import ActionStatus
from models.webhook_payload import WebhookPayload

logger = logging.getLogger(__name__)

WEBHOOK_URL_PATTERN = re.compile(r"https://([^/]+)(/.*)")


def parse_webhook_url(url: str) -> Optional[Tuple[str, str]]:
    """
    Split an 'https://<host><path>' url into (host, path). Anything else is rejected.
    """
    match = WEBHOOK_URL_PATTERN.match(url or "")
    if match is None:
        return None
    return match.group(1), match.group(2)


class WebhookNotifier:
    """
    Calls the on-done webhook once a deploy has been published.

    Sending is fire-and-forget: failures are reported on the run status but
    never roll back the publish that already happened.
    """

    def __init__(self, url: Optional[str], status: ActionStatus, session: Optional[requests.Session] = None):
        self.url = url
        self.status = status
        self.session = session

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def send(self, host: str, path: str, payload: WebhookPayload) -> bool:
        data = json.dumps(payload.model_dump(), separators=(",", ":"))
        session = self.session or requests.Session()
        try:
            # No timeout and no retries: one attempt, as long as it takes.
            response = session.post(
                f"https://{host}{path}",
                data=data.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
        except requests.RequestException as e:
            self.status.set_failed(f"Webhook error: {e}.")
            return False
        finally:
            if self.session is None:
                session.close()

        if response.status_code != 200:
            self.status.set_failed(f"Webhook returned {response.status_code}.")
            return False

        logger.info("onDone webhook delivered successfully.")
        return True

    def notify_done(self, repo: str) -> Optional[threading.Thread]:
        """
        Dispatch the completion webhook on a background thread and return it without joining.

        Returns None when the webhook is not configured or its url is invalid.
        """
        if not self.enabled:
            logger.info("Skip calling onDone webhook.")
            return None

        logger.info(f"Calling onDone webhook at {self.url}")
        parsed = parse_webhook_url(self.url)
        if parsed is None:
            self.status.set_failed("Invalid webhook url.")
            return None

        host, path = parsed
        thread = threading.Thread(
            target=self.send,
            args=(host, path, WebhookPayload(repo=repo)),
            name="on-done-webhook",
        )
        thread.start()
        return thread
