"""Completion webhook tests."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from action_status import ActionStatus
from models.webhook_payload import WebhookPayload
from notifications import WebhookNotifier, parse_webhook_url


def _session(status_code: int = 200) -> MagicMock:
    session = MagicMock(spec=requests.Session)
    session.post.return_value = MagicMock(status_code=status_code)
    return session


class TestParseWebhookUrl:
    def test_host_and_path(self) -> None:
        assert parse_webhook_url("https://hooks.example.com/cards/done?x=1") == (
            "hooks.example.com", "/cards/done?x=1",
        )

    @pytest.mark.parametrize("url", [
        "http://hooks.example.com/done",
        "https://hooks.example.com",
        "hooks.example.com/done",
        "ftp://https://hooks.example.com/done",
        "",
    ])
    def test_rejected(self, url: str) -> None:
        assert parse_webhook_url(url) is None


class TestNotifyDone:
    def test_posts_compact_payload(self, status: ActionStatus) -> None:
        session = _session()
        notifier = WebhookNotifier("https://hooks.example.com/done", status, session=session)

        thread = notifier.notify_done("owner/repo")
        assert thread is not None
        thread.join()

        args, kwargs = session.post.call_args
        assert args[0] == "https://hooks.example.com/done"
        assert kwargs["data"] == b'{"repo":"owner/repo"}'
        assert json.loads(kwargs["data"]) == {"repo": "owner/repo"}
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert "timeout" not in kwargs
        assert not status.failed

    def test_not_configured_is_skipped(self, status: ActionStatus) -> None:
        session = _session()
        notifier = WebhookNotifier(None, status, session=session)

        assert notifier.notify_done("owner/repo") is None
        session.post.assert_not_called()
        assert not status.failed

    def test_invalid_url_fails_without_request(self, status: ActionStatus) -> None:
        session = _session()
        notifier = WebhookNotifier("http://insecure.example.com/done", status, session=session)

        assert notifier.notify_done("owner/repo") is None
        session.post.assert_not_called()
        assert status.failures == ["Invalid webhook url."]

    def test_non_200_reported(self, status: ActionStatus) -> None:
        notifier = WebhookNotifier("https://hooks.example.com/done", status, session=_session(201))

        notifier.notify_done("owner/repo").join()

        assert status.failures == ["Webhook returned 201."]

    def test_transport_error_reported(self, status: ActionStatus) -> None:
        session = MagicMock(spec=requests.Session)
        session.post.side_effect = requests.ConnectionError("connection refused")
        notifier = WebhookNotifier("https://hooks.example.com/done", status, session=session)

        notifier.notify_done("owner/repo").join()

        assert len(status.failures) == 1
        assert status.failures[0].startswith("Webhook error: ")
        assert "connection refused" in status.failures[0]


def test_send_is_single_attempt(status: ActionStatus) -> None:
    session = _session(500)
    notifier = WebhookNotifier("https://hooks.example.com/done", status, session=session)

    assert notifier.send("hooks.example.com", "/done", WebhookPayload(repo="o/r")) is False
    assert session.post.call_count == 1


class TestSessionLifecycle:
    def test_no_session_when_not_configured(self, status: ActionStatus) -> None:
        with patch("notifications.requests.Session") as mock_session:
            assert WebhookNotifier(None, status).notify_done("owner/repo") is None

        mock_session.assert_not_called()

    def test_own_session_closed_after_send(self, status: ActionStatus) -> None:
        with patch("notifications.requests.Session") as mock_session:
            session = mock_session.return_value
            session.post.return_value = MagicMock(status_code=200)

            WebhookNotifier("https://hooks.example.com/done", status).notify_done("owner/repo").join()

        session.post.assert_called_once()
        session.close.assert_called_once()
        assert not status.failed

    def test_own_session_closed_on_error(self, status: ActionStatus) -> None:
        with patch("notifications.requests.Session") as mock_session:
            session = mock_session.return_value
            session.post.side_effect = requests.ConnectionError("connection refused")

            WebhookNotifier("https://hooks.example.com/done", status).send(
                "hooks.example.com", "/done", WebhookPayload(repo="o/r"),
            )

        session.close.assert_called_once()
        assert status.failed

    def test_injected_session_left_open(self, status: ActionStatus) -> None:
        session = _session()

        WebhookNotifier("https://hooks.example.com/done", status, session=session).notify_done("owner/repo").join()

        session.close.assert_not_called()
