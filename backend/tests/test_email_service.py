"""Tests for the SendGrid match notification."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from coffee_match.services import email_service

SLOTS = [{"Day": "Monday", "Period": "Morning"}]


def _config(api_key="SG.test", sender="noreply@example.com", template_id="d-123"):
    return lambda: (api_key, sender, "Coffee Match", template_id)


class TestBuildMatchAcceptedMail:
    def test_template_data(self):
        with patch.object(email_service, "_get_config", _config()):
            mail = email_service.build_match_accepted_mail(
                "bob@example.com", "Bob", "Alice", "alice@example.com", SLOTS
            )

        body = mail.get()
        assert body["template_id"] == "d-123"
        assert body["from"]["email"] == "noreply@example.com"
        personalization = body["personalizations"][0]
        assert personalization["to"][0]["email"] == "bob@example.com"
        assert personalization["dynamic_template_data"] == {
            "name": "Bob",
            "matchName": "Alice",
            "matchEmail": "alice@example.com",
            "availability": SLOTS,
        }


class TestSendMatchAccepted:
    async def test_unconfigured_skips(self):
        with patch.object(email_service, "_get_config", _config(api_key="")):
            sent = await email_service.send_match_accepted("bob@example.com", "Bob", "Alice", "alice@example.com", SLOTS)
        assert sent is False

    async def test_sends_through_client(self):
        client = MagicMock()
        client.send.return_value = SimpleNamespace(status_code=202, body="")
        with patch.object(email_service, "_get_config", _config()), \
                patch.object(email_service, "_get_client", return_value=client):
            sent = await email_service.send_match_accepted("bob@example.com", "Bob", "Alice", "alice@example.com", SLOTS)

        assert sent is True
        client.send.assert_called_once()

    async def test_error_status_returns_false(self):
        client = MagicMock()
        client.send.return_value = SimpleNamespace(status_code=400, body="bad request")
        with patch.object(email_service, "_get_config", _config()), \
                patch.object(email_service, "_get_client", return_value=client):
            sent = await email_service.send_match_accepted("bob@example.com", "Bob", "Alice", "alice@example.com", SLOTS)

        assert sent is False

    async def test_client_exception_returns_false(self):
        client = MagicMock()
        client.send.side_effect = RuntimeError("network down")
        with patch.object(email_service, "_get_config", _config()), \
                patch.object(email_service, "_get_client", return_value=client):
            sent = await email_service.send_match_accepted("bob@example.com", "Bob", "Alice", "alice@example.com", SLOTS)

        assert sent is False
