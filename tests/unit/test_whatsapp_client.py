"""
Unit tests for the WhatsApp Cloud API delivery client.
"""
import pytest
import requests
from unittest.mock import MagicMock, patch

from messaging.whatsapp_client import WhatsAppClient


@pytest.fixture
def client():
    return WhatsAppClient(access_token="token-1234", phone_number_id="555", api_version="v18.0")


@pytest.mark.asyncio
async def test_send_message_posts_text_payload(client):
    with patch("messaging.whatsapp_client.requests.post") as post:
        post.return_value = MagicMock(status_code=200, text="{}")
        assert await client.send_message("919800000001", "Hi there") is True

    args, kwargs = post.call_args
    assert args[0] == "https://graph.facebook.com/v18.0/555/messages"
    assert kwargs["headers"]["Authorization"] == "Bearer token-1234"
    assert kwargs["json"] == {
        "messaging_product": "whatsapp",
        "to": "919800000001",
        "type": "text",
        "text": {"body": "Hi there"},
    }


@pytest.mark.asyncio
async def test_error_status_returns_false(client):
    with patch("messaging.whatsapp_client.requests.post") as post:
        post.return_value = MagicMock(status_code=401, text="nope")
        post.return_value.json.return_value = {"error": {"message": "Invalid token"}}
        assert await client.send_message("919800000001", "Hi") is False


@pytest.mark.asyncio
async def test_network_error_returns_false(client):
    with patch("messaging.whatsapp_client.requests.post", side_effect=requests.exceptions.ConnectionError("down")):
        assert await client.send_message("919800000001", "Hi") is False


@pytest.mark.asyncio
async def test_missing_credentials_skip_the_request():
    client = WhatsAppClient(access_token=None, phone_number_id=None)
    with patch("messaging.whatsapp_client.requests.post") as post:
        assert await client.send_message("919800000001", "Hi") is False
        post.assert_not_called()
    assert client.enabled is False
