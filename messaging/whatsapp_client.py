import requests
import json
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class WhatsAppClient:
    def __init__(self, access_token: Optional[str], phone_number_id: Optional[str], api_version: str = "v18.0"):
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_version = api_version
        self.base_url = "https://graph.facebook.com"

        logger.info(f"🔧 WhatsAppClient initialized:")
        logger.info(f"   Token: {'***' + (access_token[-4:] if access_token and len(access_token) > 4 else 'NOT_SET')}")
        logger.info(f"   Phone Number ID: {phone_number_id or 'NOT_SET'}")

    @property
    def enabled(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def _messages_url(self) -> str:
        return f"{self.base_url}/{self.api_version}/{self.phone_number_id}/messages"

    async def send_message(self, to: str, body: str) -> bool:
        """Send a text message via the WhatsApp Cloud API with detailed logging"""

        logger.info(f"📤 WHATSAPP SEND ATTEMPT:")
        logger.info(f"   To: {to}")
        logger.info(f"   Message: '{body[:100]}{'...' if len(body) > 100 else ''}'")

        if not self.enabled:
            logger.error(f"❌ WHATSAPP SEND FAILED: Missing credentials")
            logger.error(f"   Token: {bool(self.access_token)}")
            logger.error(f"   Phone Number ID: {bool(self.phone_number_id)}")
            return False

        url = self._messages_url()
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json"
        }
        payload = {
            "messaging_product": "whatsapp",
            "to": to,
            "type": "text",
            "text": {"body": body}
        }

        try:
            response = requests.post(url, headers=headers, json=payload, timeout=10)
            logger.info(f"📨 WhatsApp API Response: {response.status_code}")

            if response.status_code in [200, 201]:
                logger.info(f"✅ WhatsApp message sent to {to}")
                return True

            logger.error(f"❌ WhatsApp send failed with status {response.status_code}")
            try:
                error_data = response.json()
                logger.error(f"   Parsed error: {json.dumps(error_data, indent=2)}")
            except ValueError:
                logger.error(f"   Error response: {response.text}")
            return False

        except requests.exceptions.Timeout as e:
            logger.error(f"❌ WhatsApp send timeout: {str(e)}")
            return False
        except requests.exceptions.ConnectionError as e:
            logger.error(f"❌ WhatsApp send connection error: {str(e)}")
            return False
        except Exception as e:
            logger.error(f"❌ WhatsApp send unexpected error: {str(e)}", exc_info=True)
            return False
