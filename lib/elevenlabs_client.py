import requests
import logging
from typing import Optional
from lib.config import Settings, get_settings
from lib.error_handler import UpstreamError

logger = logging.getLogger(__name__)

class ElevenLabsClient:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.agent_id = self.settings.elevenlabs_agent_id

    def get_signed_url(self) -> str:
        """Ask ElevenLabs for a short-lived signed conversation URL for our agent."""
        try:
            response = requests.get(
                self.settings.signed_url_endpoint,
                params={'agent_id': self.agent_id},
                headers={'xi-api-key': self.settings.elevenlabs_api_key},
                timeout=self.settings.elevenlabs_timeout
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to reach ElevenLabs: {str(e)}")
            raise UpstreamError(f"ElevenLabs request failed: {str(e)}")

        if not response.ok:
            logger.error(f"ElevenLabs API error: {response.status_code} {response.text[:200]}")
            raise UpstreamError(f"ElevenLabs API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(f"ElevenLabs returned invalid JSON: {str(e)}")

        signed_url = data.get('signed_url') if isinstance(data, dict) else None
        if not signed_url:
            raise UpstreamError("ElevenLabs response missing signed_url")
        return signed_url
