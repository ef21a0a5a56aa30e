from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # Supabase settings
    supabase_url: str = ''
    supabase_key: str = ''

    # ElevenLabs settings
    elevenlabs_api_key: str = ''
    elevenlabs_agent_id: str = ''
    elevenlabs_base_url: str = 'https://api.elevenlabs.io'
    elevenlabs_timeout: float = 10.0

    # Quota settings
    enforce_quota_on_open: bool = False

    # HTTP settings
    cors_allow_origin: str = '*'
    log_level: str = 'INFO'

    @property
    def signed_url_endpoint(self) -> str:
        return f"{self.elevenlabs_base_url.rstrip('/')}/v1/convai/conversation/get_signed_url"

def get_settings() -> Settings:
    return Settings()
