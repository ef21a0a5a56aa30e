import logging
import secrets
from datetime import datetime, timezone
from typing import Callable, Dict, Any, Optional

from api.services.quota import QuotaService
from lib.database import Database, SessionIdConflict
from lib.elevenlabs_client import ElevenLabsClient
from lib.error_handler import DatabaseError, QuotaExceeded

logger = logging.getLogger(__name__)

SESSION_ID_ATTEMPTS = 3

def new_session_id() -> str:
    return f"sess_{secrets.token_hex(16)}"

def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()

class SessionService:
    def __init__(
        self,
        database: Database,
        voice_client: ElevenLabsClient,
        quota_service: Optional[QuotaService] = None,
        id_factory: Callable[[], str] = new_session_id
    ):
        self.db = database
        self.voice_client = voice_client
        self.quota = quota_service
        self.id_factory = id_factory

    def open_session(self, user_id: str) -> Dict[str, str]:
        """Mint a signed conversation URL and record a new active session"""
        if self.quota is not None:
            availability = self.quota.check_availability(user_id, plan_errors_as_no_plan=False)
            if not availability['can_start']:
                raise QuotaExceeded(f"User {user_id} has no minutes left this month")

        signed_url = self.voice_client.get_signed_url()

        try:
            session_id = self._insert_session(user_id)
        except DatabaseError:
            # The signed URL is simply dropped, nothing to revoke it with
            logger.warning(f"Discarding signed URL for {user_id} after failed session insert")
            raise

        logger.info(f"Opened voice session {session_id} for user {user_id}")
        return {
            'signed_url': signed_url,
            'session_id': session_id
        }

    def _insert_session(self, user_id: str) -> str:
        for attempt in range(1, SESSION_ID_ATTEMPTS + 1):
            session_id = self.id_factory()
            try:
                self.db.insert_session({
                    'session_id': session_id,
                    'user_id': user_id,
                    'duration_seconds': 0,
                    'status': 'active'
                })
                return session_id
            except SessionIdConflict:
                logger.warning(f"Session id collision on attempt {attempt}, regenerating")
        raise DatabaseError(f"Could not allocate a unique session id after {SESSION_ID_ATTEMPTS} attempts")

    def update_duration(self, user_id: str, session_id: str, duration_seconds: int) -> None:
        """Checkpoint the live duration of an in-progress session"""
        self.db.update_session(session_id, user_id, {
            'duration_seconds': duration_seconds,
            'updated_at': utc_timestamp()
        })

    def end_session(self, user_id: str, session_id: str, duration_seconds: Optional[int] = None) -> None:
        """Mark a session completed; without a duration the last checkpoint stands"""
        fields = {
            'status': 'completed',
            'ended_at': utc_timestamp()
        }
        if duration_seconds is not None:
            fields['duration_seconds'] = duration_seconds
        self.db.update_session(session_id, user_id, fields)
        logger.info(f"Closed voice session {session_id} for user {user_id}")
