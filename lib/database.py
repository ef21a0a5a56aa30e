import logging
from datetime import datetime
from typing import Dict, List, Optional, Any
from supabase import create_client, Client

from lib.config import Settings, get_settings
from lib.error_handler import DatabaseError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = '23505'

class SessionIdConflict(DatabaseError):
    """Insert rejected because the session_id already exists"""

class Database:
    def __init__(self, supabase_client: Optional[Client] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._supabase = supabase_client
        self.plans_table = 'user_plans'
        self.sessions_table = 'voice_sessions'

    @property
    def supabase(self) -> Client:
        # Created on first query so importing the app needs no credentials
        if self._supabase is None:
            logger.info("Initializing Supabase client...")
            try:
                self._supabase = create_client(
                    self.settings.supabase_url,
                    self.settings.supabase_key
                )
            except Exception as e:
                raise DatabaseError(f"Error initializing Supabase client: {str(e)}")
            logger.info("Supabase client initialized successfully")
        return self._supabase

    def _execute(self, query, action: str):
        try:
            result = query.execute()
        except Exception as e:
            if getattr(e, 'code', None) == UNIQUE_VIOLATION:
                raise SessionIdConflict(f"Error {action}: {str(e)}")
            raise DatabaseError(f"Error {action}: {str(e)}")
        if hasattr(result, 'error') and result.error:
            raise DatabaseError(f"Error {action}: {result.error}")
        return result

    def get_active_plan(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Return the user's active plan row, or None when there is none"""
        query = self.supabase.table(self.plans_table)\
            .select('*')\
            .eq('user_id', user_id)\
            .eq('active', True)\
            .limit(1)
        result = self._execute(query, 'fetching plan')
        return result.data[0] if result.data else None

    def get_session_durations(self, user_id: str, since: datetime) -> List[Optional[int]]:
        """Durations of the user's sessions created at or after `since`"""
        query = self.supabase.table(self.sessions_table)\
            .select('duration_seconds')\
            .eq('user_id', user_id)\
            .gte('created_at', since.isoformat())
        result = self._execute(query, 'fetching sessions')
        return [row.get('duration_seconds') for row in (result.data or [])]

    def insert_session(self, record: Dict[str, Any]) -> None:
        query = self.supabase.table(self.sessions_table).insert(record)
        self._execute(query, 'creating session')

    def update_session(self, session_id: str, user_id: str, fields: Dict[str, Any]) -> None:
        """Update one session; matching nothing is not an error"""
        query = self.supabase.table(self.sessions_table)\
            .update(fields)\
            .eq('session_id', session_id)\
            .eq('user_id', user_id)
        self._execute(query, 'updating session')
