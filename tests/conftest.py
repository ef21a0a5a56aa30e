import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock
import sys
from pathlib import Path

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

from api.routes import create_app
from lib.config import Settings
from lib.database import Database
from lib.elevenlabs_client import ElevenLabsClient

TEST_USER = 'user-123'
OTHER_USER = 'user-456'
TEST_SIGNED_URL = 'wss://api.elevenlabs.io/v1/convai/conversation?agent_id=agent_test&conversation_signature=abc'


class FakeAPIError(Exception):
    """Mimics the postgrest error raised by execute()"""
    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class FakeResult:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the Supabase query builder for our handlers"""

    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.action = 'select'
        self.payload = None
        self.filters = []
        self.columns = '*'
        self.max_rows = None

    def select(self, columns='*'):
        self.action = 'select'
        self.columns = columns
        return self

    def insert(self, record):
        self.action = 'insert'
        self.payload = dict(record)
        return self

    def update(self, fields):
        self.action = 'update'
        self.payload = dict(fields)
        return self

    def eq(self, column, value):
        self.filters.append((column, lambda v, value=value: v == value))
        return self

    def gte(self, column, value):
        bound = datetime.fromisoformat(value)
        self.filters.append((column, lambda v: v is not None and datetime.fromisoformat(v) >= bound))
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def _matches(self, row):
        return all(check(row.get(column)) for column, check in self.filters)

    def execute(self):
        self.client.calls.append((self.table, self.action))
        if (self.table, self.action) in self.client.failures:
            raise FakeAPIError(f"{self.action} on {self.table} failed")

        rows = self.client.tables.setdefault(self.table, [])
        if self.action == 'insert':
            if self.client.conflicts:
                self.client.conflicts -= 1
                raise FakeAPIError('duplicate key value violates unique constraint', code='23505')
            row = dict(self.payload)
            row.setdefault('created_at', datetime.now(timezone.utc).isoformat())
            rows.append(row)
            return FakeResult([row])

        matched = [row for row in rows if self._matches(row)]
        if self.action == 'update':
            for row in matched:
                row.update(self.payload)
            return FakeResult([dict(row) for row in matched])

        if self.max_rows is not None:
            matched = matched[:self.max_rows]
        if self.columns != '*':
            wanted = [c.strip() for c in self.columns.split(',')]
            matched = [{c: row.get(c) for c in wanted} for row in matched]
        return FakeResult([dict(row) for row in matched])


class FakeSupabase:
    def __init__(self):
        self.tables = {'user_plans': [], 'voice_sessions': []}
        self.calls = []
        self.failures = set()
        self.conflicts = 0

    def table(self, name):
        return FakeQuery(self, name)

    def add_plan(self, user_id, voice_minutes, plan_name='pro', active=True):
        self.tables['user_plans'].append({
            'user_id': user_id,
            'plan_name': plan_name,
            'voice_minutes': voice_minutes,
            'active': active
        })

    def add_session(self, user_id, duration_seconds, created_at=None, session_id=None, status='completed'):
        row = {
            'session_id': session_id or f"sess_{len(self.tables['voice_sessions'])}",
            'user_id': user_id,
            'duration_seconds': duration_seconds,
            'status': status,
            'created_at': created_at or datetime.now().astimezone().isoformat()
        }
        self.tables['voice_sessions'].append(row)
        return row

    def session(self, session_id):
        return next(row for row in self.tables['voice_sessions'] if row['session_id'] == session_id)


@pytest.fixture
def settings():
    return Settings(
        supabase_url='https://test.supabase.co',
        supabase_key='test-key',
        elevenlabs_api_key='xi-test-key',
        elevenlabs_agent_id='agent_test'
    )

@pytest.fixture
def supabase_client():
    return FakeSupabase()

@pytest.fixture
def database(supabase_client, settings):
    return Database(supabase_client=supabase_client, settings=settings)

@pytest.fixture
def voice_client():
    mock_client = MagicMock(spec=ElevenLabsClient)
    mock_client.get_signed_url.return_value = TEST_SIGNED_URL
    return mock_client

@pytest.fixture
def test_client(settings, database, voice_client):
    app = create_app(settings=settings, database=database, voice_client=voice_client)
    app.config['TESTING'] = True
    return app.test_client()
