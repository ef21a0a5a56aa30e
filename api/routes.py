from flask import Flask, Blueprint, request, jsonify
from flask_cors import CORS
from functools import wraps
from typing import Any, Dict, Optional
import logging
import sys

from api.services.quota import QuotaService
from api.services.sessions import SessionService
from lib.config import Settings, get_settings
from lib.database import Database
from lib.elevenlabs_client import ElevenLabsClient
from lib.error_handler import BadRequest, ErrorHandler, MethodNotAllowed

logger = logging.getLogger(__name__)

# OPTIONS is answered by Flask and decorated by flask-cors
ALL_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE']
CORS_METHODS = ['GET', 'OPTIONS', 'POST']
CORS_HEADERS = ['Content-Type']

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stdout
    )

def require(body: Dict[str, Any], *fields: str, message: str = 'Missing required fields') -> None:
    """Reject bodies where any field is absent or empty"""
    if any(not body.get(field) for field in fields):
        raise BadRequest(message)

def parse_duration(value: Any) -> int:
    """Durations are whole non-negative seconds; 0 is valid"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BadRequest('duration_seconds must be a number')
    if isinstance(value, float):
        if not value.is_integer():
            raise BadRequest('duration_seconds must be whole seconds')
        value = int(value)
    if value < 0:
        raise BadRequest('duration_seconds must not be negative')
    return value

def voice_endpoint(view):
    """POST-only JSON endpoint"""
    @wraps(view)
    def wrapper():
        try:
            if request.method != 'POST':
                raise MethodNotAllowed(f"{request.method} not allowed on {request.path}")
            body = request.get_json(silent=True)
            if not isinstance(body, dict):
                body = {}
            return jsonify(view(body)), 200
        except Exception as e:
            payload, status = ErrorHandler.to_response(e)
            return jsonify(payload), status
    return wrapper

def create_voice_blueprint(quota_service: QuotaService, session_service: SessionService) -> Blueprint:
    bp = Blueprint('voice', __name__, url_prefix='/api/voice')

    @bp.route('/check-availability', methods=ALL_METHODS)
    @voice_endpoint
    def check_availability(body):
        """Minutes left for the user this month"""
        require(body, 'user_id', message='user_id required')
        return quota_service.check_availability(body['user_id'])

    @bp.route('/get-signed-url', methods=ALL_METHODS)
    @voice_endpoint
    def get_signed_url(body):
        """Signed ElevenLabs URL plus the id of the session recorded for it"""
        require(body, 'user_id', message='user_id required')
        return session_service.open_session(body['user_id'])

    @bp.route('/update-duration', methods=ALL_METHODS)
    @voice_endpoint
    def update_duration(body):
        require(body, 'user_id', 'session_id')
        if 'duration_seconds' not in body:
            raise BadRequest('Missing required fields')
        session_service.update_duration(
            body['user_id'],
            body['session_id'],
            parse_duration(body['duration_seconds'])
        )
        return {'success': True}

    @bp.route('/end-session', methods=ALL_METHODS)
    @voice_endpoint
    def end_session(body):
        require(body, 'user_id', 'session_id')
        session_service.end_session(
            body['user_id'],
            body['session_id'],
            parse_duration(body['duration_seconds']) if 'duration_seconds' in body else None
        )
        return {'success': True}

    return bp

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    voice_client: Optional[ElevenLabsClient] = None
) -> Flask:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    database = database or Database(settings=settings)
    voice_client = voice_client or ElevenLabsClient(settings=settings)
    quota_service = QuotaService(database)
    session_service = SessionService(
        database,
        voice_client,
        quota_service=quota_service if settings.enforce_quota_on_open else None
    )

    app = Flask(__name__)
    app.register_blueprint(create_voice_blueprint(quota_service, session_service))

    CORS(
        app,
        origins=settings.cors_allow_origin,
        supports_credentials=True,
        methods=CORS_METHODS,
        allow_headers=CORS_HEADERS
    )

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.route('/api/health', methods=['GET'])
    def health():
        """Basic health check"""
        return jsonify({'status': 'healthy'})

    logger.info("Voice gateway app initialized")
    return app
