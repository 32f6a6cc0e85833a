"""Liveness and readiness endpoints for the scheduling service."""
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from proactive_scheduler.config import settings
from proactive_scheduler.models.database import db_session
from proactive_scheduler.services.completion import OpenAICompletionService

bp = Blueprint('health', __name__)


@bp.route('', methods=['GET'])
@bp.route('/', methods=['GET'])
def health_check():
    """Process is up; dependencies are not touched."""
    return jsonify({
        'status': 'healthy',
        'service': settings.APP_NAME,
        'version': settings.APP_VERSION,
        'timestamp': datetime.utcnow().isoformat()
    })


@bp.route('/ready', methods=['GET'])
def readiness_check():
    """
    Ready when messages can be stored and scheduling work can run:
    the database answers, the classifier is configured, the background
    queue accepts jobs and the slot zones load.
    """
    services = current_app.extensions['proactive']
    checks = {
        'database': check_database(),
        'classifier': check_classifier(services.detector.completion_service),
        'background_jobs': check_background_jobs(services.jobs),
        'timezones': check_timezones(
            services.slot_generator.default_timezone,
            services.slot_generator.reference_timezone
        )
    }

    all_healthy = all(c['status'] == 'healthy' for c in checks.values())

    return jsonify({
        'status': 'ready' if all_healthy else 'not_ready',
        'checks': checks,
        'timestamp': datetime.utcnow().isoformat()
    }), 200 if all_healthy else 503


def check_database():
    session = db_session()
    try:
        session.execute(text('SELECT 1'))
        return {'status': 'healthy'}
    except Exception as e:
        return {'status': 'unhealthy', 'error': str(e)}
    finally:
        session.close()


def check_classifier(completion_service):
    """An OpenAI-backed classifier needs an API key; injected services are trusted."""
    name = type(completion_service).__name__
    if isinstance(completion_service, OpenAICompletionService) and not completion_service.api_key:
        return {'status': 'unhealthy', 'service': name, 'error': 'OPENAI_API_KEY not configured'}
    return {'status': 'healthy', 'service': name}


def check_background_jobs(jobs):
    if not jobs.is_running:
        return {'status': 'unhealthy', 'error': 'Background job queue is shut down'}
    return {'status': 'healthy', 'pending': jobs.pending_count}


def check_timezones(*zone_names):
    missing = []
    for name in zone_names:
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            missing.append(name)
    if missing:
        return {'status': 'unhealthy', 'error': f"Unknown timezones: {', '.join(missing)}"}
    return {'status': 'healthy', 'zones': sorted(set(zone_names))}
