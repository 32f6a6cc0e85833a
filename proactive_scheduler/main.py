"""Main Flask application factory."""
from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

from proactive_scheduler.config import settings
from proactive_scheduler.models.database import db_session, init_db
from proactive_scheduler.api import conversations, health, suggestions, users
from proactive_scheduler.api.websocket import register_handlers
from proactive_scheduler.proactive.container import build_services
from proactive_scheduler.utils.logger import setup_logging


def create_app(completion_service=None, profile_store=None, jobs=None) -> Flask:
    """Create and configure the Flask application.

    The optional collaborators replace the OpenAI completion service, the
    database-backed timezone lookup and the background job queue.
    """

    # Setup logging
    setup_logging()

    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = settings.SECRET_KEY

    # CORS setup
    CORS(app, resources={
        r"/api/*": {
            "origins": settings.CORS_ORIGINS.split(","),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-User-Id"],
            "supports_credentials": True
        }
    })

    # Initialize SocketIO
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode=settings.SOCKETIO_ASYNC_MODE)
    register_handlers(socketio)

    # Initialize database
    init_db()

    # Proactive scheduling components
    app.extensions['proactive'] = build_services(
        completion_service=completion_service,
        profile_store=profile_store,
        socketio=socketio,
        jobs=jobs
    )

    # Register blueprints
    app.register_blueprint(health.bp, url_prefix='/health')
    app.register_blueprint(conversations.bp, url_prefix='/api/conversations')
    app.register_blueprint(users.bp, url_prefix='/api/users')
    app.register_blueprint(suggestions.bp, url_prefix='/api/suggestions')

    @app.teardown_appcontext
    def remove_session(exception=None):
        db_session.remove()

    # Error handlers
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({"error": "Internal server error"}), 500

    return app


# For development
if __name__ == '__main__':
    app = create_app()
    app.extensions['socketio'].run(app, host='0.0.0.0', port=9001, debug=settings.DEBUG)
