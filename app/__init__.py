"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
import logging
from flask import Flask, jsonify

from app.errors import LedgerError

logger = logging.getLogger('app')


def create_app():
    """Create and configure the Flask application."""
    from app.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # Register blueprints
    from app.routes.dashboard import bp as dashboard_bp
    from app.routes.appointments import bp as appointments_bp
    from app.routes.commissions import bp as commissions_bp
    from app.routes.affiliates import bp as affiliates_bp
    from app.routes.closers import bp as closers_bp
    from app.routes.quiz import bp as quiz_bp
    from app.routes.settings import bp as settings_bp

    app.register_blueprint(dashboard_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(commissions_bp)
    app.register_blueprint(affiliates_bp)
    app.register_blueprint(closers_bp)
    app.register_blueprint(quiz_bp)
    app.register_blueprint(settings_bp)

    @app.errorhandler(LedgerError)
    def handle_ledger_error(e):
        if e.status_code >= 500:
            logger.error("Unhandled ledger error: %s", e.message, exc_info=True)
        return jsonify(e.to_dict()), e.status_code

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    # Schema is managed by Alembic — no create_all() call.
    from app.database import import_models
    import_models()

    return app
