"""Flask application factory."""
from flask import Flask, jsonify, request
from pos_app.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Flask-Mail for digital receipts
    from pos_app.services.email_service import init_mail
    init_mail(app)

    # Initialize database
    init_db(app)

    # Load business/actor context before each request
    from pos_app.middleware import load_pos_context

    @app.before_request
    def before_request_handler():
        """Load business and actor context for each request."""
        load_pos_context()

    # Error Handlers
    from pos_app.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Handle custom application exceptions."""
        app.logger.error(f"PosError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        import traceback
        app.logger.error(f"Unhandled Exception on {request.path}: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from pos_app.blueprints.refunds import refunds_bp
    from pos_app.blueprints.receipts import receipts_bp
    from pos_app.blueprints.reports import reports_bp

    app.register_blueprint(refunds_bp)
    app.register_blueprint(receipts_bp)
    app.register_blueprint(reports_bp)

    # Register CLI commands
    from pos_app.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"MAIL_SERVER={app.config.get('MAIL_SERVER')}")
    app.logger.info(f"REFUND_CLAMP_POLICY={app.config.get('REFUND_CLAMP_POLICY')}")

    return app
