"""Flask application factory."""
from flask import Flask, request, jsonify
from flask_wtf.csrf import CSRFProtect
from atelier.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Initialize CSRF protection
    csrf = CSRFProtect(app)

    from flask_wtf.csrf import CSRFError

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        app.logger.warning(f"CSRF Error: {e.description}")
        return jsonify({'status': 'error', 'message': 'La sesión ha expirado. Recarga la página.'}), 400

    # Sentry error tracking, production only
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Flask-Mail for order notifications
    from atelier.services.notification_service import init_mail
    init_mail(app)

    # Redis cache for the site configuration snapshot
    from atelier.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from atelier.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Load caller identity before each request
    from atelier.middleware import load_identity

    @app.before_request
    def before_request_handler():
        load_identity()

    # Error Handlers
    from atelier.exceptions import AtelierError

    @app.errorhandler(AtelierError)
    def handle_atelier_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"AtelierError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"AtelierError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException) and error.code < 500:
            return jsonify({'status': 'error', 'message': error.description}), error.code

        import traceback
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from atelier.blueprints.pricing import pricing_bp
    from atelier.blueprints.cart import cart_bp
    from atelier.blueprints.checkout import checkout_bp
    from atelier.blueprints.orders import orders_bp
    from atelier.blueprints.admin_orders import admin_orders_bp
    from atelier.blueprints.admin_config import admin_config_bp
    from atelier.blueprints.metrics import metrics_bp

    # JSON API blueprints are exempt from CSRF (payloads are validated by api_forms)
    for api_bp in (pricing_bp, cart_bp, checkout_bp, orders_bp, admin_orders_bp, admin_config_bp):
        csrf.exempt(api_bp)
        app.register_blueprint(api_bp)

    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from atelier.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"MAIL_SERVER={app.config.get('MAIL_SERVER')}")
    app.logger.info(f"FULFILLMENT_EMAIL={app.config.get('FULFILLMENT_EMAIL')}")

    return app
