"""Flask application factory."""
from flask import Flask, request, jsonify
import os

from multipos.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Error tracking in production only
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache (exchange rates)
    from multipos.services.cache_service import init_cache
    init_cache(app)

    # Prometheus instrumentation
    from multipos.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Behind Nginx in production
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    # Error Handlers
    from multipos.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"PosError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"PosError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(Exception)
    def internal_error(error):
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException):
            return jsonify({'status': 'error', 'message': error.description}), error.code
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from multipos.blueprints.catalog import catalog_bp
    from multipos.blueprints.customers import customers_bp
    from multipos.blueprints.pos import pos_bp
    from multipos.blueprints.sales import sales_bp
    from multipos.blueprints.settings import settings_bp
    from multipos.blueprints.exchange import exchange_bp
    from multipos.blueprints.voice import voice_bp
    from multipos.blueprints.menu_digital import menu_digital_bp
    from multipos.blueprints.orders import orders_bp
    from multipos.blueprints.terminals import terminals_bp
    from multipos.blueprints.reports import reports_bp
    from multipos.blueprints.metrics import metrics_bp

    app.register_blueprint(catalog_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(pos_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(exchange_bp)
    app.register_blueprint(voice_bp)
    app.register_blueprint(menu_digital_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(terminals_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(metrics_bp)

    from multipos.cli_commands import init_cli_commands
    init_cli_commands(app)

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})

    return app
