import importlib
import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS
from sqlalchemy import text

from roofing_estimator.config import config, get_config_name
from roofing_estimator.errors import EstimationError, error_response
from roofing_estimator.models import db, PricingRule

BLUEPRINTS = [
    ('roofing_estimator.routes.health', 'health_bp', '/api'),
    ('roofing_estimator.routes.leads', 'leads_bp', '/api/leads'),
    ('roofing_estimator.routes.estimates', 'estimates_bp', '/api/leads'),
    ('roofing_estimator.routes.detailed_estimates', 'detailed_estimates_bp', '/api'),
    ('roofing_estimator.routes.macros', 'macros_bp', '/api/macros'),
    ('roofing_estimator.routes.line_items', 'line_items_bp', '/api/line-items'),
    ('roofing_estimator.routes.geographic_pricing', 'geographic_pricing_bp', '/api/geographic-pricing'),
    ('roofing_estimator.routes.pricing_rules', 'pricing_rules_bp', '/api/pricing-rules'),
]


def _configure_logging(app, config_name):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    if app.debug:
        level = logging.DEBUG
    if config_name == 'production':
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        app.logger.addHandler(handler)
    logging.basicConfig(level=level)
    app.logger.setLevel(level)
    logging.getLogger('roofing_estimator').setLevel(level)


def _register_blueprints(app, config_name):
    registered = []
    failed = []
    for module_name, blueprint_name, url_prefix in BLUEPRINTS:
        try:
            module = importlib.import_module(module_name)
            blueprint = getattr(module, blueprint_name)
            app.register_blueprint(blueprint, url_prefix=url_prefix)
            registered.append(blueprint_name)
            app.logger.info(f"✓ Registered {blueprint_name} blueprint at {url_prefix}")
        except (ImportError, AttributeError) as e:
            app.logger.error(f"❌ Failed to register {blueprint_name} from {module_name}: {e}")
            failed.append(blueprint_name)
            # Only production tolerates a missing blueprint
            if config_name != 'production':
                raise

    app.logger.info(f"Blueprint registration complete: {len(registered)} successful, {len(failed)} failed")
    return registered, failed


def _register_error_handlers(app):
    @app.errorhandler(EstimationError)
    def estimation_error(error):
        db.session.rollback()
        return error_response(error)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({
            'error': 'Not Found',
            'message': f'The requested endpoint {request.path} does not exist',
            'code': 'NOT_FOUND',
        }), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({
            'error': 'Method Not Allowed',
            'message': f'The method {request.method} is not allowed for endpoint {request.path}',
            'code': 'METHOD_NOT_ALLOWED',
            'allowed_methods': list(error.valid_methods) if getattr(error, 'valid_methods', None) else None,
        }), 405

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(f"Internal server error: {error}")
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'An unexpected error occurred. Please try again later.',
            'code': 'INTERNAL_ERROR',
        }), 500


def _register_commands(app):
    @app.cli.command('seed')
    def seed_command():
        """Load default pricing rules, a starter catalog and the default macro."""
        from roofing_estimator.services.seed import seed_all

        result = seed_all()
        print(f"Seeded {result['pricing_rules']} pricing rules and {result['line_items']} line items"
              f"{' plus the default macro' if result['default_macro'] else ''}")


def create_app(config_name=None):
    """
    Application factory.

    ``config_name`` is one of development, production or testing; when omitted
    it is detected from the environment.
    """
    if config_name is None:
        config_name = get_config_name()

    app = Flask(__name__, instance_path=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
                                                     'instance'))

    try:
        app.config.from_object(config[config_name]())
    except Exception as config_error:
        app.logger.error(f"❌ Configuration loading failed: {config_error}")
        raise

    _configure_logging(app, config_name)
    app.logger.info(f"✓ Configuration loaded for {config_name} environment")

    db_uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    if db_uri.startswith('sqlite'):
        app.logger.info("✓ Using SQLite database")
        try:
            os.makedirs(app.instance_path, exist_ok=True)
        except OSError as e:
            app.logger.warning(f"Could not create instance folder: {e}")
    else:
        app.logger.info(f"✓ Using database: {db_uri.split('://')[0] if '://' in db_uri else 'unknown'}")

    db.init_app(app)

    cors_origins = app.config.get('CORS_ORIGINS', [])
    CORS(app,
         origins=cors_origins,
         supports_credentials=app.config.get('CORS_SUPPORTS_CREDENTIALS', False),
         methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS', 'PATCH'],
         allow_headers=['Content-Type', 'Authorization', 'X-Requested-With', 'Accept', 'Origin'],
         max_age=86400)
    app.logger.info(f"✓ CORS configured with {len(cors_origins)} allowed origins")

    registered, failed = _register_blueprints(app, config_name)
    _register_error_handlers(app)
    _register_commands(app)

    @app.route('/')
    def index():
        routes = {}
        for rule in app.url_map.iter_rules():
            if rule.rule.startswith('/api/'):
                group = rule.rule.split('/')[2]
                routes.setdefault(group, []).append({
                    'path': rule.rule,
                    'methods': sorted(rule.methods - {'HEAD', 'OPTIONS'}),
                })
        return jsonify({
            'message': f"{app.config.get('COMPANY_NAME')} API",
            'status': 'running',
            'environment': config_name,
            'endpoints': routes,
            'blueprint_status': {'registered': registered, 'failed': failed},
        })

    with app.app_context():
        try:
            db.session.execute(text('SELECT 1'))
            db.create_all()
            app.logger.info("✓ Database tables created/verified successfully")
            rule_count = PricingRule.query.filter_by(is_active=True).count()
            if not rule_count:
                app.logger.warning("No pricing rules in the database, quick estimates will use built-in defaults")
        except Exception as db_error:
            app.logger.error(f"❌ Database initialization error: {db_error}")
            if config_name == 'production':
                app.logger.error("Production database error - app will start but may not function properly")
            else:
                raise

    total_routes = len(list(app.url_map.iter_rules()))
    app.logger.info(f"✓ Roofing estimator API created ({config_name}, {total_routes} routes)")
    return app


if __name__ == '__main__':
    local_app = create_app()
    local_app.run(
        debug=local_app.config.get('DEBUG', False),
        host='0.0.0.0',
        port=int(os.environ.get('PORT', 5000)),
    )
