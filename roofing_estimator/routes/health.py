from flask import Blueprint, jsonify, current_app
from sqlalchemy import text

from roofing_estimator import __version__
from roofing_estimator.models import db, PricingRule, LineItem, EstimateMacro
from roofing_estimator.services.date_utils import utc_now

health_bp = Blueprint('health', __name__)

CRITICAL_BLUEPRINTS = ('leads', 'estimates', 'detailed_estimates')


@health_bp.route('/health', methods=['GET'])
def health_check():
    """
    Full health check: database connectivity, estimating data and registered
    blueprints. Returns 503 when the database is unreachable.
    """
    health_status = {
        'status': 'healthy',
        'app': 'Roofing Estimator API',
        'version': __version__,
        'timestamp': utc_now().isoformat(),
        'checks': {},
    }
    overall_healthy = True

    # Database
    try:
        db.session.execute(text('SELECT 1'))
        db.session.commit()
        db_url = current_app.config.get('SQLALCHEMY_DATABASE_URI', '')
        health_status['checks']['database'] = {
            'status': 'healthy',
            'type': 'SQLite' if 'sqlite' in db_url.lower() else 'PostgreSQL' if 'postgres' in db_url.lower() else 'Unknown',
            'connected': True,
        }
    except Exception as db_error:
        db.session.rollback()
        current_app.logger.error(f"Database health check failed: {db_error}")
        health_status['checks']['database'] = {
            'status': 'unhealthy',
            'connected': False,
            'error': str(db_error),
        }
        overall_healthy = False

    # Estimating data
    if overall_healthy:
        try:
            rule_count = PricingRule.query.filter_by(is_active=True).count()
            line_item_count = LineItem.query.filter_by(is_active=True).count()
            macro_count = EstimateMacro.query.filter_by(is_active=True).count()
            health_status['checks']['pricing_data'] = {
                # Quick estimates still work on the built-in rules, so this is only a warning
                'status': 'healthy' if rule_count else 'warning',
                'pricing_rules': rule_count,
                'using_default_rules': rule_count == 0,
                'line_items': line_item_count,
                'macros': macro_count,
            }
        except Exception as data_error:
            db.session.rollback()
            current_app.logger.error(f"Pricing data health check failed: {data_error}")
            health_status['checks']['pricing_data'] = {'status': 'unhealthy', 'error': str(data_error)}
            overall_healthy = False

    # Application
    registered = sorted(current_app.blueprints)
    missing = [name for name in CRITICAL_BLUEPRINTS if name not in registered]
    health_status['checks']['application'] = {
        'status': 'healthy' if not missing else 'warning',
        'blueprints': {'registered': registered, 'missing_critical': missing},
        'routes': len([rule for rule in current_app.url_map.iter_rules() if rule.rule.startswith('/api/')]),
    }

    status_code = 200
    if not overall_healthy:
        health_status['status'] = 'unhealthy'
        status_code = 503
    elif any(check.get('status') == 'warning' for check in health_status['checks'].values()):
        health_status['status'] = 'degraded'

    current_app.logger.info(f"Health check completed: {health_status['status']}")
    return jsonify(health_status), status_code


@health_bp.route('/health/simple', methods=['GET'])
def simple_health_check():
    """Minimal check for load balancers"""
    try:
        db.session.execute(text('SELECT 1'))
        db.session.commit()
        return jsonify({'status': 'healthy', 'message': 'Service is running'}), 200
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Simple health check failed: {e}")
        return jsonify({'status': 'unhealthy', 'message': 'Database connection failed'}), 503
