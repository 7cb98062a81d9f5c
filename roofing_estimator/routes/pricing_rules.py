# roofing_estimator/routes/pricing_rules.py
from flask import Blueprint, jsonify
import logging

from roofing_estimator.services import providers

pricing_rules_bp = Blueprint('pricing_rules', __name__)
logger = logging.getLogger(__name__)


@pricing_rules_bp.route('', methods=['GET'])
def get_pricing_rules():
    """Rules the quick estimate is using right now, grouped by category"""
    try:
        rules, used_defaults = providers.load_pricing_rules()
        ordered = sorted(rules, key=lambda rule: (rule.rule_category, rule.rule_key))
        return jsonify({
            'using_defaults': used_defaults,
            'count': len(ordered),
            'rules': [rule.to_dict() for rule in ordered],
        })
    except Exception as e:
        logger.error(f"Error retrieving pricing rules: {str(e)}")
        return jsonify({'error': 'Failed to retrieve pricing rules'}), 500
