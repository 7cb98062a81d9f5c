# roofing_estimator/routes/detailed_estimates.py
from flask import Blueprint, request, jsonify
import logging

from roofing_estimator.errors import EstimationError, ValidationError, error_response
from roofing_estimator.models import db
from roofing_estimator.services import estimate_service, providers
from roofing_estimator.services.detailed_engine import CalculatedLineItem, cost_per_square, group_line_items
from roofing_estimator.services.money_utils import to_cents
from roofing_estimator.services.validation import bool_field, int_field, number_field, text_field

detailed_estimates_bp = Blueprint('detailed_estimates', __name__)
logger = logging.getLogger(__name__)


def _estimate_response(estimate):
    data = estimate.to_dict()
    lines = [CalculatedLineItem.from_source(item) for item in estimate.line_items]
    groups = group_line_items(lines)
    data['groups'] = [
        {
            'name': name,
            'item_count': len(items),
            'included_total': to_cents(sum(item.line_total for item in items if item.is_included)),
        }
        for name, items in groups.items()
    ]
    squares = (estimate.variables or {}).get('SQ')
    data['cost_per_square'] = cost_per_square(estimate.price_likely, squares)
    return data


@detailed_estimates_bp.route('/leads/<int:lead_id>/detailed-estimates', methods=['GET'])
def list_detailed_estimates(lead_id):
    """Current estimate for the lead, or every version with ?history=true"""
    try:
        if bool_field(request.args, 'history', False):
            estimates = estimate_service.estimate_history(lead_id)
        else:
            estimates = estimate_service.current_detailed_estimates(lead_id)
        return jsonify([estimate.to_dict(include_line_items=False) for estimate in estimates])
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error listing detailed estimates for lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve estimates'}), 500


@detailed_estimates_bp.route('/leads/<int:lead_id>/detailed-estimates', methods=['POST'])
def create_detailed_estimate(lead_id):
    """
    Create a detailed estimate from a macro or an explicit list of catalog items.

    Body: macro_id or line_items, plus optional chosen_line_item_ids,
    region_id, zip_code, measurements, overhead_percent, profit_percent,
    tax_percent, name and notes.
    """
    try:
        data = request.get_json(silent=True) or {}
        chosen = data.get('chosen_line_item_ids')
        if chosen is not None and not isinstance(chosen, list):
            raise ValidationError('chosen_line_item_ids must be a list')
        line_items = data.get('line_items')
        if line_items is not None and not isinstance(line_items, list):
            raise ValidationError('line_items must be a list')
        measurements = data.get('measurements')
        if measurements is not None and not isinstance(measurements, dict):
            raise ValidationError('measurements must be an object')

        estimate = estimate_service.create_detailed_estimate(
            lead_id,
            macro_id=int_field(data, 'macro_id'),
            line_items=line_items,
            chosen_line_item_ids=chosen,
            region_id=int_field(data, 'region_id'),
            zip_code=text_field(data, 'zip_code'),
            measurements=measurements,
            overhead_percent=data.get('overhead_percent'),
            profit_percent=data.get('profit_percent'),
            tax_percent=data.get('tax_percent'),
            name=text_field(data, 'name', max_length=200),
            notes=text_field(data, 'notes'),
        )
        return jsonify(_estimate_response(estimate)), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating detailed estimate for lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to create estimate'}), 500


@detailed_estimates_bp.route('/detailed-estimates/<int:estimate_id>', methods=['GET'])
def get_detailed_estimate(estimate_id):
    try:
        estimate = providers.get_detailed_estimate(estimate_id)
        return jsonify(_estimate_response(estimate))
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error retrieving detailed estimate {estimate_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve estimate'}), 500


@detailed_estimates_bp.route('/detailed-estimates/<int:estimate_id>/line-items/<int:line_id>', methods=['PATCH'])
def toggle_line_item(estimate_id, line_id):
    """Include or exclude one line item; totals are recalculated in place"""
    try:
        data = request.get_json(silent=True) or {}
        included = bool_field(data, 'is_included')
        if included is None:
            raise ValidationError('is_included is required', details={'field': 'is_included'})
        estimate = estimate_service.set_line_item_inclusion(estimate_id, line_id, included)
        return jsonify(_estimate_response(estimate))
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating line item {line_id} on estimate {estimate_id}: {str(e)}")
        return jsonify({'error': 'Failed to update line item'}), 500


@detailed_estimates_bp.route('/detailed-estimates/<int:estimate_id>/status', methods=['POST'])
def update_status(estimate_id):
    try:
        data = request.get_json(silent=True) or {}
        estimate = estimate_service.update_estimate_status(estimate_id, text_field(data, 'status', required=True))
        return jsonify(estimate.to_dict(include_line_items=False))
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating status of estimate {estimate_id}: {str(e)}")
        return jsonify({'error': 'Failed to update estimate status'}), 500


@detailed_estimates_bp.route('/detailed-estimates/<int:estimate_id>/recalculate', methods=['POST'])
def recalculate(estimate_id):
    """Re-measure against the latest roof variables; returns the new version"""
    try:
        data = request.get_json(silent=True) or {}
        measurements = data.get('measurements')
        if measurements is not None and not isinstance(measurements, dict):
            raise ValidationError('measurements must be an object')
        estimate = estimate_service.recalculate_estimate(estimate_id, measurements)
        return jsonify(_estimate_response(estimate)), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error recalculating estimate {estimate_id}: {str(e)}")
        return jsonify({'error': 'Failed to recalculate estimate'}), 500


@detailed_estimates_bp.route('/detailed-estimates/<int:estimate_id>/adjust', methods=['POST'])
def adjust_price(estimate_id):
    """Apply a discount or price override on top of the calculated price"""
    try:
        data = request.get_json(silent=True) or {}
        adjustment = estimate_service.add_price_adjustment(
            estimate_id,
            text_field(data, 'adjustment_type', required=True),
            number_field(data, 'value', required=True),
            description=text_field(data, 'description'),
            reason=text_field(data, 'reason'),
        )
        estimate = providers.get_detailed_estimate(estimate_id)
        return jsonify({
            'adjustment': adjustment.to_dict(),
            'estimate': estimate.to_dict(include_line_items=False),
        }), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error adjusting price of estimate {estimate_id}: {str(e)}")
        return jsonify({'error': 'Failed to adjust estimate price'}), 500
