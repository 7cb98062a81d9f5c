# roofing_estimator/routes/line_items.py
from flask import Blueprint, request, jsonify
import logging

from roofing_estimator.errors import EstimationError, error_response
from roofing_estimator.models import db
from roofing_estimator.services import catalog_service
from roofing_estimator.services.formula import BASE_VARIABLES, evaluate_formula, suggest_formula, validate_formula
from roofing_estimator.services.validation import bool_field

line_items_bp = Blueprint('line_items', __name__)
logger = logging.getLogger(__name__)


@line_items_bp.route('', methods=['GET'])
def get_line_items():
    try:
        items = catalog_service.list_line_items(
            category=request.args.get('category'),
            include_inactive=bool_field(request.args, 'include_inactive', False),
        )
        return jsonify([item.to_dict() for item in items])
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error retrieving line items: {str(e)}")
        return jsonify({'error': 'Failed to retrieve line items'}), 500


@line_items_bp.route('', methods=['POST'])
def create_line_item():
    try:
        item = catalog_service.create_line_item(request.get_json(silent=True) or {})
        return jsonify(item.to_dict()), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating line item: {str(e)}")
        return jsonify({'error': 'Failed to create line item'}), 500


@line_items_bp.route('/<int:line_item_id>', methods=['PUT'])
def update_line_item(line_item_id):
    try:
        item = catalog_service.update_line_item(line_item_id, request.get_json(silent=True) or {})
        return jsonify(item.to_dict())
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating line item {line_item_id}: {str(e)}")
        return jsonify({'error': 'Failed to update line item'}), 500


@line_items_bp.route('/<int:line_item_id>', methods=['DELETE'])
def delete_line_item(line_item_id):
    """Soft delete: the item stays on existing estimates but can no longer be selected"""
    try:
        catalog_service.deactivate_line_item(line_item_id)
        return jsonify({'message': 'Line item deactivated successfully'})
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting line item {line_item_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete line item'}), 500


@line_items_bp.route('/validate-formula', methods=['POST'])
def check_formula():
    """
    Validate a quantity formula. When ``variables`` are supplied the formula
    is also evaluated against them.
    """
    try:
        data = request.get_json(silent=True) or {}
        formula = data.get('formula') or ''
        is_valid, error, names = validate_formula(formula)
        result = {
            'valid': is_valid,
            'error': error,
            'variables': names,
            'available_variables': list(BASE_VARIABLES),
        }
        if data.get('category'):
            result['suggested_formula'] = suggest_formula(data['category'])
        if is_valid and isinstance(data.get('variables'), dict):
            result['result'] = evaluate_formula(formula, data['variables'])
        return jsonify(result)
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error validating formula: {str(e)}")
        return jsonify({'error': 'Failed to validate formula'}), 500
