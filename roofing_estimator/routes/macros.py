# roofing_estimator/routes/macros.py
from flask import Blueprint, request, jsonify
import logging

from roofing_estimator.errors import EstimationError, error_response
from roofing_estimator.models import db
from roofing_estimator.services import catalog_service, providers

macros_bp = Blueprint('macros', __name__)
logger = logging.getLogger(__name__)


@macros_bp.route('', methods=['GET'])
def get_macros():
    """Active macros, optionally filtered by roof_type and job_type ('any' macros always match)"""
    try:
        macros = catalog_service.list_macros(
            roof_type=request.args.get('roof_type'),
            job_type=request.args.get('job_type'),
        )
        return jsonify([macro.to_dict() for macro in macros])
    except Exception as e:
        logger.error(f"Error retrieving macros: {str(e)}")
        return jsonify({'error': 'Failed to retrieve macros'}), 500


@macros_bp.route('', methods=['POST'])
def create_macro():
    try:
        macro = catalog_service.create_macro(request.get_json(silent=True) or {})
        return jsonify(macro.to_dict(include_line_items=True)), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating macro: {str(e)}")
        return jsonify({'error': 'Failed to create macro'}), 500


@macros_bp.route('/<int:macro_id>', methods=['GET'])
def get_macro(macro_id):
    try:
        macro = providers.get_macro(macro_id)
        return jsonify(macro.to_dict(include_line_items=True))
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error retrieving macro {macro_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve macro'}), 500


@macros_bp.route('/<int:macro_id>', methods=['PUT'])
def update_macro(macro_id):
    try:
        macro = catalog_service.update_macro(macro_id, request.get_json(silent=True) or {})
        return jsonify(macro.to_dict(include_line_items=True))
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating macro {macro_id}: {str(e)}")
        return jsonify({'error': 'Failed to update macro'}), 500


@macros_bp.route('/<int:macro_id>', methods=['DELETE'])
def delete_macro(macro_id):
    try:
        catalog_service.deactivate_macro(macro_id)
        return jsonify({'message': 'Macro deleted successfully'})
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting macro {macro_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete macro'}), 500


@macros_bp.route('/<int:macro_id>/line-items', methods=['POST'])
def add_macro_line_item(macro_id):
    """Add a catalog item to the macro. Adding the same item twice returns 409."""
    try:
        association = catalog_service.add_line_item_to_macro(macro_id, request.get_json(silent=True) or {})
        return jsonify(association.to_dict()), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error adding line item to macro {macro_id}: {str(e)}")
        return jsonify({'error': 'Failed to add line item to macro'}), 500


@macros_bp.route('/<int:macro_id>/line-items/<int:line_item_id>', methods=['DELETE'])
def remove_macro_line_item(macro_id, line_item_id):
    try:
        catalog_service.remove_line_item_from_macro(macro_id, line_item_id)
        return jsonify({'message': 'Line item removed from macro'})
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error removing line item {line_item_id} from macro {macro_id}: {str(e)}")
        return jsonify({'error': 'Failed to remove line item from macro'}), 500
