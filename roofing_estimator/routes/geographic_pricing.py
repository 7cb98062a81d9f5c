# roofing_estimator/routes/geographic_pricing.py
from flask import Blueprint, request, jsonify
import logging

from roofing_estimator.errors import EstimationError, error_response
from roofing_estimator.models import db
from roofing_estimator.services import catalog_service, providers
from roofing_estimator.services.validation import validate_zip

geographic_pricing_bp = Blueprint('geographic_pricing', __name__)
logger = logging.getLogger(__name__)


@geographic_pricing_bp.route('', methods=['GET'])
def get_regions():
    try:
        regions = catalog_service.list_regions(state=request.args.get('state'))
        return jsonify([region.to_dict() for region in regions])
    except Exception as e:
        logger.error(f"Error retrieving pricing regions: {str(e)}")
        return jsonify({'error': 'Failed to retrieve pricing regions'}), 500


@geographic_pricing_bp.route('', methods=['POST'])
def create_region():
    try:
        region = catalog_service.create_region(request.get_json(silent=True) or {})
        return jsonify(region.to_dict()), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating pricing region: {str(e)}")
        return jsonify({'error': 'Failed to create pricing region'}), 500


@geographic_pricing_bp.route('/lookup', methods=['GET'])
def lookup_region():
    """Region that applies to ?zip=NNNNN. Without a match the estimate is unadjusted."""
    try:
        zip_code = validate_zip(request.args.get('zip'))
        region = providers.find_region_by_zip(zip_code)
        return jsonify({
            'zip_code': zip_code,
            'region': region.to_dict() if region else None,
            'adjustment_factor': region.to_dict()['adjustment_factor'] if region else 1.0,
        })
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error looking up pricing region: {str(e)}")
        return jsonify({'error': 'Failed to look up pricing region'}), 500


@geographic_pricing_bp.route('/<int:region_id>', methods=['GET'])
def get_region(region_id):
    try:
        return jsonify(providers.get_region(region_id).to_dict())
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error retrieving pricing region {region_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve pricing region'}), 500


@geographic_pricing_bp.route('/<int:region_id>', methods=['PUT'])
def update_region(region_id):
    try:
        region = catalog_service.update_region(region_id, request.get_json(silent=True) or {})
        return jsonify(region.to_dict())
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating pricing region {region_id}: {str(e)}")
        return jsonify({'error': 'Failed to update pricing region'}), 500


@geographic_pricing_bp.route('/<int:region_id>', methods=['DELETE'])
def delete_region(region_id):
    try:
        catalog_service.deactivate_region(region_id)
        return jsonify({'message': 'Pricing region deactivated successfully'})
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error deleting pricing region {region_id}: {str(e)}")
        return jsonify({'error': 'Failed to delete pricing region'}), 500
