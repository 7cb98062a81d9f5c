# roofing_estimator/routes/estimates.py
from flask import Blueprint, request, jsonify
import logging

from roofing_estimator.errors import EstimationError, error_response
from roofing_estimator.models import db, QuickEstimate
from roofing_estimator.services import estimate_service, providers
from roofing_estimator.services.pricing_tiers import build_pricing_tiers

estimates_bp = Blueprint('estimates', __name__)
logger = logging.getLogger(__name__)


def _quick_estimate_response(estimate):
    data = estimate.to_dict()
    roof_material = (estimate.input_snapshot or {}).get('roof_material')
    data['pricing_tiers'] = build_pricing_tiers(
        estimate.price_low, estimate.price_likely, estimate.price_high, roof_material,
    )
    return data


@estimates_bp.route('/<int:lead_id>/estimate', methods=['POST'])
def generate_estimate(lead_id):
    """
    Price the lead's intake answers as a new quick-estimate version.

    Any intake fields in the request body override the stored answers for
    this calculation only.
    """
    try:
        overrides = request.get_json(silent=True) or {}
        estimate = estimate_service.generate_quick_estimate(lead_id, overrides)
        logger.info(f"Quick estimate v{estimate.version} for lead {lead_id}: "
                    f"{estimate.price_low}-{estimate.price_high}")
        return jsonify(_quick_estimate_response(estimate)), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error generating quick estimate for lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to generate estimate'}), 500


@estimates_bp.route('/<int:lead_id>/estimate', methods=['GET'])
def get_current_estimate(lead_id):
    try:
        estimate = estimate_service.current_quick_estimate(lead_id)
        if estimate is None:
            return jsonify({'error': 'No estimate has been generated for this lead', 'code': 'NOT_FOUND'}), 404
        return jsonify(_quick_estimate_response(estimate))
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error retrieving quick estimate for lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve estimate'}), 500


@estimates_bp.route('/<int:lead_id>/estimate/history', methods=['GET'])
def get_estimate_history(lead_id):
    try:
        providers.get_lead(lead_id)
        estimates = (QuickEstimate.query
                     .filter_by(lead_id=lead_id)
                     .order_by(QuickEstimate.version.desc())
                     .all())
        return jsonify([estimate.to_dict() for estimate in estimates])
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error retrieving estimate history for lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve estimate history'}), 500
