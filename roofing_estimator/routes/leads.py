# roofing_estimator/routes/leads.py
from flask import Blueprint, request, jsonify
import logging

from roofing_estimator.errors import EstimationError, error_response
from roofing_estimator.models import db
from roofing_estimator.services import lead_service, providers

leads_bp = Blueprint('leads', __name__)
logger = logging.getLogger(__name__)


@leads_bp.route('', methods=['POST'])
def create_lead():
    """Create a lead, optionally with its intake answers"""
    try:
        lead = lead_service.create_lead(request.get_json(silent=True) or {})
        return jsonify(lead.to_dict()), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error creating lead: {str(e)}")
        return jsonify({'error': 'Failed to create lead'}), 500


@leads_bp.route('/<int:lead_id>', methods=['GET'])
def get_lead(lead_id):
    try:
        lead = providers.get_lead(lead_id)
        return jsonify(lead.to_dict())
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error retrieving lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve lead'}), 500


@leads_bp.route('/<int:lead_id>/intake', methods=['PUT'])
def update_intake(lead_id):
    """Create or update the intake answers used by the quick estimate"""
    try:
        lead = lead_service.update_intake(lead_id, request.get_json(silent=True) or {})
        return jsonify(lead.to_dict())
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error updating intake for lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to update intake'}), 500


@leads_bp.route('/<int:lead_id>/sketch', methods=['POST'])
def save_sketch(lead_id):
    """Save measured roof facets and return the resolved roof variables"""
    try:
        sketch, variables, warnings = lead_service.save_sketch(lead_id, request.get_json(silent=True) or {})
        return jsonify({
            'sketch': sketch.to_dict(),
            'variables': variables.to_dict(),
            'warnings': warnings,
        }), 201
    except EstimationError as e:
        db.session.rollback()
        return error_response(e)
    except Exception as e:
        db.session.rollback()
        logger.error(f"Error saving sketch for lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to save sketch'}), 500


@leads_bp.route('/<int:lead_id>/sketch', methods=['GET'])
def get_sketch(lead_id):
    """Latest sketch with its resolved variables. Falls back to the intake approximation."""
    try:
        variables, sketch, check = lead_service.lead_variables(lead_id)
        return jsonify({
            'sketch': sketch.to_dict() if sketch else None,
            'source': 'sketch' if sketch else 'intake',
            'variables': variables.to_dict(),
            'valid': check['valid'],
            'errors': check['errors'],
            'warnings': check['warnings'],
        })
    except EstimationError as e:
        return error_response(e)
    except Exception as e:
        logger.error(f"Error retrieving sketch for lead {lead_id}: {str(e)}")
        return jsonify({'error': 'Failed to retrieve roof variables'}), 500
