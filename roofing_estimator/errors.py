# roofing_estimator/errors.py

from flask import jsonify


class EstimationError(Exception):
    """Base class for failures the estimation engine reports to its caller."""

    status_code = 500
    code = 'ESTIMATION_ERROR'

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {'error': self.message, 'code': self.code}
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(EstimationError):
    """Malformed or out-of-range input. Raised before any calculation runs."""

    status_code = 400
    code = 'VALIDATION_ERROR'


class FormulaError(ValidationError):
    """A quantity formula could not be parsed or evaluated."""

    code = 'INVALID_FORMULA'


class NotFoundError(EstimationError):
    status_code = 404
    code = 'NOT_FOUND'


class ConflictError(EstimationError):
    """Duplicate pairing or a lost race on an estimate version."""

    status_code = 409
    code = 'CONFLICT'


def error_response(error):
    """Map an EstimationError onto the JSON error body used by every blueprint."""
    return jsonify(error.to_dict()), error.status_code
