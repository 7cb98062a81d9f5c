# roofing_estimator/models/estimate.py

from .base import db
from ..services.date_utils import utc_now, format_date_for_response


class QuickEstimate(db.Model):
    """Price range produced from intake answers. Versioned per lead."""

    __tablename__ = 'quick_estimates'

    id = db.Column(db.Integer, primary_key=True)
    lead_id = db.Column(db.Integer, db.ForeignKey('leads.id'), nullable=False, index=True)
    version = db.Column(db.Integer, nullable=False, default=1)
    is_superseded = db.Column(db.Boolean, default=False, nullable=False)
    base_cost = db.Column(db.Integer)
    material_cost = db.Column(db.Integer)
    labor_cost = db.Column(db.Integer)
    price_low = db.Column(db.Integer, nullable=False)
    price_likely = db.Column(db.Integer, nullable=False)
    price_high = db.Column(db.Integer, nullable=False)
    adjustments = db.Column(db.JSON, default=list)
    input_snapshot = db.Column(db.JSON)
    rules_snapshot = db.Column(db.JSON)
    used_default_rules = db.Column(db.Boolean, default=False, nullable=False)
    valid_until = db.Column(db.Date)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    lead = db.relationship('Lead', backref=db.backref('quick_estimates', lazy='dynamic'))

    __table_args__ = (
        db.UniqueConstraint('lead_id', 'version', name='uq_quick_estimate_version'),
        db.Index(
            'uq_quick_estimate_current', 'lead_id', unique=True,
            postgresql_where=db.text('is_superseded = false'),
            sqlite_where=db.text('is_superseded = 0'),
        ),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'lead_id': self.lead_id,
            'version': self.version,
            'is_superseded': self.is_superseded,
            'base_cost': self.base_cost,
            'material_cost': self.material_cost,
            'labor_cost': self.labor_cost,
            'price_low': self.price_low,
            'price_likely': self.price_likely,
            'price_high': self.price_high,
            'adjustments': self.adjustments or [],
            'used_default_rules': self.used_default_rules,
            'valid_until': format_date_for_response(self.valid_until),
            'created_at': format_date_for_response(self.created_at),
        }
