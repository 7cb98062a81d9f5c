# roofing_estimator/models/pricing_rule.py

from .base import db
from ..services.date_utils import utc_now


class PricingRule(db.Model):
    __tablename__ = 'pricing_rules'

    id = db.Column(db.Integer, primary_key=True)
    rule_key = db.Column(db.String(60), unique=True, nullable=False)
    rule_category = db.Column(db.String(30), nullable=False, index=True)
    display_name = db.Column(db.String(100))
    base_rate = db.Column(db.Float, default=0.0)
    unit = db.Column(db.String(20))
    multiplier = db.Column(db.Float, default=1.0)
    flat_fee = db.Column(db.Float, default=0.0)
    min_charge = db.Column(db.Float)
    max_charge = db.Column(db.Float)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'rule_key': self.rule_key,
            'rule_category': self.rule_category,
            'display_name': self.display_name,
            'base_rate': self.base_rate,
            'unit': self.unit,
            'multiplier': self.multiplier,
            'flat_fee': self.flat_fee,
            'min_charge': self.min_charge,
            'max_charge': self.max_charge,
            'is_active': self.is_active,
        }
