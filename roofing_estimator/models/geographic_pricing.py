# roofing_estimator/models/geographic_pricing.py

from .base import db
from ..services.date_utils import utc_now


class GeographicPricing(db.Model):
    __tablename__ = 'geographic_pricing'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(2), nullable=False, index=True)
    county = db.Column(db.String(100))
    zip_codes = db.Column(db.JSON, default=list)
    material_multiplier = db.Column(db.Float, default=1.0, nullable=False)
    labor_multiplier = db.Column(db.Float, default=1.0, nullable=False)
    equipment_multiplier = db.Column(db.Float, default=1.0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def covers_zip(self, zip_code):
        return bool(zip_code) and zip_code in (self.zip_codes or [])

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'state': self.state,
            'county': self.county,
            'zip_codes': list(self.zip_codes or []),
            'material_multiplier': self.material_multiplier,
            'labor_multiplier': self.labor_multiplier,
            'equipment_multiplier': self.equipment_multiplier,
            'adjustment_factor': round(
                (self.material_multiplier + self.labor_multiplier + self.equipment_multiplier) / 3, 4
            ),
            'is_active': self.is_active,
        }
