# roofing_estimator/models/sketch.py

from .base import db
from ..services.date_utils import utc_now, format_date_for_response


class RoofSketch(db.Model):
    """Measured roof for a lead. Totals are kept for sketches drawn without facets."""

    __tablename__ = 'roof_sketches'

    id = db.Column(db.Integer, primary_key=True)
    lead_id = db.Column(db.Integer, db.ForeignKey('leads.id'), nullable=False, index=True)
    total_sqft = db.Column(db.Float)
    total_perimeter_lf = db.Column(db.Float)
    total_eave_lf = db.Column(db.Float)
    total_ridge_lf = db.Column(db.Float)
    total_valley_lf = db.Column(db.Float)
    total_hip_lf = db.Column(db.Float)
    total_rake_lf = db.Column(db.Float)
    skylight_count = db.Column(db.Integer, default=0)
    chimney_count = db.Column(db.Integer, default=0)
    pipe_boot_count = db.Column(db.Integer)
    vent_count = db.Column(db.Integer, default=0)
    gutter_lf = db.Column(db.Float)
    downspout_count = db.Column(db.Integer)
    measurement_source = db.Column(db.String(30), default='manual')
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    slopes = db.relationship('RoofSlope', backref='sketch', order_by='RoofSlope.slope_number',
                             cascade="all, delete-orphan")

    SKETCH_FIELDS = (
        'total_sqft', 'total_perimeter_lf', 'total_eave_lf', 'total_ridge_lf', 'total_valley_lf',
        'total_hip_lf', 'total_rake_lf', 'skylight_count', 'chimney_count', 'pipe_boot_count',
        'vent_count', 'gutter_lf', 'downspout_count',
    )

    def to_resolver_input(self):
        """Plain mapping in the shape the geometry resolver reads."""
        data = {field: getattr(self, field) for field in self.SKETCH_FIELDS}
        data['slopes'] = [slope.to_dict() for slope in self.slopes]
        return data

    def to_dict(self):
        data = self.to_resolver_input()
        data.update({
            'id': self.id,
            'lead_id': self.lead_id,
            'measurement_source': self.measurement_source,
            'created_at': format_date_for_response(self.created_at),
        })
        return data


class RoofSlope(db.Model):
    __tablename__ = 'roof_slopes'

    id = db.Column(db.Integer, primary_key=True)
    sketch_id = db.Column(db.Integer, db.ForeignKey('roof_sketches.id'), nullable=False)
    slope_number = db.Column(db.Integer, nullable=False)
    sqft = db.Column(db.Float, nullable=False, default=0.0)
    pitch = db.Column(db.Float, nullable=False, default=0.0)
    eave_lf = db.Column(db.Float, default=0.0)
    ridge_lf = db.Column(db.Float, default=0.0)
    valley_lf = db.Column(db.Float, default=0.0)
    hip_lf = db.Column(db.Float, default=0.0)
    rake_lf = db.Column(db.Float, default=0.0)

    __table_args__ = (
        db.UniqueConstraint('sketch_id', 'slope_number', name='uq_roof_slope_number'),
    )

    def to_dict(self):
        return {
            'slope_number': self.slope_number,
            'sqft': self.sqft,
            'pitch': self.pitch,
            'eave_lf': self.eave_lf,
            'ridge_lf': self.ridge_lf,
            'valley_lf': self.valley_lf,
            'hip_lf': self.hip_lf,
            'rake_lf': self.rake_lf,
        }
