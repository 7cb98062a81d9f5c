# roofing_estimator/models/lead.py

from .base import db
from ..services.date_utils import utc_now, format_date_for_response


class Lead(db.Model):
    __tablename__ = 'leads'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(100))
    phone = db.Column(db.String(20))
    street_address = db.Column(db.String(200))
    city = db.Column(db.String(100))
    state = db.Column(db.String(2))
    zip_code = db.Column(db.String(10), index=True)
    status = db.Column(db.String(20), default='new')
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    intake = db.relationship('LeadIntake', backref='lead', uselist=False, cascade="all, delete-orphan")
    sketches = db.relationship('RoofSketch', backref='lead', lazy='dynamic', cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'street_address': self.street_address,
            'city': self.city,
            'state': self.state,
            'zip_code': self.zip_code,
            'status': self.status,
            'intake': self.intake.to_dict() if self.intake else None,
            'created_at': format_date_for_response(self.created_at),
        }


class LeadIntake(db.Model):
    """Answers collected by the intake funnel. Read by the quick pricing engine."""

    __tablename__ = 'lead_intakes'

    id = db.Column(db.Integer, primary_key=True)
    lead_id = db.Column(db.Integer, db.ForeignKey('leads.id'), nullable=False, unique=True)
    job_type = db.Column(db.String(30))
    roof_size_sqft = db.Column(db.Float)
    roof_material = db.Column(db.String(30))
    roof_pitch = db.Column(db.String(20))
    stories = db.Column(db.Integer, default=1)
    has_skylights = db.Column(db.Boolean, default=False)
    has_chimneys = db.Column(db.Boolean, default=False)
    has_solar_panels = db.Column(db.Boolean, default=False)
    issues = db.Column(db.JSON, default=list)
    timeline_urgency = db.Column(db.String(20))
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    INTAKE_FIELDS = (
        'job_type', 'roof_size_sqft', 'roof_material', 'roof_pitch', 'stories',
        'has_skylights', 'has_chimneys', 'has_solar_panels', 'issues', 'timeline_urgency',
    )

    def to_dict(self):
        data = {field: getattr(self, field) for field in self.INTAKE_FIELDS}
        data['issues'] = list(self.issues or [])
        return data
