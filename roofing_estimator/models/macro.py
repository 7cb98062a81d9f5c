# roofing_estimator/models/macro.py

from .base import db
from ..services.date_utils import utc_now, format_date_for_response

ROOF_TYPES = ('asphalt_shingle', 'metal', 'tile', 'slate', 'wood_shake', 'flat', 'any')
JOB_TYPES = ('full_replacement', 'repair', 'overlay', 'inspection', 'any')


class EstimateMacro(db.Model):
    """Reusable template that expands into a set of priced line items."""

    __tablename__ = 'estimate_macros'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    roof_type = db.Column(db.String(30), nullable=False, default='any')
    job_type = db.Column(db.String(30), nullable=False, default='any')
    is_default = db.Column(db.Boolean, default=False, nullable=False)
    is_system = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    usage_count = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    line_items = db.relationship('MacroLineItem', backref='macro', order_by='MacroLineItem.sort_order',
                                 cascade="all, delete-orphan")

    def to_dict(self, include_line_items=False):
        data = {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'roof_type': self.roof_type,
            'job_type': self.job_type,
            'is_default': self.is_default,
            'is_system': self.is_system,
            'is_active': self.is_active,
            'usage_count': self.usage_count,
            'line_item_count': len(self.line_items),
            'created_at': format_date_for_response(self.created_at),
        }
        if include_line_items:
            data['line_items'] = [association.to_dict() for association in self.line_items]
        return data


class MacroLineItem(db.Model):
    __tablename__ = 'macro_line_items'

    id = db.Column(db.Integer, primary_key=True)
    macro_id = db.Column(db.Integer, db.ForeignKey('estimate_macros.id'), nullable=False)
    line_item_id = db.Column(db.Integer, db.ForeignKey('line_items.id'), nullable=False)
    quantity_formula = db.Column(db.String(200))
    waste_factor = db.Column(db.Float)
    material_cost_override = db.Column(db.Float)
    labor_cost_override = db.Column(db.Float)
    equipment_cost_override = db.Column(db.Float)
    is_optional = db.Column(db.Boolean, default=False, nullable=False)
    is_selected_by_default = db.Column(db.Boolean, default=True, nullable=False)
    group_name = db.Column(db.String(100))
    notes = db.Column(db.Text)
    sort_order = db.Column(db.Integer, default=0, nullable=False)

    line_item = db.relationship('LineItem')

    __table_args__ = (
        db.UniqueConstraint('macro_id', 'line_item_id', name='uq_macro_line_item'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'macro_id': self.macro_id,
            'line_item_id': self.line_item_id,
            'line_item': self.line_item.to_dict() if self.line_item else None,
            'quantity_formula': self.quantity_formula,
            'waste_factor': self.waste_factor,
            'material_cost_override': self.material_cost_override,
            'labor_cost_override': self.labor_cost_override,
            'equipment_cost_override': self.equipment_cost_override,
            'is_optional': self.is_optional,
            'is_selected_by_default': self.is_selected_by_default,
            'group_name': self.group_name,
            'notes': self.notes,
            'sort_order': self.sort_order,
        }
