# roofing_estimator/models/line_item.py

from .base import db
from ..services.date_utils import utc_now


class LineItem(db.Model):
    """Catalog entry. Retired with is_active=False, never deleted."""

    __tablename__ = 'line_items'

    id = db.Column(db.Integer, primary_key=True)
    item_code = db.Column(db.String(40), unique=True, nullable=False)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    category = db.Column(db.String(40), nullable=False, index=True)
    unit_type = db.Column(db.String(10), nullable=False, default='EA')
    base_material_cost = db.Column(db.Float, default=0.0, nullable=False)
    base_labor_cost = db.Column(db.Float, default=0.0, nullable=False)
    base_equipment_cost = db.Column(db.Float, default=0.0, nullable=False)
    quantity_formula = db.Column(db.String(200))
    default_waste_factor = db.Column(db.Float, default=1.0, nullable=False)
    is_taxable = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'item_code': self.item_code,
            'name': self.name,
            'description': self.description,
            'category': self.category,
            'unit_type': self.unit_type,
            'base_material_cost': self.base_material_cost,
            'base_labor_cost': self.base_labor_cost,
            'base_equipment_cost': self.base_equipment_cost,
            'quantity_formula': self.quantity_formula,
            'default_waste_factor': self.default_waste_factor,
            'is_taxable': self.is_taxable,
            'sort_order': self.sort_order,
            'is_active': self.is_active,
        }
