# roofing_estimator/models/detailed_estimate.py

from .base import db
from ..services.date_utils import utc_now, format_date_for_response
from ..services.money_utils import to_cents

ESTIMATE_STATUSES = ('draft', 'approved', 'sent')

# Allowed status changes. Approved and sent never go back to draft.
STATUS_TRANSITIONS = {
    'draft': ('approved', 'sent'),
    'approved': ('sent',),
    'sent': (),
}

TOTAL_FIELDS = (
    'total_material', 'total_labor', 'total_equipment', 'subtotal',
    'overhead_percent', 'overhead_amount', 'profit_percent', 'profit_amount',
    'taxable_amount', 'tax_percent', 'tax_amount', 'pre_adjustment_price',
    'geographic_adjustment', 'price_low', 'price_likely', 'price_high',
)


class DetailedEstimate(db.Model):
    __tablename__ = 'detailed_estimates'

    id = db.Column(db.Integer, primary_key=True)
    lead_id = db.Column(db.Integer, db.ForeignKey('leads.id'), nullable=False, index=True)
    name = db.Column(db.String(200))
    version = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default='draft')
    is_superseded = db.Column(db.Boolean, default=False, nullable=False)

    source_macro_id = db.Column(db.Integer, db.ForeignKey('estimate_macros.id'))
    sketch_id = db.Column(db.Integer, db.ForeignKey('roof_sketches.id'))
    geographic_pricing_id = db.Column(db.Integer, db.ForeignKey('geographic_pricing.id'))
    variables = db.Column(db.JSON)

    # Totals
    total_material = db.Column(db.Float, default=0.0)
    total_labor = db.Column(db.Float, default=0.0)
    total_equipment = db.Column(db.Float, default=0.0)
    subtotal = db.Column(db.Float, default=0.0)
    overhead_percent = db.Column(db.Float, default=10.0)
    overhead_amount = db.Column(db.Float, default=0.0)
    profit_percent = db.Column(db.Float, default=15.0)
    profit_amount = db.Column(db.Float, default=0.0)
    taxable_amount = db.Column(db.Float, default=0.0)
    tax_percent = db.Column(db.Float, default=0.0)
    tax_amount = db.Column(db.Float, default=0.0)
    pre_adjustment_price = db.Column(db.Float, default=0.0)
    geographic_adjustment = db.Column(db.Float, default=1.0)
    price_low = db.Column(db.Integer)
    price_likely = db.Column(db.Integer)
    price_high = db.Column(db.Integer)
    adjusted_price = db.Column(db.Float)

    # Policies in force when the estimate was calculated
    tax_policy = db.Column(db.String(20), nullable=False, default='items')
    geographic_mode = db.Column(db.String(20), nullable=False, default='mean')

    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)
    updated_at = db.Column(db.DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    lead = db.relationship('Lead', backref=db.backref('detailed_estimates', lazy='dynamic'))
    source_macro = db.relationship('EstimateMacro')
    geographic_pricing = db.relationship('GeographicPricing')
    line_items = db.relationship('EstimateLineItem', backref='estimate',
                                 order_by='EstimateLineItem.sort_order',
                                 cascade="all, delete-orphan")
    price_adjustments = db.relationship('PriceAdjustment', backref='estimate',
                                        order_by='PriceAdjustment.id',
                                        cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint('lead_id', 'version', name='uq_detailed_estimate_version'),
        db.Index(
            'uq_detailed_estimate_current', 'lead_id', unique=True,
            postgresql_where=db.text('is_superseded = false'),
            sqlite_where=db.text('is_superseded = 0'),
        ),
    )

    @property
    def is_editable(self):
        return self.status == 'draft' and not self.is_superseded

    def apply_totals(self, totals):
        for field in TOTAL_FIELDS:
            setattr(self, field, getattr(totals, field))

    def to_dict(self, include_line_items=True):
        data = {
            'id': self.id,
            'lead_id': self.lead_id,
            'name': self.name,
            'version': self.version,
            'status': self.status,
            'is_superseded': self.is_superseded,
            'source_macro_id': self.source_macro_id,
            'sketch_id': self.sketch_id,
            'geographic_pricing_id': self.geographic_pricing_id,
            'region_name': self.geographic_pricing.name if self.geographic_pricing else None,
            'variables': self.variables,
            'adjusted_price': to_cents(self.adjusted_price),
            'tax_policy': self.tax_policy,
            'geographic_mode': self.geographic_mode,
            'notes': self.notes,
            'created_at': format_date_for_response(self.created_at),
            'updated_at': format_date_for_response(self.updated_at),
        }
        for field in TOTAL_FIELDS:
            data[field] = to_cents(getattr(self, field))
        data['geographic_adjustment'] = round(self.geographic_adjustment or 1.0, 4)
        data['price_low'] = self.price_low
        data['price_likely'] = self.price_likely
        data['price_high'] = self.price_high
        if include_line_items:
            data['line_items'] = [item.to_dict() for item in self.line_items]
            data['price_adjustments'] = [adjustment.to_dict() for adjustment in self.price_adjustments]
        return data


class EstimateLineItem(db.Model):
    """Priced copy of a catalog item inside one estimate version."""

    __tablename__ = 'estimate_line_items'

    id = db.Column(db.Integer, primary_key=True)
    detailed_estimate_id = db.Column(db.Integer, db.ForeignKey('detailed_estimates.id'), nullable=False, index=True)
    line_item_id = db.Column(db.Integer, db.ForeignKey('line_items.id'))
    item_code = db.Column(db.String(40), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    category = db.Column(db.String(40))
    unit_type = db.Column(db.String(10))
    quantity = db.Column(db.Float, default=0.0)
    quantity_formula = db.Column(db.String(200))
    waste_factor = db.Column(db.Float, default=1.0)
    quantity_with_waste = db.Column(db.Float, default=0.0)
    material_unit_cost = db.Column(db.Float, default=0.0)
    labor_unit_cost = db.Column(db.Float, default=0.0)
    equipment_unit_cost = db.Column(db.Float, default=0.0)
    material_total = db.Column(db.Float, default=0.0)
    labor_total = db.Column(db.Float, default=0.0)
    equipment_total = db.Column(db.Float, default=0.0)
    line_total = db.Column(db.Float, default=0.0)
    is_included = db.Column(db.Boolean, default=True, nullable=False)
    is_optional = db.Column(db.Boolean, default=False, nullable=False)
    is_taxable = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0)
    group_name = db.Column(db.String(100))
    notes = db.Column(db.Text)

    @classmethod
    def from_calculated(cls, calculated):
        return cls(**{
            name: getattr(calculated, name)
            for name in calculated.__dataclass_fields__
        })

    def to_dict(self):
        return {
            'id': self.id,
            'line_item_id': self.line_item_id,
            'item_code': self.item_code,
            'name': self.name,
            'category': self.category,
            'unit_type': self.unit_type,
            'quantity': round(self.quantity or 0.0, 2),
            'quantity_formula': self.quantity_formula,
            'waste_factor': self.waste_factor,
            'quantity_with_waste': round(self.quantity_with_waste or 0.0, 2),
            'material_unit_cost': to_cents(self.material_unit_cost),
            'labor_unit_cost': to_cents(self.labor_unit_cost),
            'equipment_unit_cost': to_cents(self.equipment_unit_cost),
            'material_total': to_cents(self.material_total),
            'labor_total': to_cents(self.labor_total),
            'equipment_total': to_cents(self.equipment_total),
            'line_total': to_cents(self.line_total),
            'is_included': self.is_included,
            'is_optional': self.is_optional,
            'is_taxable': self.is_taxable,
            'sort_order': self.sort_order,
            'group_name': self.group_name,
            'notes': self.notes,
        }


class PriceAdjustment(db.Model):
    __tablename__ = 'price_adjustments'

    id = db.Column(db.Integer, primary_key=True)
    estimate_id = db.Column(db.Integer, db.ForeignKey('detailed_estimates.id'), nullable=False, index=True)
    adjustment_type = db.Column(db.String(30), nullable=False)
    adjustment_value = db.Column(db.Float, nullable=False)
    adjustment_amount = db.Column(db.Float, nullable=False)
    original_price = db.Column(db.Float, nullable=False)
    new_price = db.Column(db.Float, nullable=False)
    description = db.Column(db.String(200))
    internal_reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), default=utc_now)

    def to_dict(self):
        return {
            'id': self.id,
            'estimate_id': self.estimate_id,
            'adjustment_type': self.adjustment_type,
            'adjustment_value': self.adjustment_value,
            'adjustment_amount': to_cents(self.adjustment_amount),
            'original_price': to_cents(self.original_price),
            'new_price': to_cents(self.new_price),
            'description': self.description,
            'created_at': format_date_for_response(self.created_at),
        }
