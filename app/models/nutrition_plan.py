from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, JSON, String, Text

from app.db.base_class import Base, generate_uuid, utcnow


class NutritionPlan(Base):
    __tablename__ = "nutrition_plans"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    budget_id = Column(String(36), ForeignKey("budgets.id", ondelete="SET NULL"), index=True)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="CASCADE"), index=True)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), index=True)
    user_id = Column(String(36), nullable=False)
    template_id = Column(String(36))
    start_date = Column(Date)
    description = Column(Text)
    # May carry "_manual_override" and "_calculator_inputs" metadata next to the macro targets
    targets = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(36))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
