from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, JSON, String, Text

from app.db.base_class import Base, generate_uuid, utcnow


class SupplementPlan(Base):
    __tablename__ = "supplement_plans"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    budget_id = Column(String(36), ForeignKey("budgets.id", ondelete="SET NULL"), index=True)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="CASCADE"), index=True)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), index=True)
    user_id = Column(String(36), nullable=False)
    start_date = Column(Date)
    description = Column(Text)
    supplements = Column(JSON, nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(36))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
