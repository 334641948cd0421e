from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text

from app.db.base_class import Base, generate_uuid, utcnow


class StepsPlan(Base):
    __tablename__ = "steps_plans"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    budget_id = Column(String(36), ForeignKey("budgets.id", ondelete="SET NULL"), index=True)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="CASCADE"), index=True)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), index=True)
    user_id = Column(String(36), nullable=False)
    start_date = Column(Date)
    steps_goal = Column(Integer, nullable=False, default=0)
    steps_min = Column(Integer)
    steps_max = Column(Integer)
    steps_instructions = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(36))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
