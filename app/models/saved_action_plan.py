from sqlalchemy import Column, DateTime, ForeignKey, JSON, String, Text

from app.db.base_class import Base, generate_uuid, utcnow


class SavedActionPlan(Base):
    """Point-in-time copy of a budget and its templates, kept on a lead's record."""

    __tablename__ = "saved_action_plans"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    lead_id = Column(String(36), ForeignKey("leads.id", ondelete="CASCADE"), index=True)
    budget_id = Column(String(36), ForeignKey("budgets.id", ondelete="SET NULL"))
    name = Column(String(255), nullable=False)
    description = Column(Text)
    snapshot = Column(JSON, nullable=False)
    notes = Column(Text)
    saved_at = Column(DateTime(timezone=True), default=utcnow)
