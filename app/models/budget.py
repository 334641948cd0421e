from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text

from app.db.base_class import Base, generate_uuid, utcnow


class Budget(Base):
    __tablename__ = "budgets"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    nutrition_template_id = Column(String(36), index=True)
    nutrition_targets = Column(JSON)
    steps_goal = Column(Integer, nullable=False, default=0)
    steps_min = Column(Integer)
    steps_max = Column(Integer)
    steps_instructions = Column(Text)
    workout_template_id = Column(String(36), index=True)
    supplement_template_id = Column(String(36))
    supplements = Column(JSON, nullable=False, default=list)
    eating_order = Column(Text)
    eating_rules = Column(Text)
    other_notes = Column(Text)
    cardio_training = Column(JSON)
    interval_training = Column(JSON)
    is_public = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(36), index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
