from sqlalchemy import Boolean, Column, DateTime, JSON, String, Text

from app.db.base_class import Base, generate_uuid, utcnow


class WorkoutTemplate(Base):
    __tablename__ = "workout_templates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    goal_tags = Column(JSON)
    # {"weeklyWorkout": {"strength": int, "cardio": int, "intervals": int}, ...}
    routine_data = Column(JSON)
    is_public = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(36))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
