from sqlalchemy import Boolean, Column, DateTime, JSON, String, Text

from app.db.base_class import Base, generate_uuid, utcnow


class NutritionTemplate(Base):
    __tablename__ = "nutrition_templates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    targets = Column(JSON)
    activity_entries = Column(JSON)
    manual_fields = Column(JSON)
    manual_override = Column(JSON)
    is_public = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(36))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
