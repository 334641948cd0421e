from sqlalchemy import Column, DateTime, ForeignKey, String

from app.db.base_class import Base, generate_uuid, utcnow


class Lead(Base):
    __tablename__ = "leads"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    full_name = Column(String(255))
    phone = Column(String(50))
    email = Column(String(255))
    status = Column(String(50))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
