from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import func

from app.models.database import Base


class ServiceOffer(Base):
    __tablename__ = "service_offers"

    id = Column(Integer, primary_key=True, index=True)
    ngo_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    location = Column(String(255), nullable=True)
    wage_info = Column(JSON, nullable=True)
    requirements = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="draft")  # draft | active | closed
    admin_status = Column(String(20), nullable=False, default="pending", index=True)  # pending | approved | rejected
    admin_reviewed_at = Column(DateTime(timezone=True), nullable=True)
    admin_reviewed_by = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    admin_comments = Column(Text, nullable=True)
    # Submission time; the review deadline counts from here.
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class ServiceOfferReview(Base):
    __tablename__ = "service_offer_reviews"

    id = Column(Integer, primary_key=True, index=True)
    service_offer_id = Column(Integer, ForeignKey("service_offers.id"), nullable=False, index=True)
    review_action = Column(String(20), nullable=False)  # approved | rejected | auto_rejected
    admin_comments = Column(Text, nullable=False)
    offer_snapshot = Column(JSON, nullable=False)
    admin_user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    admin_ip_address = Column(String(64), nullable=True)
    admin_user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ServiceRequest(Base):
    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True, index=True)
    ngo_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=False)
    location = Column(String(255), nullable=True)
    volunteers_needed = Column(Integer, nullable=False, default=1)
    requirements = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active | in_progress | completed | cancelled
    created_at = Column(DateTime(timezone=True), server_default=func.now())
