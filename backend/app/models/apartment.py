"""
Apartment database model (read-only directory data).
"""

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Apartment(Base):
    """
    Apartment model.

    Every apartment belongs to exactly one owner; settlements are scoped
    through this link.
    """
    __tablename__ = "apartments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    owner_id = Column(Integer, ForeignKey('owners.id'), nullable=False, index=True)

    unit = Column(String(100), nullable=False)
    address = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Apartment(id={self.id}, unit='{self.unit}', owner_id={self.owner_id})>"
