"""
Owner database model.

Directory data for this service: owners are managed elsewhere and looked up
to scope settlements and resolve commission rates. The only column written
here is the running `balance`.
"""

from sqlalchemy import Column, Integer, String, Numeric, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Owner(Base):
    """
    Property owner.

    `commission_rate` overrides the agency default for every contract on the
    owner's apartments (percentage, nullable). `balance` is the money the
    agency holds for the owner: collected rent share minus payments made
    from it.
    """
    __tablename__ = "owners"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)

    commission_rate = Column(Numeric(5, 2), nullable=True)
    balance = Column(Numeric(14, 2), nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Owner(id={self.id}, name='{self.name}')>"
