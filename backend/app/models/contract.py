"""
Contract database model (read-only directory data).
"""

from sqlalchemy import Column, Integer, Numeric, Date, Boolean, ForeignKey, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Contract(Base):
    """
    Lease contract between a tenant and an apartment.

    `monthly_rent` feeds monthly rent generation; `commission_rate`
    (percentage, nullable) takes precedence over the owner's rate.
    """
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    apartment_id = Column(Integer, ForeignKey('apartments.id'), nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id'), nullable=False, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    monthly_rent = Column(Numeric(14, 2), nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Contract(id={self.id}, apartment_id={self.apartment_id}, tenant_id={self.tenant_id})>"
