from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from app.models.database import Base

DEFAULT_RATE_CURRENCY = "PI"


class ExchangeRate(Base):
    __tablename__ = "exchange_rates"
    __table_args__ = (CheckConstraint("rate > 0", name="ck_exchange_rates_rate_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    currency = Column(String(16), nullable=False, default=DEFAULT_RATE_CURRENCY, index=True)
    rate = Column(Numeric(20, 8), nullable=False)  # local currency per 1 Pi
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
