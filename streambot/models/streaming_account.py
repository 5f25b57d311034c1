from sqlalchemy import Column, DateTime, Integer, String, func

from streambot.core.database import Base


class StreamingAccount(Base):
    __tablename__ = "cuentas"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, index=True, nullable=False)
    platform = Column(String, nullable=False)
    total_profiles = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
