import sqlalchemy as sa
from sqlalchemy import Column, DateTime, Integer, String, func

from streambot.core.database import Base


class BotConfigRecord(Base):
    __tablename__ = "chatbot_config"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, index=True, nullable=False, unique=True)

    # documento livre: businessName, context, fallbackMsg, botSettings...
    data = Column(sa.JSON(), nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
