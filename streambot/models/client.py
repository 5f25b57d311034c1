from sqlalchemy import Column, DateTime, Integer, String, func

from streambot.core.database import Base


class Client(Base):
    __tablename__ = "clientes"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, index=True, nullable=False)
    name = Column(String, default="", nullable=False)
    phone = Column(String, default="", nullable=False)
    platform = Column(String, default="", nullable=False)

    # fim da assinatura; perfis com data futura contam como ocupados
    end_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
