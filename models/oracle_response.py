from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from database import Base


class OracleResponse(Base):
    __tablename__ = "oracle_responses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question = Column(String(500), nullable=False)
    answer = Column(Text, nullable=False)
    category = Column(String(20), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
