from sqlalchemy import Column, Integer, String, Date
from leave_engine.database import Base

class Holiday(Base):
    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
