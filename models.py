from sqlalchemy import Column, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# The table only ever holds this row
COUNTER_ROW_ID = 1


class CounterRow(Base):
    __tablename__ = 'counters'
    id = Column(Integer, primary_key=True)
    total_visitors = Column(Integer, nullable=False, default=0)
    total_clicks = Column(Integer, nullable=False, default=0)
