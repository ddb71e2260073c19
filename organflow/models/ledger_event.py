from sqlalchemy import Column, Integer, String, Text, DateTime, Enum
from organflow.database import Base
import enum


class LedgerEventType(str, enum.Enum):
    ORGAN_REGISTERED = "OrganRegistered"
    ORGAN_TRANSFERRED = "OrganTransferred"
    ORGAN_ARRIVED = "OrganArrived"
    ORGAN_TRANSPLANTED = "OrganTransplanted"
    ORGAN_REQUESTED = "OrganRequested"
    REQUEST_REJECTED = "RequestRejected"


class LedgerEventRow(Base):
    __tablename__ = "ledger_events"

    id = Column(String(36), primary_key=True)
    position = Column(Integer, nullable=False, index=True)  # Append order
    event_type = Column(Enum(LedgerEventType), nullable=False)
    organ_id = Column(Integer, nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    tx_hash = Column(String(128), nullable=False)
    details = Column(Text, nullable=False, default="")
