from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum
from organflow.database import Base
import enum


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TransferRequestRow(Base):
    __tablename__ = "transfer_requests"

    request_id = Column(String(32), primary_key=True)
    position = Column(Integer, nullable=False, index=True)  # Insertion order
    organ_id = Column(Integer, ForeignKey("organs.id"), nullable=False, index=True)
    requesting_hospital = Column(String(255), nullable=False)
    owning_hospital = Column(String(255), nullable=False)
    status = Column(Enum(RequestStatus), nullable=False, default=RequestStatus.PENDING)
    created_at = Column(DateTime(timezone=True), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
