from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, JSON
from organflow.database import Base
import enum


class OrganStatus(str, enum.Enum):
    DONATED = "Donated"
    TRANSFERRED = "Transferred"
    REQUESTED = "Requested"
    TRANSPLANTED = "Transplanted"


class OrganRow(Base):
    __tablename__ = "organs"

    id = Column(Integer, primary_key=True, autoincrement=False)
    organ_type = Column(String(64), nullable=False)
    blood_type = Column(String(16), nullable=False)
    status = Column(Enum(OrganStatus), nullable=False, default=OrganStatus.DONATED, index=True)
    donor = Column(String(255), nullable=False)
    hospital = Column(String(255), nullable=True)  # Null until the first transfer
    recipient = Column(String(255), nullable=True)  # Set only once transplanted
    recipient_details = Column(JSON, nullable=True)
    token_uri = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class LifecycleStateRow(Base):
    __tablename__ = "lifecycle_state"

    id = Column(Integer, primary_key=True)
    next_id = Column(Integer, nullable=False, default=0)
