from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import date, datetime
from organflow.models.organ import OrganStatus

CAMEL_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class RecipientDetails(BaseModel):
    model_config = CAMEL_CONFIG

    name: Optional[str] = None
    age: Optional[int] = None
    blood_type: Optional[str] = None
    hospital: Optional[str] = None
    surgeon: Optional[str] = None
    transplant_date: Optional[date] = None
    notes: Optional[str] = None


class Organ(BaseModel):
    model_config = CAMEL_CONFIG

    id: int
    organ_type: str
    blood_type: str
    status: OrganStatus = OrganStatus.DONATED
    donor: str
    hospital: Optional[str] = None
    recipient: Optional[str] = None
    recipient_details: Optional[RecipientDetails] = None
    token_uri: Optional[str] = None
    created_at: datetime


class OrganCreate(BaseModel):
    model_config = CAMEL_CONFIG

    donor: str = Field(..., min_length=1)
    organ_type: str = Field(..., min_length=1)
    blood_type: str = Field(..., min_length=1)
    hospital: Optional[str] = None
    token_uri: Optional[str] = None


class OrganTransfer(BaseModel):
    model_config = CAMEL_CONFIG

    hospital: str


class OrganTransplant(BaseModel):
    model_config = CAMEL_CONFIG

    recipient: Optional[str] = None  # Defaults to recipient_details.name
    recipient_details: RecipientDetails


class OrganRequestCreate(BaseModel):
    model_config = CAMEL_CONFIG

    requesting_hospital: str
    owning_hospital: Optional[str] = None
