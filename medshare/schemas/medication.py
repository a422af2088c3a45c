from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MedicationBase(BaseModel):
    """Base schema for a medication on a patient's chart."""

    medication_name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: Optional[str] = Field(None, max_length=100)
    morning_dose: Optional[str] = Field(None, max_length=50)
    afternoon_dose: Optional[str] = Field(None, max_length=50)
    evening_dose: Optional[str] = Field(None, max_length=50)
    instructions: Optional[str] = None
    prescribed_by: Optional[str] = Field(None, max_length=200)
    prescribed_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class MedicationCreate(MedicationBase):
    pass


class MedicationUpdate(BaseModel):
    """Partial update; only fields that are sent are changed."""

    medication_name: Optional[str] = Field(None, min_length=1, max_length=200)
    dosage: Optional[str] = Field(None, min_length=1, max_length=100)
    frequency: Optional[str] = Field(None, max_length=100)
    morning_dose: Optional[str] = Field(None, max_length=50)
    afternoon_dose: Optional[str] = Field(None, max_length=50)
    evening_dose: Optional[str] = Field(None, max_length=50)
    instructions: Optional[str] = None
    prescribed_by: Optional[str] = Field(None, max_length=200)
    prescribed_date: Optional[date] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class MedicationResponse(MedicationBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    patient_id: int
    organization_id: int
    is_active: bool
    added_by: int
    added_at: datetime
    updated_by: Optional[int] = None
    updated_at: Optional[datetime] = None

    added_by_name: Optional[str] = None
    organization_name: Optional[str] = None
