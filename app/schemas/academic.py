"""
Pydantic schemas for subjects, groups and schedules created by imports.
"""
from datetime import date, time
from typing import Optional
from pydantic import BaseModel, Field

from app.models.schedule import EstadoCronograma, Modalidad


class SubjectCreate(BaseModel):
    """Schema for creating a subject."""
    code: str = Field(..., description="Unique subject code, no whitespace")
    name: str = Field(..., description="Subject name")
    credits: int = Field(1, ge=1, le=10, description="Credit value")
    description: Optional[str] = Field(None, description="Free text description")
    is_active: bool = True


class GroupCreate(BaseModel):
    """Schema for creating a group of a subject."""
    code: str = Field(..., description="Unique group code")
    name: str = Field(..., description="Group name")
    subject_id: str = Field(..., description="Resolved subject ID")
    semester: str = Field("1", description="Semester label")
    year: int = Field(..., ge=2020, le=2030, description="Academic year")
    max_students: int = Field(30, gt=0, description="Capacity")
    is_active: bool = True


class ScheduleCreate(BaseModel):
    """Schema for creating one scheduled class session."""
    fecha: date
    hora_inicio: time
    hora_fin: time
    teacher_id: str
    subject_id: str
    group_id: str
    modalidad: Modalidad = Modalidad.PRESENCIAL
    aula: Optional[str] = None
    horas_programadas: float = Field(..., gt=0)
    estado: EstadoCronograma = EstadoCronograma.PROGRAMADO
