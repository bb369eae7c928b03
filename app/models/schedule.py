"""
Database model for scheduled class sessions.
"""
from enum import Enum

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, String, Text, Time

from app.models.base import Base, value_enum


class Modalidad(str, Enum):
    """Delivery mode of a class session."""
    PRESENCIAL = "presencial"
    VIRTUAL = "virtual"
    HIBRIDA = "hibrida"


class EstadoCronograma(str, Enum):
    """Lifecycle of a scheduled session."""
    PROGRAMADO = "programado"
    EN_CURSO = "en_curso"
    COMPLETADO = "completado"
    CANCELADO = "cancelado"


class Schedule(Base):
    """One class session of a group, taught by a teacher on a date."""

    __tablename__ = "schedules"

    fecha = Column(Date, nullable=False, index=True)
    hora_inicio = Column(Time, nullable=False)
    hora_fin = Column(Time, nullable=False)
    horas_programadas = Column(Float, nullable=True)

    modalidad = Column(value_enum(Modalidad), default=Modalidad.PRESENCIAL, nullable=False)
    estado = Column(value_enum(EstadoCronograma), default=EstadoCronograma.PROGRAMADO, nullable=False)
    aula = Column(String, nullable=True)

    cumplido = Column(Boolean, nullable=True)
    fecha_cumplimiento = Column(DateTime(timezone=True), nullable=True)
    observaciones = Column(Text, nullable=True)

    teacher_id = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)
    subject_id = Column(String, ForeignKey("subjects.id"), nullable=False, index=True)
    group_id = Column(String, ForeignKey("groups.id"), nullable=False, index=True)
