"""
Row validation and natural-key resolution for each import kind.

A resolver turns a raw record (header name -> trimmed string) into a
validated create payload. It checks required fields and formats, resolves
usernames and codes to ids, and rejects rows whose natural key is already
taken. It never writes.
"""
import re
from datetime import date, datetime, time
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import RowDuplicateError, RowReferenceError, RowValidationError
from app.db.repositories.groups import GroupRepository
from app.db.repositories.profiles import ProfileRepository
from app.db.repositories.subjects import SubjectRepository
from app.models.profile import UserRole
from app.models.schedule import Modalidad
from app.schemas.academic import GroupCreate, ScheduleCreate, SubjectCreate
from app.schemas.user import UserImportPayload
from app.services.auth.provider import AuthProvider
from app.utils.datetime import hours_between

INTEGER_RE = re.compile(r"^[+-]?\d+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

USER_FIELDS = ["username", "full_name", "email"]
SUBJECT_FIELDS = ["code", "name"]
GROUP_FIELDS = ["subject_code", "name", "code"]
SCHEDULE_FIELDS = ["teacher_username", "subject_code", "group_code", "fecha", "hora_inicio", "hora_fin"]

MIN_CREDITS, MAX_CREDITS = 1, 10
MIN_YEAR, MAX_YEAR = 2020, 2030
DEFAULT_MAX_STUDENTS = 30
DEFAULT_SEMESTER = "1"


def require_fields(record: Dict[str, str], fields: List[str]) -> None:
    """
    Reject the row when any required field is empty, naming all of them.

    Raises:
        RowValidationError: One or more fields are missing
    """
    missing = [name for name in fields if not record.get(name)]
    if missing:
        raise RowValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            details={"missing_fields": missing},
        )


def parse_int(value: str) -> Optional[int]:
    """Strict base-10 integer parsing; returns None for anything else."""
    if not INTEGER_RE.match(value):
        return None
    return int(value)


def parse_is_active(value: str) -> bool:
    """Empty means active; only 'true' or '1' (any case) are active otherwise."""
    if not value:
        return True
    return value.lower() in ("true", "1")


def parse_fecha(value: str) -> date:
    if not DATE_RE.match(value):
        raise RowValidationError(f"Date '{value}' must use the format YYYY-MM-DD")
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise RowValidationError(f"Date '{value}' is not a valid calendar date")


def parse_hora(field_name: str, value: str) -> time:
    if not TIME_RE.match(value):
        raise RowValidationError(f"{field_name} '{value}' must use the format HH:MM")
    try:
        return datetime.strptime(value, "%H:%M").time()
    except ValueError:
        raise RowValidationError(f"{field_name} '{value}' is not a valid time of day")


async def resolve_user(
    session: AsyncSession,
    record: Dict[str, str],
    auth_provider: AuthProvider,
) -> UserImportPayload:
    """
    Validate a user row.

    Args:
        session: Session of the row transaction
        record: Raw row values
        auth_provider: Provider holding the identities (email uniqueness)

    Returns:
        UserImportPayload: Identity and profile data

    Raises:
        RowValidationError: Missing field, bad email or unknown role
        RowDuplicateError: Username or email already registered
    """
    require_fields(record, USER_FIELDS)

    username = record["username"]
    email = record["email"]

    if not EMAIL_RE.match(email):
        raise RowValidationError(f"Email '{email}' is not a valid address")

    role_value = record.get("role") or settings.DEFAULT_USER_ROLE
    try:
        role = UserRole(role_value)
    except ValueError:
        allowed = ", ".join(member.value for member in UserRole)
        raise RowValidationError(f"Role '{role_value}' is not valid. Allowed roles: {allowed}")

    if await ProfileRepository(session).get_by_username(username) is not None:
        raise RowDuplicateError(f"User with username '{username}' already exists")

    if await auth_provider.email_exists(email):
        raise RowDuplicateError(f"User with email '{email}' already exists")

    return UserImportPayload(
        username=username,
        full_name=record["full_name"],
        email=email,
        password=record.get("password") or settings.DEFAULT_IMPORT_PASSWORD,
        role=role,
        is_active=parse_is_active(record.get("is_active", "")),
    )


async def resolve_subject(session: AsyncSession, record: Dict[str, str]) -> SubjectCreate:
    """Validate a subject row; credits default to 1."""
    require_fields(record, SUBJECT_FIELDS)

    code = record["code"]
    if any(char.isspace() for char in code):
        raise RowValidationError(f"Subject code '{code}' must not contain whitespace")

    credits = MIN_CREDITS
    if record.get("credits"):
        credits = parse_int(record["credits"])
        if credits is None or not MIN_CREDITS <= credits <= MAX_CREDITS:
            raise RowValidationError(
                f"Credits '{record['credits']}' must be an integer between {MIN_CREDITS} and {MAX_CREDITS}"
            )

    if await SubjectRepository(session).get_by_code(code) is not None:
        raise RowDuplicateError(f"Subject with code '{code}' already exists")

    return SubjectCreate(
        code=code,
        name=record["name"],
        credits=credits,
        description=record.get("description") or None,
    )


async def resolve_group(
    session: AsyncSession,
    record: Dict[str, str],
    today: Optional[date] = None,
) -> GroupCreate:
    """
    Validate a group row and resolve its subject.

    Args:
        session: Session of the row transaction
        record: Raw row values
        today: Reference date for the default year

    Returns:
        GroupCreate: Payload with the resolved subject id
    """
    require_fields(record, GROUP_FIELDS)

    code = record["code"]
    subject_code = record["subject_code"]
    subject = await SubjectRepository(session).get_by_code(subject_code)
    if subject is None:
        raise RowReferenceError(f"Subject with code '{subject_code}' not found. Import subjects first.")

    if await GroupRepository(session).get_by_code(code) is not None:
        raise RowDuplicateError(f"Group with code '{code}' already exists")

    max_students = DEFAULT_MAX_STUDENTS
    if record.get("max_students"):
        max_students = parse_int(record["max_students"])
        if max_students is None or max_students < 1:
            raise RowValidationError(f"max_students '{record['max_students']}' must be a positive integer")

    year = (today or date.today()).year
    if record.get("year"):
        year = parse_int(record["year"])
        if year is None or not MIN_YEAR <= year <= MAX_YEAR:
            raise RowValidationError(
                f"Year '{record['year']}' must be an integer between {MIN_YEAR} and {MAX_YEAR}"
            )

    return GroupCreate(
        code=code,
        name=record["name"],
        subject_id=subject.id,
        semester=record.get("semester") or DEFAULT_SEMESTER,
        year=year,
        max_students=max_students,
    )


async def resolve_schedule(session: AsyncSession, record: Dict[str, str]) -> ScheduleCreate:
    """
    Validate a schedule row and resolve teacher, subject and group.

    The first reference that does not resolve is reported, checked in the
    order teacher, subject, group.
    """
    require_fields(record, SCHEDULE_FIELDS)

    fecha = parse_fecha(record["fecha"])
    hora_inicio = parse_hora("hora_inicio", record["hora_inicio"])
    hora_fin = parse_hora("hora_fin", record["hora_fin"])

    modalidad_value = record.get("modalidad") or Modalidad.PRESENCIAL.value
    try:
        modalidad = Modalidad(modalidad_value)
    except ValueError:
        allowed = ", ".join(member.value for member in Modalidad)
        raise RowValidationError(f"Modalidad '{modalidad_value}' is not valid. Allowed values: {allowed}")

    teacher = await ProfileRepository(session).get_by_username(record["teacher_username"])
    if teacher is None:
        raise RowReferenceError(
            f"Teacher with username '{record['teacher_username']}' not found. Import users first."
        )

    subject = await SubjectRepository(session).get_by_code(record["subject_code"])
    if subject is None:
        raise RowReferenceError(
            f"Subject with code '{record['subject_code']}' not found. Import subjects first."
        )

    group = await GroupRepository(session).get_by_code(record["group_code"])
    if group is None:
        raise RowReferenceError(
            f"Group with code '{record['group_code']}' not found. Import groups first."
        )

    horas_programadas = hours_between(hora_inicio, hora_fin)
    if horas_programadas <= 0:
        raise RowValidationError("End time must be after start time")

    return ScheduleCreate(
        fecha=fecha,
        hora_inicio=hora_inicio,
        hora_fin=hora_fin,
        teacher_id=teacher.id,
        subject_id=subject.id,
        group_id=group.id,
        modalidad=modalidad,
        aula=record.get("aula") or None,
        horas_programadas=horas_programadas,
    )
