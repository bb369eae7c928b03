"""
Downloadable CSV templates, one per import kind.
"""
from typing import Dict, List

from app.models.import_job import ImportType
from app.schemas.import_job import ImportTemplate
from app.services.imports.parser import DELIMITER, QUOTE
from app.services.imports.resolvers import GROUP_FIELDS, SCHEDULE_FIELDS, SUBJECT_FIELDS, USER_FIELDS

TEMPLATES: Dict[ImportType, ImportTemplate] = {
    ImportType.USERS: ImportTemplate(
        import_type=ImportType.USERS,
        title="Users template",
        description="Dashboard users with their login credentials",
        fields=["username", "full_name", "email", "password", "role", "is_active"],
        required_fields=USER_FIELDS,
        example=["jperez", "Juan Pérez", "juan.perez@email.com", "TempPass123!", "docente", "true"],
        notes=[
            "password defaults to the configured placeholder when empty",
            "role is one of superadmin, admin, director, coordinador, asistente, docente (default docente)",
            "is_active accepts true or 1; empty means active",
        ],
    ),
    ImportType.SUBJECTS: ImportTemplate(
        import_type=ImportType.SUBJECTS,
        title="Subjects template",
        description="Academic subjects",
        fields=["code", "name", "credits", "description"],
        required_fields=SUBJECT_FIELDS,
        example=["MAT002", "Matemáticas II", "4", "Cálculo diferencial e integral"],
        notes=[
            "code must not contain spaces",
            "credits is an integer between 1 and 10 (default 1)",
        ],
    ),
    ImportType.GROUPS: ImportTemplate(
        import_type=ImportType.GROUPS,
        title="Groups template",
        description="Student groups of existing subjects",
        fields=["name", "code", "semester", "year", "max_students", "subject_code"],
        required_fields=GROUP_FIELDS,
        example=["Grupo B", "MAT002-B", "2", "2024", "25", "MAT002"],
        notes=[
            "subject_code must reference an imported subject",
            "year is between 2020 and 2030 (default current year)",
            "max_students defaults to 30",
        ],
    ),
    ImportType.SCHEDULES: ImportTemplate(
        import_type=ImportType.SCHEDULES,
        title="Schedules template",
        description="Class sessions of existing groups",
        fields=["fecha", "hora_inicio", "hora_fin", "teacher_username", "subject_code", "group_code", "modalidad", "aula"],
        required_fields=SCHEDULE_FIELDS,
        example=["2024-03-15", "10:00", "12:00", "jperez", "MAT002", "MAT002-B", "presencial", "B201"],
        notes=[
            "fecha uses YYYY-MM-DD and times use HH:MM",
            "modalidad is one of presencial, virtual, hibrida (default presencial)",
            "import users, subjects and groups before schedules",
        ],
    ),
}


def list_templates() -> List[ImportTemplate]:
    return [TEMPLATES[import_type] for import_type in ImportType]


def get_template(import_type: ImportType) -> ImportTemplate:
    return TEMPLATES[ImportType(import_type)]


def _csv_value(value: str) -> str:
    if DELIMITER in value:
        return f"{QUOTE}{value}{QUOTE}"
    return value


def render_template_csv(import_type: ImportType) -> str:
    """
    Header line plus one example row, ready to be filled in.

    Args:
        import_type: Kind of template

    Returns:
        str: CSV text
    """
    template = get_template(import_type)
    header = DELIMITER.join(template.fields)
    example = DELIMITER.join(_csv_value(value) for value in template.example)
    return f"{header}\n{example}\n"


def template_file_name(import_type: ImportType) -> str:
    return f"template_{ImportType(import_type).value}.csv"
