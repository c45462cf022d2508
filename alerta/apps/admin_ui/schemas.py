from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RoleName = Literal["Admin", "Director", "Subdirector", "Coordinador", "Docente", "Auxiliar"]
SignupRole = Literal["Admin", "Director", "Subdirector", "Coordinador"]
IncidentStatusName = Literal["Pendiente", "Atendido"]
PermissionStatusName = Literal["Pendiente", "Aprobado", "Rechazado"]
RiskCategoryName = Literal["Attendance", "Academic Performance", "Family Situation"]
RiskLevelName = Literal["Low", "Medium", "High"]


class LoginPayload(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=1, max_length=256)


class SignupPayload(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=6, max_length=256)
    role: SignupRole
    dni: Optional[str] = Field(default=None, max_length=20)


class StudentCreate(BaseModel):
    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    dni: str = Field(min_length=1, max_length=20)
    grade_id: Optional[str] = None
    section_id: Optional[str] = None


class StudentUpdate(BaseModel):
    """Partial update; only fields sent by the client are applied."""

    first_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    dni: Optional[str] = Field(default=None, min_length=1, max_length=20)
    grade_id: Optional[str] = None
    section_id: Optional[str] = None


class StudentImportRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first_name: str = Field(min_length=1, max_length=120)
    last_name: str = Field(min_length=1, max_length=120)
    dni: str = Field(min_length=1, max_length=20)


class StudentImportPayload(BaseModel):
    """Rows imported into one grade and section; known DNIs are skipped."""

    grade_id: str
    section_id: str
    students: List[StudentImportRow]


class GradeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    sections: List[str] = Field(default_factory=list)


class GradeUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=80)


class SectionCreate(BaseModel):
    names: List[str] = Field(min_length=1)


class SectionUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=40)


class IncidentCreate(BaseModel):
    student_id: str
    date: date
    incident_types: List[str] = Field(min_length=1)
    follow_up_notes: Optional[str] = Field(default=None, max_length=4000)


class IncidentStatusUpdate(BaseModel):
    status: IncidentStatusName
    follow_up_notes: Optional[str] = Field(default=None, max_length=4000)


class PermissionCreate(BaseModel):
    student_id: str
    request_date: date
    permission_types: List[str] = Field(min_length=1)


class PermissionStatusUpdate(BaseModel):
    status: PermissionStatusName


class NeeCreate(BaseModel):
    student_id: str
    diagnosis: str = Field(min_length=1, max_length=160)
    evaluation_date: date
    support_plan: Optional[str] = Field(default=None, max_length=4000)


class DropoutCreate(BaseModel):
    student_id: str
    dropout_date: date
    reason: str = Field(min_length=1, max_length=160)
    notes: Optional[str] = Field(default=None, max_length=4000)


class RiskCreate(BaseModel):
    student_id: str
    category: RiskCategoryName
    level: RiskLevelName
    notes: str = Field(default="", max_length=4000)


class RiskUpdate(BaseModel):
    category: Optional[RiskCategoryName] = None
    level: Optional[RiskLevelName] = None
    notes: Optional[str] = Field(default=None, max_length=4000)


class AssignmentCreate(BaseModel):
    teacher_id: str
    grade_id: str
    section_id: str


class AssignmentBatch(BaseModel):
    assignments: List[AssignmentCreate] = Field(min_length=1)


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=160)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    role: Optional[RoleName] = None
    dni: Optional[str] = Field(default=None, max_length=20)
    password: Optional[str] = Field(default=None, min_length=6, max_length=256)
    is_active: Optional[bool] = None


class SettingsUpdate(BaseModel):
    allow_registration: Optional[bool] = None
    app_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    institution_name: Optional[str] = Field(default=None, min_length=1, max_length=160)
    logo_url: Optional[str] = Field(default=None, max_length=512)
    primary_color: Optional[str] = Field(default=None, pattern=r"^#[0-9A-Fa-f]{6}$")


class CatalogEntry(BaseModel):
    value: str = Field(max_length=160)


def changes_of(payload: BaseModel) -> Dict[str, Any]:
    """Fields explicitly sent by the client."""

    return payload.model_dump(exclude_unset=True)
