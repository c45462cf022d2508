from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from alerta.core.sanitizers import clean_text, normalize_dni, normalize_email

from .base import Base, new_uuid


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


UNKNOWN_STUDENT_NAME = "Estudiante Desconocido"


class Role:
    ADMIN = "Admin"
    DIRECTOR = "Director"
    SUBDIRECTOR = "Subdirector"
    COORDINADOR = "Coordinador"
    DOCENTE = "Docente"
    AUXILIAR = "Auxiliar"

    ALL = (ADMIN, DIRECTOR, SUBDIRECTOR, COORDINADOR, DOCENTE, AUXILIAR)
    PERSONNEL = (DOCENTE, AUXILIAR)


class IncidentStatus:
    PENDING = "Pendiente"
    ATTENDED = "Atendido"

    ALL = (PENDING, ATTENDED)


class PermissionStatus:
    PENDING = "Pendiente"
    APPROVED = "Aprobado"
    REJECTED = "Rechazado"

    ALL = (PENDING, APPROVED, REJECTED)
    RESOLUTIONS = (APPROVED, REJECTED)


class RiskCategory:
    ALL = ("Attendance", "Academic Performance", "Family Situation")


class RiskLevel:
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    ALL = (LOW, MEDIUM, HIGH)


class Grade(Base):
    __tablename__ = "grades"
    __table_args__ = (UniqueConstraint("name", name="uq_grades_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(80), nullable=False)

    sections: Mapped[List["Section"]] = relationship(
        back_populates="grade",
        cascade="all, delete-orphan",
        order_by="Section.name",
    )

    @validates("name")
    def _clean_name(self, _key, value: Optional[str]) -> str:
        cleaned = clean_text(value, max_length=80)
        if not cleaned:
            raise ValueError("Grade name cannot be empty")
        return cleaned

    def __repr__(self) -> str:
        return f"<Grade {self.name}>"


class Section(Base):
    __tablename__ = "sections"
    __table_args__ = (UniqueConstraint("grade_id", "name", name="uq_sections_grade_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(40), nullable=False)
    grade_id: Mapped[str] = mapped_column(
        ForeignKey("grades.id", ondelete="CASCADE"), nullable=False, index=True
    )

    grade: Mapped["Grade"] = relationship(back_populates="sections")

    @validates("name")
    def _clean_name(self, _key, value: Optional[str]) -> str:
        cleaned = clean_text(value, max_length=40)
        if not cleaned:
            raise ValueError("Section name cannot be empty")
        return cleaned

    def __repr__(self) -> str:
        return f"<Section {self.name} grade={self.grade_id}>"


class Student(Base):
    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("dni", name="uq_students_dni"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    dni: Mapped[str] = mapped_column(String(20), nullable=False)
    grade_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("grades.id", ondelete="SET NULL"), nullable=True, index=True
    )
    section_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("sections.id", ondelete="SET NULL"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    grade: Mapped[Optional["Grade"]] = relationship()
    section: Mapped[Optional["Section"]] = relationship()

    @validates("first_name", "last_name")
    def _clean_names(self, key, value: Optional[str]) -> str:
        cleaned = clean_text(value, max_length=120)
        if not cleaned:
            raise ValueError(f"{key} cannot be empty")
        return cleaned

    @validates("dni")
    def _clean_dni(self, _key, value: Optional[str]) -> str:
        cleaned = normalize_dni(value)
        if not cleaned:
            raise ValueError("DNI cannot be empty")
        return cleaned

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Student {self.id} {self.dni}>"


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (UniqueConstraint("email", name="uq_profiles_email"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.DOCENTE)
    dni: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    @validates("email")
    def _normalize_email(self, _key, value: Optional[str]) -> str:
        email = normalize_email(value)
        if "@" not in email:
            raise ValueError("A valid email is required")
        return email

    @validates("role")
    def _check_role(self, _key, value: str) -> str:
        if value not in Role.ALL:
            raise ValueError(f"Unknown role {value!r}")
        return value

    def __repr__(self) -> str:
        return f"<Profile {self.email} role={self.role}>"


class Assignment(Base):
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint(
            "teacher_id", "grade_id", "section_id", name="uq_assignments_teacher_grade_section"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    teacher_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    grade_id: Mapped[str] = mapped_column(
        ForeignKey("grades.id", ondelete="CASCADE"), nullable=False
    )
    section_id: Mapped[str] = mapped_column(
        ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True
    )

    def __repr__(self) -> str:
        return f"<Assignment teacher={self.teacher_id} section={self.section_id}>"


class Incident(Base):
    __tablename__ = "incidents"
    __table_args__ = (
        Index("ix_incidents_status_date", "status", "date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[date] = mapped_column(Date, nullable=False)
    incident_types: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=IncidentStatus.PENDING
    )
    follow_up_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    registered_by: Mapped[Optional[str]] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    attended_by: Mapped[Optional[str]] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True
    )
    attended_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    student: Mapped["Student"] = relationship()

    def __repr__(self) -> str:
        return f"<Incident {self.id} {self.status}>"


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    permission_types: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PermissionStatus.PENDING
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    student: Mapped["Student"] = relationship()


class Dropout(Base):
    __tablename__ = "dropouts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dropout_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(160), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    student: Mapped["Student"] = relationship()


class NeeRecord(Base):
    __tablename__ = "nee_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    diagnosis: Mapped[str] = mapped_column(String(160), nullable=False)
    evaluation_date: Mapped[date] = mapped_column(Date, nullable=False)
    support_plan: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    student: Mapped["Student"] = relationship()


class RiskFactor(Base):
    __tablename__ = "risk_factors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    student_id: Mapped[str] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category: Mapped[str] = mapped_column(String(40), nullable=False)
    level: Mapped[str] = mapped_column(String(10), nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    student: Mapped["Student"] = relationship()


class AppSettings(Base):
    __tablename__ = "settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    allow_registration: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    app_name: Mapped[str] = mapped_column(String(120), nullable=False, default="Alerta Educativa")
    institution_name: Mapped[str] = mapped_column(
        String(160), nullable=False, default="Mi Institución"
    )
    logo_url: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    primary_color: Mapped[str] = mapped_column(String(16), nullable=False, default="#1F618D")


class AuditLog(Base):
    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )
    username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    changes: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


SETTINGS_ROW_ID = 1

__all__ = [
    "AppSettings",
    "Assignment",
    "AuditLog",
    "Dropout",
    "Grade",
    "Incident",
    "IncidentStatus",
    "NeeRecord",
    "Permission",
    "PermissionStatus",
    "Profile",
    "RiskCategory",
    "RiskFactor",
    "RiskLevel",
    "Role",
    "SETTINGS_ROW_ID",
    "Section",
    "Student",
    "UNKNOWN_STUDENT_NAME",
]
