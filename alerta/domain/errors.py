class DomainError(Exception):
    """Base class for business-rule violations surfaced to API clients."""

    status_code = 400
    title = "Error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(DomainError):
    status_code = 404
    title = "No encontrado"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class StudentNotFoundError(NotFoundError):
    def __init__(self, student_id: str):
        super().__init__("Student", student_id)


class ConflictError(DomainError):
    status_code = 409
    title = "Conflicto"


class DuplicateDniError(ConflictError):
    def __init__(self, dni: str):
        self.dni = dni
        super().__init__(f"A student with DNI '{dni}' already exists")


class DuplicateEmailError(ConflictError):
    def __init__(self, email: str):
        self.email = email
        super().__init__(f"{email} is already registered")


class InvalidStatusTransition(DomainError):
    """Raised when a record is moved to a status its lifecycle does not allow."""

    status_code = 422
    title = "Cambio de estado no permitido"

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from '{current}' to '{target}'")


class InvalidReferenceError(DomainError):
    status_code = 422
    title = "Referencia inválida"


class ForbiddenError(DomainError):
    status_code = 403
    title = "Acceso denegado"


class RegistrationDisabledError(ForbiddenError):
    def __init__(self):
        super().__init__("Self-registration is disabled")


__all__ = [
    "ConflictError",
    "DomainError",
    "DuplicateDniError",
    "DuplicateEmailError",
    "ForbiddenError",
    "InvalidReferenceError",
    "InvalidStatusTransition",
    "NotFoundError",
    "RegistrationDisabledError",
    "StudentNotFoundError",
]
