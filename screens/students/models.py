# app/screens/students/models.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

# Stored document field names. `studentId` is camel-cased on the wire.
FIELD_NAME = "name"
FIELD_EMAIL = "email"
FIELD_STUDENT_ID = "studentId"
FIELD_PHONE = "phone"


def _text(value: Any) -> str:
    return "" if value is None else str(value)


@dataclass
class StudentRecord:
    name: str = ""
    email: str = ""
    student_id: str = ""
    phone: str = ""
    # Assigned by the store on create; never written into the fields.
    id: Optional[str] = None

    @classmethod
    def from_document(cls, doc_id: str, fields: Dict[str, Any]) -> "StudentRecord":
        return cls(
            id=doc_id,
            name=_text(fields.get(FIELD_NAME)),
            email=_text(fields.get(FIELD_EMAIL)),
            student_id=_text(fields.get(FIELD_STUDENT_ID)),
            phone=_text(fields.get(FIELD_PHONE)),
        )

    def to_fields(self) -> Dict[str, str]:
        return {
            FIELD_NAME: self.name,
            FIELD_EMAIL: self.email,
            FIELD_STUDENT_ID: self.student_id,
            FIELD_PHONE: self.phone,
        }

    def copy(self, **changes) -> "StudentRecord":
        return replace(self, **changes)
