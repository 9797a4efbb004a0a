# screens/students/utils.py
from __future__ import annotations
import re
from typing import List, Sequence

import pandas as pd

from core.errors import ValidationFailure
from screens.students.models import StudentRecord

# Loose check only: something@something.something
EMAIL_PATTERN = re.compile(r"\S+@\S+\.\S+")

REQUIRED_FIELDS_MESSAGE = "Name, Email, and Student ID are required."
INVALID_EMAIL_MESSAGE = "Please enter a valid email address."


def is_valid_email(email: str) -> bool:
    return bool(email and EMAIL_PATTERN.search(email))


def validate_student(record: StudentRecord) -> None:
    """Raise ValidationFailure unless the record may be sent to the store."""
    if not record.name or not record.email or not record.student_id:
        raise ValidationFailure(REQUIRED_FIELDS_MESSAGE)
    if not is_valid_email(record.email):
        raise ValidationFailure(INVALID_EMAIL_MESSAGE)


def filter_students(records: Sequence[StudentRecord], term: str) -> List[StudentRecord]:
    """
    Records whose name, email or student id contains `term`, ignoring case.
    An empty term keeps every record, in the original order.
    """
    if not term:
        return list(records)
    needle = term.lower()
    return [
        r for r in records
        if needle in r.name.lower()
        or needle in r.email.lower()
        or needle in str(r.student_id).lower()
    ]


TABLE_COLUMNS = ["Student ID", "Name", "Email", "Phone"]


def students_frame(records: Sequence[StudentRecord]) -> pd.DataFrame:
    """Table rows in display order; row position i is records[i]."""
    rows = [
        {
            "Student ID": r.student_id,
            "Name": r.name,
            "Email": r.email,
            "Phone": r.phone or "N/A",
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=TABLE_COLUMNS)
