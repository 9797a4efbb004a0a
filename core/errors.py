# app/core/errors.py
from __future__ import annotations


class StudentAppError(Exception):
    """Base error. ``user_message`` is what the page shows."""

    default_message = "An error occurred."

    def __init__(self, user_message: str | None = None):
        self.user_message = user_message or self.default_message
        super().__init__(self.user_message)


class InitializationFailure(StudentAppError):
    default_message = "Could not connect to the database. Please check your configuration."


class AuthenticationFailure(StudentAppError):
    default_message = "Authentication failed. Please refresh the page."


class SubscriptionFailure(StudentAppError):
    default_message = "Failed to fetch student data."


class ValidationFailure(StudentAppError):
    default_message = "Name, Email, and Student ID are required."


class MutationFailure(StudentAppError):
    """Raised with the add, update or delete message for the failed call."""
