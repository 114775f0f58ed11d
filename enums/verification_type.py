from enum import Enum


class VerificationType(str, Enum):
    """Identity verification groups eligible for a verification discount."""

    MILITARY = "military"
    RESPONDER = "responder"
    EMPLOYEE = "employee"
    STUDENT = "student"
    TEACHER = "teacher"
    NURSE = "nurse"
    MEDICAL = "medical"
    GOVERNMENT = "government"
