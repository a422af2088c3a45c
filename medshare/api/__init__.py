"""API Routes for MedShare."""

from medshare.api import access, comments, health, medications, patients

__all__ = [
    "access",
    "comments",
    "health",
    "medications",
    "patients",
]
