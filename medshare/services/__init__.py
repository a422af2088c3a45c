"""Access-grant services for MedShare.

This package intentionally avoids eager imports so the database engine is
only created when something actually needs it.
"""

from importlib import import_module

__all__ = [
    # Errors
    "AccessError",
    "AuthenticationRequired",
    "NotFound",
    "Unauthorized",
    "Conflict",
    "InvalidState",
    # Core
    "Actor",
    "GrantLifecycleManager",
    "VisibilityResolver",
    "PermissionEnforcer",
    "AccessDecision",
    # Stores
    "SQLGrantStore",
    "InMemoryGrantStore",
    "SQLPatientDirectory",
    "InMemoryPatientDirectory",
    "SQLClinicalRecordStore",
    "InMemoryClinicalRecordStore",
    # Consumers
    "PatientService",
    "PatientRecordsService",
    # Background
    "EmailGrantNotifier",
    "NullGrantNotifier",
    "GrantExpirySweeper",
]

_LAZY_IMPORTS = {
    "AccessError": ("medshare.services.errors", "AccessError"),
    "AuthenticationRequired": ("medshare.services.errors", "AuthenticationRequired"),
    "NotFound": ("medshare.services.errors", "NotFound"),
    "Unauthorized": ("medshare.services.errors", "Unauthorized"),
    "Conflict": ("medshare.services.errors", "Conflict"),
    "InvalidState": ("medshare.services.errors", "InvalidState"),
    "Actor": ("medshare.services.actor", "Actor"),
    "GrantLifecycleManager": ("medshare.services.lifecycle", "GrantLifecycleManager"),
    "VisibilityResolver": ("medshare.services.visibility", "VisibilityResolver"),
    "PermissionEnforcer": ("medshare.services.enforcer", "PermissionEnforcer"),
    "AccessDecision": ("medshare.services.enforcer", "AccessDecision"),
    "SQLGrantStore": ("medshare.services.grant_store", "SQLGrantStore"),
    "InMemoryGrantStore": ("medshare.services.grant_store", "InMemoryGrantStore"),
    "SQLPatientDirectory": ("medshare.services.directory", "SQLPatientDirectory"),
    "InMemoryPatientDirectory": (
        "medshare.services.directory",
        "InMemoryPatientDirectory",
    ),
    "SQLClinicalRecordStore": (
        "medshare.services.patient_records",
        "SQLClinicalRecordStore",
    ),
    "InMemoryClinicalRecordStore": (
        "medshare.services.patient_records",
        "InMemoryClinicalRecordStore",
    ),
    "PatientService": ("medshare.services.patients", "PatientService"),
    "PatientRecordsService": ("medshare.services.patient_records", "PatientRecordsService"),
    "EmailGrantNotifier": ("medshare.services.notifications", "EmailGrantNotifier"),
    "NullGrantNotifier": ("medshare.services.notifications", "NullGrantNotifier"),
    "GrantExpirySweeper": ("medshare.services.expiry_sweeper", "GrantExpirySweeper"),
}


def __getattr__(name: str):
    target = _LAZY_IMPORTS.get(name)
    if target is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_name, attr_name = target
    return getattr(import_module(module_name), attr_name)
