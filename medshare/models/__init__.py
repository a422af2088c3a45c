from medshare.models.access_grant import (
    ALL_PERMISSIONS,
    OPEN_GRANT_STATUSES,
    AccessGrant,
    AccessType,
    GrantStatus,
    Permission,
    format_permissions,
    parse_permissions,
)
from medshare.models.base import Base, TimestampMixin, utc_now
from medshare.models.comment import CommentType, PatientComment
from medshare.models.medication import PatientMedication
from medshare.models.organization import (
    MemberRole,
    Organization,
    OrganizationType,
    UserProfile,
)
from medshare.models.patient import Patient, PreferredPack
from medshare.models.share_token_access import ShareTokenAccess

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "utc_now",
    # Tenancy
    "Organization",
    "OrganizationType",
    "UserProfile",
    "MemberRole",
    # Patients
    "Patient",
    "PreferredPack",
    "PatientMedication",
    "PatientComment",
    "CommentType",
    # Access control
    "AccessGrant",
    "AccessType",
    "GrantStatus",
    "Permission",
    "ALL_PERMISSIONS",
    "OPEN_GRANT_STATUSES",
    "parse_permissions",
    "format_permissions",
    "ShareTokenAccess",
]
