"""
Core constants — **Single Source of Truth** for project-wide names and
limits.

Any business rule that references a role name or a numeric limit should
import it from here instead of hardcoding.  This avoids drift between
apps that use the same value.
"""


class RoleName:
    """Canonical role names stored in ``accounts.Role.name``."""

    CITIZEN = "citizen"
    ADMIN = "admin"
    MUNICIPAL_OFFICER = "municipal_public_relations_officer"
    TECHNICAL_STAFF = "technical_staff"
    EXTERNAL_MAINTAINER = "external_maintainer"

    ALL = (CITIZEN, ADMIN, MUNICIPAL_OFFICER, TECHNICAL_STAFF, EXTERNAL_MAINTAINER)


# ── Report creation ─────────────────────────────────────────────────
# A citizen report carries between one and three photo links.
MIN_REPORT_PHOTOS: int = 1
MAX_REPORT_PHOTOS: int = 3

# ── Messaging ───────────────────────────────────────────────────────
MAX_MESSAGE_LENGTH: int = 5000
