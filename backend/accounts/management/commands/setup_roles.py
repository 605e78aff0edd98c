"""
Management command: setup_roles
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

Seeds the database with the five base **Roles** used by the report
workflow.  Capabilities are not stored in the database; they are derived
from the active role name at request time (``reports.capabilities``).

The command is **idempotent** — safe to run multiple times.  Existing
roles keep their primary key; only their description is refreshed.

Usage::

    python manage.py setup_roles
"""

from django.core.management.base import BaseCommand

from accounts.models import Role
from core.constants import RoleName

ROLE_DESCRIPTIONS: dict[str, str] = {
    RoleName.CITIZEN: (
        "Submits reports about municipal problems and talks to the "
        "assigned technician once a report is accepted."
    ),
    RoleName.MUNICIPAL_OFFICER: (
        "Public relations officer: reviews pending reports, approves "
        "(assigning them to a technical office) or rejects them."
    ),
    RoleName.TECHNICAL_STAFF: (
        "Technical-office staff member who works assigned reports and may "
        "delegate them to an external company."
    ),
    RoleName.EXTERNAL_MAINTAINER: (
        "Employee of an external company working reports delegated to "
        "that company."
    ),
    RoleName.ADMIN: "System administrator with read access to every report.",
}


class Command(BaseCommand):
    help = (
        "Seeds the database with the base Roles.  Safe to run multiple "
        "times (idempotent)."
    )

    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n══════════════════════════════════════════"
            "\n  Role Setup — Seeding Roles"
            "\n══════════════════════════════════════════\n"
        ))

        roles_created = 0
        roles_updated = 0

        for role_name in RoleName.ALL:
            description = ROLE_DESCRIPTIONS[role_name]
            role, created = Role.objects.get_or_create(
                name=role_name,
                defaults={"description": description},
            )

            if created:
                roles_created += 1
            else:
                roles_updated += 1
                if role.description != description:
                    role.description = description
                    role.save(update_fields=["description"])

            action = "Created" if created else "Updated"
            self.stdout.write(self.style.SUCCESS(f"  ✔  {action} role: {role_name}"))

        self.stdout.write(self.style.MIGRATE_HEADING(
            "\n──────────────────────────────────────────"
        ))
        self.stdout.write(self.style.SUCCESS(
            f"  Done!  {roles_created} role(s) created, "
            f"{roles_updated} role(s) updated.  "
            f"Total: {roles_created + roles_updated} role(s).\n"
        ))
