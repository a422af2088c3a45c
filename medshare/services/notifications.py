"""Grant notifications over SMTP.

Delivery is fire-and-forget: sends are scheduled as background tasks that run
after the response (and the request's commit), and their result is never
consulted by the access core.
"""

from __future__ import annotations

import logging
import smtplib
from collections.abc import Iterable
from email.message import EmailMessage
from typing import Protocol

from fastapi import BackgroundTasks

from medshare.config import settings
from medshare.models import AccessGrant
from medshare.services.directory import PatientDirectory

logger = logging.getLogger("medshare.email")


def send_email(to_addresses: Iterable[str], subject: str, body: str) -> bool:
    if not settings.smtp_enabled:
        logger.info("SMTP disabled. Skipping email send.")
        return False
    if not settings.smtp_host or not settings.smtp_from:
        logger.warning("SMTP is enabled but host/from are not configured.")
        return False

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = settings.smtp_from
    message["To"] = ", ".join(to_addresses)
    message.set_content(body)

    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            if settings.smtp_use_tls:
                server.starttls()
            if settings.smtp_user and settings.smtp_password:
                server.login(settings.smtp_user, settings.smtp_password)
            server.send_message(message)
        return True
    except Exception:
        logger.exception("Failed to send email")
        return False


class GrantNotifier(Protocol):
    async def access_requested(self, grant: AccessGrant) -> None:
        ...

    async def access_approved(self, grant: AccessGrant) -> None:
        ...

    async def access_granted(self, grant: AccessGrant) -> None:
        ...


class NullGrantNotifier:
    """Notifier that drops every event."""

    async def access_requested(self, grant: AccessGrant) -> None:
        return None

    async def access_approved(self, grant: AccessGrant) -> None:
        return None

    async def access_granted(self, grant: AccessGrant) -> None:
        return None


class EmailGrantNotifier:
    """Builds grant e-mails and schedules them on the request's background tasks."""

    def __init__(self, directory: PatientDirectory, background_tasks: BackgroundTasks):
        self.directory = directory
        self.background_tasks = background_tasks

    async def access_requested(self, grant: AccessGrant) -> None:
        contacts = await self.directory.list_org_contacts(grant.granted_by_org)
        recipients = [c.email for c in contacts if c.email]
        if not recipients:
            logger.info("No contacts to notify for organization %s", grant.granted_by_org)
            return
        requester = await self.directory.get_profile(grant.granted_to)
        requester_org = await self.directory.get_organization(grant.granted_to_org)
        patient = await self.directory.get_patient(grant.patient_id)
        who = requester.full_name if requester else f"User {grant.granted_to}"
        org_name = requester_org.name if requester_org else "another organization"
        patient_name = patient.full_name if patient else f"patient {grant.patient_id}"
        body = (
            f"{who} from {org_name} has requested access to {patient_name}.\n\n"
            f"Review the request: {settings.frontend_base_url}/patients/{grant.patient_id}\n"
        )
        self._schedule(recipients, "Patient access request", body)

    async def access_approved(self, grant: AccessGrant) -> None:
        await self._notify_grantee(grant, "Patient access approved")

    async def access_granted(self, grant: AccessGrant) -> None:
        await self._notify_grantee(grant, "Patient access granted")

    async def _notify_grantee(self, grant: AccessGrant, subject: str) -> None:
        grantee = await self.directory.get_profile(grant.granted_to)
        if not grantee or not grantee.email:
            return
        patient = await self.directory.get_patient(grant.patient_id)
        patient_name = patient.full_name if patient else f"patient {grant.patient_id}"
        expiry = (
            f"Access expires on {grant.expires_at:%Y-%m-%d %H:%M} UTC."
            if grant.expires_at
            else "Access does not expire."
        )
        body = (
            f"You now have access to {patient_name} "
            f"with permissions: {grant.permissions.replace(',', ', ')}.\n"
            f"{expiry}\n\n"
            f"Open the patient: {settings.frontend_base_url}/patients/{grant.patient_id}\n"
        )
        self._schedule([grantee.email], subject, body)

    def _schedule(self, recipients: list[str], subject: str, body: str) -> None:
        self.background_tasks.add_task(send_email, recipients, subject, body)
