import pytest
from fastapi import BackgroundTasks

from medshare.services import notifications
from medshare.services.lifecycle import GrantLifecycleManager
from medshare.services.notifications import EmailGrantNotifier, send_email
from tests.conftest import HOSPITAL_STAFF, PHARMACY_OWNER, PHARMACY_STAFF, PHARMACY_TOKEN


def test_send_email_skips_when_disabled(monkeypatch):
    monkeypatch.setattr(notifications.settings, "smtp_enabled", False, raising=False)

    assert send_email(["paula@example.com"], "Subject", "Body") is False


def test_send_email_needs_host_and_sender(monkeypatch):
    monkeypatch.setattr(notifications.settings, "smtp_enabled", True, raising=False)
    monkeypatch.setattr(notifications.settings, "smtp_host", None, raising=False)

    assert send_email(["paula@example.com"], "Subject", "Body") is False


def test_send_email_failure_is_reported_not_raised(monkeypatch):
    monkeypatch.setattr(notifications.settings, "smtp_enabled", True, raising=False)
    monkeypatch.setattr(notifications.settings, "smtp_host", "smtp.test", raising=False)
    monkeypatch.setattr(notifications.settings, "smtp_from", "no-reply@test", raising=False)

    def _refuse(*_args, **_kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(notifications.smtplib, "SMTP", _refuse)

    assert send_email(["paula@example.com"], "Subject", "Body") is False


@pytest.fixture()
def email_lifecycle(grant_store, directory, clock):
    tasks = BackgroundTasks()
    notifier = EmailGrantNotifier(directory, tasks)
    return GrantLifecycleManager(grant_store, directory, notifier=notifier, clock=clock), tasks


@pytest.mark.anyio
async def test_request_notifies_owning_org_contacts(email_lifecycle):
    lifecycle, tasks = email_lifecycle

    await lifecycle.request_access(PHARMACY_TOKEN, HOSPITAL_STAFF)

    assert len(tasks.tasks) == 1
    task = tasks.tasks[0]
    recipients, subject, body = task.args
    assert task.func is send_email
    assert recipients == ["paula@example.com"]
    assert subject == "Patient access request"
    assert "Ravi Nurse from City Hospital" in body
    assert "Alice Walker" in body


@pytest.mark.anyio
async def test_approval_notifies_grantee(email_lifecycle):
    lifecycle, tasks = email_lifecycle
    grant = await lifecycle.request_access(PHARMACY_TOKEN, HOSPITAL_STAFF)

    await lifecycle.approve_access(grant.id, PHARMACY_OWNER, ["view"], expires_in_days=7)

    recipients, subject, body = tasks.tasks[-1].args
    assert recipients == ["ravi@example.com"]
    assert subject == "Patient access approved"
    assert "permissions: view" in body
    assert "Access expires on 2026-03-09" in body


@pytest.mark.anyio
async def test_same_org_request_sends_nothing(email_lifecycle):
    lifecycle, tasks = email_lifecycle

    await lifecycle.request_access(PHARMACY_TOKEN, PHARMACY_STAFF)

    assert tasks.tasks == []
