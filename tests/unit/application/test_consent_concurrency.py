"""Concurrent status changes on one consent: exactly one wins, the loser sees a typed error."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from consent_engine.application.exceptions import ConcurrentModificationError
from consent_engine.application.ledger import verify_chain
from consent_engine.domain.exceptions import InvalidTransitionError
from consent_engine.domain.models.consent import ConsentScope, ConsentStatus, ValidityWindow
from consent_engine.governance.audit_models import AuditRecord

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
LABS = ConsentScope(data_categories=("labs",), purpose="clinical research")


@pytest.mark.asyncio
async def test_concurrent_revoke_and_expire_single_winner(consent_service, ledger_client, repository):
    record = await consent_service.create(
        "u1", "c1", LABS, ValidityWindow(start=NOW, end=NOW + timedelta(days=1)), "u1"
    )
    # Slow ledger so both calls are in flight together.
    ledger_client.delay = 0.01

    results = await asyncio.gather(
        consent_service.update_status(record.consent_id, ConsentStatus.REVOKED, "u1"),
        consent_service.update_status(record.consent_id, ConsentStatus.EXPIRED, "system"),
        return_exceptions=True,
    )

    successes = [r for r in results if not isinstance(r, BaseException)]
    failures = [r for r in results if isinstance(r, BaseException)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], (ConcurrentModificationError, InvalidTransitionError))

    stored = await repository.find_by_id(record.consent_id)
    assert stored.status == successes[0].status
    assert stored.status in (ConsentStatus.REVOKED, ConsentStatus.EXPIRED)
    entries = await ledger_client.inner.entries(record.consent_id)
    assert len(entries) == 2
    assert verify_chain(entries)


@pytest.mark.asyncio
async def test_sequential_revoke_and_expire_loser_gets_invalid_transition(consent_service):
    record = await consent_service.create(
        "u1", "c1", LABS, ValidityWindow(start=NOW, end=NOW + timedelta(days=1)), "u1"
    )
    await consent_service.update_status(record.consent_id, ConsentStatus.REVOKED, "u1")
    with pytest.raises(InvalidTransitionError):
        await consent_service.update_status(record.consent_id, ConsentStatus.EXPIRED, "system")


@pytest.mark.asyncio
async def test_version_check_rejects_stale_write(consent_service, repository):
    """Backstop when the lock TTL lapsed mid-operation: the repository refuses the older version."""
    record = await consent_service.create("u1", "c1", LABS, ValidityWindow(start=NOW), "u1")
    await consent_service.update_status(record.consent_id, ConsentStatus.REVOKED, "u1")

    stale = record.transitioned(ConsentStatus.EXPIRED, actor_id="system", ledger_entry_id="L-x", at=NOW)
    audit = AuditRecord(
        actor="system",
        action="consent_status_changed",
        resource_type="consent",
        resource_id=record.consent_id,
        reason=None,
        correlation_id="",
        metadata=None,
        timestamp_utc=NOW,
    )
    with pytest.raises(ConcurrentModificationError):
        await repository.update_status(stale, record.version, audit)
    assert (await repository.find_by_id(record.consent_id)).status == ConsentStatus.REVOKED
