"""
Integration Tests for the Shift, Deposit, Earnings and Admin APIs

Drives the FastAPI app through the async test client with a frozen clock
and a per-test SQLite database.
"""

import logging
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from engines.schemas.time_periods import ShiftType
from tests.factories import (
    FrozenClock,
    business_time,
    make_deposit,
    make_grid_rule,
    make_processor_shift,
)

SHIFTS = "/api/v1/shifts"
DEPOSITS = "/api/v1/deposits"
EARNINGS = "/api/v1/earnings"
ADMIN = "/api/v1/admin"


# ---------------------------------------------------------------------------
# Health and auth
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["service"] == "shift-earnings-api"


@pytest.mark.asyncio
async def test_current_shift_requires_auth(client: AsyncClient) -> None:
    response = await client.get(f"{SHIFTS}/current")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_processor_cannot_use_admin_routes(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    response = await client.get(f"{ADMIN}/bonus-grid", headers=processor_headers)

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Shift lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_current_without_shift(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    response = await client.get(f"{SHIFTS}/current", headers=processor_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["shift"] is None
    assert data["current_shift_type"] == "MORNING"
    assert data["canonical_day"] == "2025-03-03"

    by_type = {a["shift_type"]: a for a in data["available"]}
    assert set(by_type) == {"MORNING", "DAY", "NIGHT"}
    assert by_type["MORNING"]["can_start"] is True
    assert by_type["MORNING"]["is_current"] is True
    assert by_type["NIGHT"]["can_start"] is False
    assert by_type["NIGHT"]["reason"] == "OUTSIDE_START_WINDOW"
    assert by_type["NIGHT"]["end"] == "06:00"


@pytest.mark.asyncio
async def test_start_and_end_shift(
    client: AsyncClient,
    clock: FrozenClock,
    processor_id,
    processor_headers: dict[str, str],
) -> None:
    started = await client.post(
        f"{SHIFTS}/start", json={"shift_type": "MORNING"}, headers=processor_headers
    )
    assert started.status_code == 201
    shift = started.json()
    assert shift["status"] == "ACTIVE"
    assert shift["shift_date"] == "2025-03-03"
    assert shift["processor_id"] == str(processor_id)

    current = await client.get(f"{SHIFTS}/current", headers=processor_headers)
    assert current.json()["shift"]["id"] == shift["id"]

    clock.advance(hours=2)
    ended = await client.post(f"{SHIFTS}/end", headers=processor_headers)
    assert ended.status_code == 200
    assert ended.json()["closed"] is True
    assert ended.json()["shift"]["status"] == "COMPLETED"

    earnings = await client.get(f"{SHIFTS}/{shift['id']}/earnings", headers=processor_headers)
    assert earnings.status_code == 200
    entries = earnings.json()
    assert [e["kind"] for e in entries] == ["HOURLY"]
    assert Decimal(entries[0]["amount"]) == Decimal("4.00")

    listed = await client.get(f"{SHIFTS}/", params={"status": "COMPLETED"}, headers=processor_headers)
    assert [s["id"] for s in listed.json()] == [shift["id"]]


@pytest.mark.asyncio
async def test_start_rejection_returns_code(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    response = await client.post(
        f"{SHIFTS}/start", json={"shift_type": "NIGHT"}, headers=processor_headers
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "OUTSIDE_START_WINDOW"
    assert set(body) == {"code", "message"}


@pytest.mark.asyncio
async def test_second_start_rejected(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    await client.post(f"{SHIFTS}/start", json={"shift_type": "MORNING"}, headers=processor_headers)

    response = await client.post(
        f"{SHIFTS}/start", json={"shift_type": "MORNING"}, headers=processor_headers
    )

    assert response.status_code == 400
    assert response.json()["code"] == "SHIFT_ALREADY_ACTIVE"


@pytest.mark.asyncio
async def test_end_without_active_shift(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    response = await client.post(f"{SHIFTS}/end", headers=processor_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "NO_ACTIVE_SHIFT"


@pytest.mark.asyncio
async def test_unknown_shift_type_rejected(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    response = await client.post(
        f"{SHIFTS}/start", json={"shift_type": "EVENING"}, headers=processor_headers
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_processor_cannot_list_other_processor(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    response = await client.get(
        f"{SHIFTS}/", params={"processor_id": str(uuid4())}, headers=processor_headers
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_overdue_shift_closed_on_next_request(
    client: AsyncClient,
    db_session: AsyncSession,
    processor_id,
    processor_headers: dict[str, str],
) -> None:
    db_session.add(make_processor_shift(processor_id, shift_date=date(2025, 3, 2)))
    await db_session.commit()

    current = await client.get(f"{SHIFTS}/current", headers=processor_headers)
    assert current.json()["shift"] is None

    listed = await client.get(f"{SHIFTS}/", params={"status": "COMPLETED"}, headers=processor_headers)
    shifts = listed.json()
    assert len(shifts) == 1
    assert shifts[0]["actual_end"].startswith("2025-03-02T11:30:00")
    assert "auto-closed by system" in shifts[0]["notes"]


# ---------------------------------------------------------------------------
# Deposits
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_approve_deposit_records_commission(
    client: AsyncClient,
    db_session: AsyncSession,
    processor_id,
    processor_headers: dict[str, str],
    scheduler_headers: dict[str, str],
) -> None:
    started = await client.post(
        f"{SHIFTS}/start", json={"shift_type": "MORNING"}, headers=processor_headers
    )
    deposit = make_deposit(processor_id, amount=Decimal("1000.00"))
    db_session.add_all([deposit, make_grid_rule(ShiftType.MORNING, bonus_percentage=Decimal("8.00"))])
    await db_session.commit()

    response = await client.post(f"{DEPOSITS}/{deposit.id}/approve", headers=scheduler_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "APPROVED"
    assert data["already_approved"] is False
    assert data["shift_id"] == started.json()["id"]
    assert Decimal(data["commission_rate"]) == Decimal("30")
    assert Decimal(data["bonus_rate"]) == Decimal("8")
    assert Decimal(data["bonus_amount"]) == Decimal("80.00")
    assert data["earnings_entry_id"] is not None

    breakdown = await client.get(f"{EARNINGS}/breakdown", headers=processor_headers)
    assert breakdown.status_code == 200
    # 30% of 1000 plus the 80 bonus
    assert Decimal(breakdown.json()["total"]) == Decimal("380.00")

    again = await client.post(f"{DEPOSITS}/{deposit.id}/approve", headers=scheduler_headers)
    assert again.json()["already_approved"] is True
    assert again.json()["earnings_entry_id"] is None


@pytest.mark.asyncio
async def test_processor_cannot_approve(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    response = await client.post(f"{DEPOSITS}/{uuid4()}/approve", headers=processor_headers)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_approve_unknown_deposit(
    client: AsyncClient,
    scheduler_headers: dict[str, str],
) -> None:
    response = await client.post(f"{DEPOSITS}/{uuid4()}/approve", headers=scheduler_headers)

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_bonus_preview(
    client: AsyncClient,
    processor_id,
    processor_headers: dict[str, str],
) -> None:
    response = await client.post(
        f"{DEPOSITS}/bonus-preview", json={"amount": "1000"}, headers=processor_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["processor_id"] == str(processor_id)
    assert data["shift_type"] == "MORNING"
    assert data["tier_id"] is None
    assert Decimal(data["bonus_amount"]) == Decimal("50.00")


# ---------------------------------------------------------------------------
# Earnings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_breakdown_rejects_inverted_period(
    client: AsyncClient,
    processor_headers: dict[str, str],
) -> None:
    response = await client.get(
        f"{EARNINGS}/breakdown",
        params={
            "start": business_time(2025, 3, 3, 12, 0).isoformat(),
            "end": business_time(2025, 3, 3, 8, 0).isoformat(),
        },
        headers=processor_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PERIOD"


@pytest.mark.asyncio
async def test_weekly_shift_totals(
    client: AsyncClient,
    clock: FrozenClock,
    processor_headers: dict[str, str],
) -> None:
    await client.post(f"{SHIFTS}/start", json={"shift_type": "MORNING"}, headers=processor_headers)
    clock.advance(hours=3)
    await client.post(f"{SHIFTS}/end", headers=processor_headers)

    response = await client.get(f"{EARNINGS}/shifts", headers=processor_headers)

    assert response.status_code == 200
    totals = response.json()
    assert len(totals) == 1
    assert totals[0]["shift_date"] == "2025-03-03"
    assert Decimal(totals[0]["total"]) == Decimal("6.00")


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_assignments_gate_shift_start(
    client: AsyncClient,
    processor_id,
    processor_headers: dict[str, str],
    admin_headers: dict[str, str],
) -> None:
    assigned = await client.put(
        f"{ADMIN}/processors/{processor_id}/assignments",
        json={"shift_types": ["NIGHT", "DAY"]},
        headers=admin_headers,
    )
    assert assigned.status_code == 200
    assert assigned.json()["shift_types"] == ["DAY", "NIGHT"]

    response = await client.post(
        f"{SHIFTS}/start", json={"shift_type": "MORNING"}, headers=processor_headers
    )

    assert response.status_code == 400
    assert response.json()["code"] == "SHIFT_NOT_ASSIGNED"


@pytest.mark.asyncio
async def test_shift_definitions_default(
    client: AsyncClient,
    admin_headers: dict[str, str],
) -> None:
    response = await client.get(f"{ADMIN}/shift-definitions", headers=admin_headers)

    assert response.status_code == 200
    assert [(d["shift_type"], d["start_hour"]) for d in response.json()] == [
        ("MORNING", 6),
        ("DAY", 14),
        ("NIGHT", 22),
    ]


@pytest.mark.asyncio
async def test_disabling_shift_definition(
    client: AsyncClient,
    processor_headers: dict[str, str],
    admin_headers: dict[str, str],
) -> None:
    updated = await client.put(
        f"{ADMIN}/shift-definitions/MORNING",
        json={"name": "Morning", "start_hour": 6, "end_hour": 14, "enabled": False},
        headers=admin_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["enabled"] is False

    response = await client.post(
        f"{SHIFTS}/start", json={"shift_type": "MORNING"}, headers=processor_headers
    )

    assert response.status_code == 400
    assert response.json()["code"] == "SHIFT_DISABLED"


@pytest.mark.asyncio
async def test_bonus_grid_crud(
    client: AsyncClient,
    admin_headers: dict[str, str],
) -> None:
    created = await client.post(
        f"{ADMIN}/bonus-grid",
        json={
            "shift_type": "DAY",
            "min_amount": "1000",
            "max_amount": "4999.99",
            "bonus_percentage": "8",
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    rule_id = created.json()["id"]

    patched = await client.patch(
        f"{ADMIN}/bonus-grid/{rule_id}",
        json={"bonus_percentage": "9"},
        headers=admin_headers,
    )
    assert Decimal(patched.json()["bonus_percentage"]) == Decimal("9")

    deleted = await client.delete(f"{ADMIN}/bonus-grid/{rule_id}", headers=admin_headers)
    assert deleted.json()["active"] is False

    listed = await client.get(f"{ADMIN}/bonus-grid", headers=admin_headers)
    assert listed.json() == []


@pytest.mark.asyncio
async def test_invalid_grid_band(
    client: AsyncClient,
    admin_headers: dict[str, str],
) -> None:
    response = await client.post(
        f"{ADMIN}/bonus-grid",
        json={"shift_type": "DAY", "min_amount": "500", "max_amount": "100", "bonus_percentage": "5"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_BAND"


@pytest.mark.asyncio
async def test_motivation_crud(
    client: AsyncClient,
    admin_headers: dict[str, str],
) -> None:
    created = await client.post(
        f"{ADMIN}/motivations",
        json={"name": "Ten deposits", "type": "FIXED_AMOUNT", "value": "15", "conditions": {"minDeposits": 10}},
        headers=admin_headers,
    )
    assert created.status_code == 201
    motivation_id = created.json()["id"]

    listed = await client.get(f"{ADMIN}/motivations", headers=admin_headers)
    assert [m["id"] for m in listed.json()] == [motivation_id]

    deleted = await client.delete(f"{ADMIN}/motivations/{motivation_id}", headers=admin_headers)
    assert deleted.json()["active"] is False


@pytest.mark.asyncio
async def test_global_rates(
    client: AsyncClient,
    admin_headers: dict[str, str],
) -> None:
    updated = await client.put(
        f"{ADMIN}/global-rates",
        json={"hourly_rate": "2.50"},
        headers=admin_headers,
    )
    assert updated.status_code == 200

    response = await client.get(f"{ADMIN}/global-rates", headers=admin_headers)
    data = response.json()
    assert Decimal(data["hourly_rate"]) == Decimal("2.50")
    assert Decimal(data["base_commission_rate"]) == Decimal("30")


@pytest.mark.asyncio
async def test_sweep_endpoints(
    client: AsyncClient,
    db_session: AsyncSession,
    scheduler_headers: dict[str, str],
    admin_headers: dict[str, str],
) -> None:
    overdue = uuid4()
    absent = uuid4()
    db_session.add(make_processor_shift(overdue, shift_date=date(2025, 3, 2)))
    await db_session.commit()
    await client.put(
        f"{ADMIN}/processors/{absent}/assignments",
        json={"shift_types": ["MORNING"]},
        headers=admin_headers,
    )

    closed = await client.post(f"{ADMIN}/sweeps/auto-close", headers=scheduler_headers)
    assert closed.status_code == 200
    assert closed.json()["succeeded"] == 1
    assert closed.json()["failed"] == 0

    missed = await client.post(f"{ADMIN}/sweeps/missed", headers=scheduler_headers)
    assert missed.status_code == 200
    # Yesterday's MORNING window is over; today's is still running
    assert missed.json()["marked"] == 1


# ---------------------------------------------------------------------------
# Audit trail
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_audit_line_names_acted_on_processor_and_shift(
    client: AsyncClient,
    admin_headers: dict[str, str],
    caplog: pytest.LogCaptureFixture,
) -> None:
    other = uuid4()
    shift_id = uuid4()

    with caplog.at_level(logging.INFO, logger="audit"):
        await client.get(f"{ADMIN}/processors/{other}/assignments", headers=admin_headers)
        await client.get(f"{SHIFTS}/{shift_id}/earnings", headers=admin_headers)

    records = [r for r in caplog.records if r.name == "audit"]
    assert len(records) == 2
    assignments, earnings = records
    assert assignments.processor_id == str(other)
    assert assignments.user_role == "admin"
    assert assignments.mutation is False
    assert earnings.status == 404
    assert earnings.subject == {"shift_id": str(shift_id)}
