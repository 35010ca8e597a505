import uuid
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from conftest import build_world, insert_appointment, utc
from slotbook.core.errors import BadRequestError, ConflictError
from slotbook.models import AppointmentStatus
from slotbook.services import (
    AppointmentChange,
    BookingEngine,
    BookingRequest,
    CallerIdentity,
    TenantContext,
)

TEN_AM = "2030-01-07T10:00:00+00:00"


def _book(client, headers, world, start=TEN_AM, **overrides):
    payload = {
        "serviceId": str(world.service_id),
        "locationId": str(world.location_id),
        "employeeId": str(world.employee_id),
        "startTime": start,
    }
    payload.update(overrides)
    return client.post("/api/v1/appointments", json=payload, headers=headers)


def _soon(hours: float) -> str:
    start = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(hours=hours)
    return start.isoformat()


def test_create_appointment(client, headers, world):
    response = _book(client, headers, world, notes="first visit")
    assert response.status_code == 201

    body = response.json()
    assert body["status"] == "SCHEDULED"
    assert body["startTime"] == "2030-01-07T10:00:00+00:00"
    assert body["endTime"] == "2030-01-07T10:30:00+00:00"
    assert body["bookedBy"] == "casey@example.com"
    assert body["bookedByName"] == "casey"
    assert body["userId"] == "user-1"
    assert body["serviceName"] == "Haircut"
    assert body["employeeName"] == "Jamie"
    assert body["locationName"] == "Downtown"
    assert body["notes"] == "first visit"

    fetched = client.get(f"/api/v1/appointments/{body['id']}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["id"] == body["id"]


def test_anonymous_booker_defaults(client, world):
    response = _book(client, {"X-Tenant-ID": str(world.tenant_id)}, world)
    assert response.status_code == 201
    body = response.json()
    assert body["bookedBy"] == "unknown"
    assert body["bookedByName"] == "unknown"
    assert body["userId"] == "unknown"


def test_overlapping_booking_is_rejected(client, headers, world):
    assert _book(client, headers, world).status_code == 201

    response = _book(client, headers, world, start="2030-01-07T10:15:00+00:00")
    assert response.status_code == 409
    assert response.json() == {"detail": "Time slot is already booked"}


def test_abutting_bookings_are_accepted(client, headers, world):
    assert _book(client, headers, world).status_code == 201
    assert _book(client, headers, world, start="2030-01-07T10:30:00+00:00").status_code == 201
    assert _book(client, headers, world, start="2030-01-07T09:30:00+00:00").status_code == 201


def test_other_employee_can_take_the_same_time(client, headers, world):
    assert _book(client, headers, world).status_code == 201
    response = _book(client, headers, world, employeeId=str(world.other_employee_id))
    assert response.status_code == 201


def test_cancelled_appointment_frees_the_slot(client, headers, world, db_session):
    insert_appointment(
        db_session, world, utc(2030, 1, 7, 10, 0), status=AppointmentStatus.CANCELLED
    )
    assert _book(client, headers, world).status_code == 201


def test_fulfilled_appointment_blocks_the_slot(client, headers, world, db_session):
    insert_appointment(
        db_session, world, utc(2030, 1, 7, 10, 0), status=AppointmentStatus.FULFILLED
    )
    assert _book(client, headers, world).status_code == 409


@pytest.mark.parametrize(
    "field, detail",
    [
        ("serviceId", "Service not found"),
        ("locationId", "Location not found"),
        ("employeeId", "Employee not found"),
    ],
)
def test_unknown_references(client, headers, world, field, detail):
    response = _book(client, headers, world, **{field: str(uuid.uuid4())})
    assert response.status_code == 404
    assert response.json() == {"detail": detail}


def test_naive_start_time_uses_tenant_timezone(client, db_session):
    world = build_world(db_session, timezone="America/Sao_Paulo")
    headers = {"X-Tenant-ID": str(world.tenant_id)}

    response = _book(client, headers, world, start="2030-01-07T10:00:00")
    assert response.status_code == 201
    body = response.json()
    assert body["startTime"] == "2030-01-07T13:00:00+00:00"
    assert body["startTimeLocal"] == "2030-01-07T10:00:00-03:00"


def test_missing_tenant_context(client, world):
    response = _book(client, {}, world)
    assert response.status_code == 400
    assert response.json() == {"detail": "Tenant context required"}


def test_malformed_tenant_header(client, world):
    response = _book(client, {"X-Tenant-ID": "not-a-uuid"}, world)
    assert response.status_code == 400


def test_get_unknown_appointment(client, headers):
    missing = uuid.uuid4()
    response = client.get(f"/api/v1/appointments/{missing}", headers=headers)
    assert response.status_code == 404
    assert response.json() == {"detail": f"Appointment with ID {missing} not found"}


def test_appointment_of_another_tenant_is_hidden(client, headers, db_session):
    other = build_world(db_session, name="Other Salon")
    appointment = insert_appointment(db_session, other, utc(2030, 1, 7, 10, 0))

    response = client.get(f"/api/v1/appointments/{appointment.id}", headers=headers)
    assert response.status_code == 404


def test_fulfil_stamps_fulfillment_date_once(client, headers, world):
    appointment_id = _book(client, headers, world).json()["id"]

    first = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "FULFILLED"},
        headers=headers,
    )
    assert first.status_code == 200
    assert first.json()["status"] == "FULFILLED"
    assert first.json()["fulfillmentDate"] is not None

    second = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "FULFILLED"},
        headers=headers,
    )
    assert second.status_code == 200
    assert second.json()["fulfillmentDate"] == first.json()["fulfillmentDate"]


@pytest.mark.parametrize(
    "start_status, target",
    [
        ("FULFILLED", "SCHEDULED"),
        ("FULFILLED", "CANCELLED"),
        ("CANCELLED", "SCHEDULED"),
        ("CANCELLED", "FULFILLED"),
    ],
)
def test_terminal_statuses_cannot_change(client, headers, world, start_status, target):
    appointment_id = _book(client, headers, world).json()["id"]
    client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": start_status},
        headers=headers,
    )

    response = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": target},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json() == {
        "detail": f"Cannot change appointment status from {start_status} to {target}"
    }


def test_cancel_records_actor_and_reason(client, headers, world):
    appointment_id = _book(client, headers, world).json()["id"]

    response = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "CANCELLED", "canceledBy": "casey", "cancelReason": "sick"},
        headers=headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "CANCELLED"
    assert body["canceledBy"] == "casey"
    assert body["cancelReason"] == "sick"


def test_reschedule_inside_window_is_rejected(client, headers, world):
    appointment_id = _book(client, headers, world, start=_soon(1)).json()["id"]

    response = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "SCHEDULED", "startTime": _soon(48)},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json() == {
        "detail": "Cannot reschedule appointments less than 2 hours before the appointment time"
    }


def test_status_change_inside_window_is_allowed(client, headers, world):
    start = _soon(1)
    appointment_id = _book(client, headers, world, start=start).json()["id"]

    response = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "FULFILLED", "startTime": start},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "FULFILLED"


def test_cancelled_appointment_can_be_moved_inside_window(client, headers, world):
    appointment_id = _book(client, headers, world, start=_soon(1)).json()["id"]
    url = f"/api/v1/appointments/{appointment_id}"
    assert client.patch(url, json={"status": "CANCELLED"}, headers=headers).status_code == 200

    response = client.patch(
        url, json={"status": "CANCELLED", "startTime": _soon(48)}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"


def test_reschedule_keeps_duration(client, headers, world):
    appointment_id = _book(client, headers, world).json()["id"]

    response = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "SCHEDULED", "startTime": "2030-01-07T14:00:00+00:00"},
        headers=headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["startTime"] == "2030-01-07T14:00:00+00:00"
    assert body["endTime"] == "2030-01-07T14:30:00+00:00"


def test_reschedule_onto_busy_time_conflicts(client, headers, world):
    appointment_id = _book(client, headers, world).json()["id"]
    assert _book(client, headers, world, start="2030-01-07T14:00:00+00:00").status_code == 201

    response = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "SCHEDULED", "startTime": "2030-01-07T14:15:00+00:00"},
        headers=headers,
    )
    assert response.status_code == 409


def test_reschedule_overlapping_itself_is_allowed(client, headers, world):
    appointment_id = _book(client, headers, world).json()["id"]

    response = client.patch(
        f"/api/v1/appointments/{appointment_id}",
        json={"status": "SCHEDULED", "startTime": "2030-01-07T10:15:00+00:00"},
        headers=headers,
    )
    assert response.status_code == 200


def test_delete_requires_cancelled_or_past(client, headers, world):
    appointment_id = _book(client, headers, world).json()["id"]
    url = f"/api/v1/appointments/{appointment_id}"

    response = client.delete(url, headers=headers)
    assert response.status_code == 400
    assert response.json() == {
        "detail": "Cannot delete appointment. It must be either cancelled or past its scheduled date."
    }

    cancelled = client.patch(url, json={"status": "CANCELLED"}, headers=headers)
    assert cancelled.status_code == 200

    assert client.delete(url, headers=headers).status_code == 204
    assert client.get(url, headers=headers).status_code == 404


def test_delete_past_appointment(client, headers, world, db_session):
    appointment = insert_appointment(db_session, world, utc(2020, 1, 6, 10, 0))

    response = client.delete(f"/api/v1/appointments/{appointment.id}", headers=headers)
    assert response.status_code == 204


def test_delete_unknown_appointment(client, headers):
    response = client.delete(f"/api/v1/appointments/{uuid.uuid4()}", headers=headers)
    assert response.status_code == 404


def test_list_only_shows_callers_own_bookings(client, headers, world, db_session):
    insert_appointment(db_session, world, utc(2030, 1, 7, 9, 0))
    _book(client, headers, world)

    own = client.get("/api/v1/appointments", headers=headers)
    assert own.status_code == 200
    assert [item["userId"] for item in own.json()] == ["user-1"]

    admin_headers = {**headers, "X-User-Permissions": "booking:read, admin"}
    everything = client.get("/api/v1/appointments", headers=admin_headers)
    assert [item["startTime"] for item in everything.json()] == [
        "2030-01-07T09:00:00+00:00",
        "2030-01-07T10:00:00+00:00",
    ]


def test_list_filters(client, world, db_session):
    insert_appointment(db_session, world, utc(2030, 1, 7, 9, 0))
    insert_appointment(
        db_session, world, utc(2030, 1, 8, 9, 0), status=AppointmentStatus.CANCELLED
    )
    insert_appointment(
        db_session, world, utc(2030, 1, 7, 9, 0), employee_id=world.other_employee_id
    )
    headers = {"X-Tenant-ID": str(world.tenant_id), "X-User-Permissions": "admin"}

    by_status = client.get(
        "/api/v1/appointments", params={"status": "CANCELLED"}, headers=headers
    )
    assert len(by_status.json()) == 1

    by_employee = client.get(
        "/api/v1/appointments",
        params={"employeeId": str(world.other_employee_id)},
        headers=headers,
    )
    assert len(by_employee.json()) == 1

    by_range = client.get(
        "/api/v1/appointments",
        params={"startDate": "2030-01-08T00:00:00Z", "endDate": "2030-01-09T00:00:00Z"},
        headers=headers,
    )
    assert [item["status"] for item in by_range.json()] == ["CANCELLED"]


class _FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _engine(db_session, world, now: datetime) -> BookingEngine:
    ctx = TenantContext(tenant_id=world.tenant_id, timezone=ZoneInfo("UTC"))
    return BookingEngine(db_session, ctx, clock=_FixedClock(now))


def test_engine_reschedule_window_uses_clock(db_session, world):
    booker = CallerIdentity(user_id="u-1", email="pat@example.com")
    start = utc(2030, 1, 7, 10, 0)
    engine = _engine(db_session, world, now=start - timedelta(hours=3))
    appointment = engine.create(
        BookingRequest(
            service_id=world.service_id,
            location_id=world.location_id,
            employee_id=world.employee_id,
            start_time=start,
        ),
        booker,
    )
    db_session.commit()

    moved = engine.update(
        appointment.id,
        AppointmentChange(status=AppointmentStatus.SCHEDULED, start_time=utc(2030, 1, 7, 15, 0)),
    )
    assert moved.start_time.replace(tzinfo=timezone.utc) == utc(2030, 1, 7, 15, 0)

    late = _engine(db_session, world, now=utc(2030, 1, 7, 14, 0))
    with pytest.raises(BadRequestError):
        late.update(
            appointment.id,
            AppointmentChange(
                status=AppointmentStatus.SCHEDULED, start_time=utc(2030, 1, 7, 16, 0)
            ),
        )


def test_engine_rejects_double_booking(db_session, world):
    engine = _engine(db_session, world, now=utc(2030, 1, 1))
    request = BookingRequest(
        service_id=world.service_id,
        location_id=world.location_id,
        employee_id=world.employee_id,
        start_time=utc(2030, 1, 7, 10, 0),
    )
    engine.create(request, CallerIdentity())
    with pytest.raises(ConflictError):
        engine.create(request, CallerIdentity())


def test_fulfilled_appointment_cannot_be_moved(client, headers, world):
    appointment_id = _book(client, headers, world).json()["id"]
    url = f"/api/v1/appointments/{appointment_id}"
    assert client.patch(url, json={"status": "FULFILLED"}, headers=headers).status_code == 200

    response = client.patch(
        url,
        json={"status": "FULFILLED", "startTime": "2030-01-07T14:00:00+00:00"},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json() == {"detail": "Cannot reschedule a fulfilled appointment"}
    assert client.get(url, headers=headers).json()["startTime"] == "2030-01-07T10:00:00+00:00"


def test_list_range_uses_tenant_timezone(client, db_session):
    world = build_world(db_session, timezone="America/Sao_Paulo")
    headers = {"X-Tenant-ID": str(world.tenant_id), "X-User-Permissions": "admin"}
    assert _book(client, headers, world, start="2030-01-07T09:00:00").status_code == 201

    before_ten = client.get(
        "/api/v1/appointments", params={"endDate": "2030-01-07T10:00:00"}, headers=headers
    )
    assert [item["startTimeLocal"] for item in before_ten.json()] == [
        "2030-01-07T09:00:00-03:00"
    ]

    after_ten = client.get(
        "/api/v1/appointments", params={"startDate": "2030-01-07T10:00:00"}, headers=headers
    )
    assert after_ten.json() == []
