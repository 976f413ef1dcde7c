# tests/test_consultation_routers.py
from datetime import datetime

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from consultation.main import app
from consultation.db.session import engine, SessionLocal
from consultation.models import Base, ConsultationBooking, ConsultationSlot, User, UserRole
from consultation.services.clock import get_now
from consultation.services.notifications import get_notification_sink


class FakeSink:
    def __init__(self):
        self.sent = []

    def send(self, notification):
        self.sent.append(notification)


fake_sink = FakeSink()

# Fixed clock so the January 2026 scenario is still "in the future"
app.dependency_overrides[get_now] = lambda: datetime(2026, 1, 1, 8, 0)
app.dependency_overrides[get_notification_sink] = lambda: fake_sink

client = TestClient(app)

INSTRUCTOR = {"X-User-Id": "inst-api", "X-User-Role": "instructor", "X-User-Name": "Seo"}
OTHER_INSTRUCTOR = {"X-User-Id": "inst-api2", "X-User-Role": "instructor"}
ADMIN = {"X-User-Id": "admin-api", "X-User-Role": "admin"}
USER_A = {"X-User-Id": "user-a", "X-User-Role": "user", "X-User-Name": "Ahn"}
USER_B = {"X-User-Id": "user-b", "X-User-Role": "user"}

CAREER_WEEK = {
    "date": "2026-01-05",
    "end_date": "2026-01-09",
    "start_time": "09:00",
    "end_time": "10:00",
    "days": [1, 3],
    "topic": "Career",
}


def setup_module(module):
    Base.metadata.create_all(bind=engine)


def _clean_db():
    fake_sink.sent.clear()
    db: Session = SessionLocal()
    try:
        db.query(ConsultationBooking).delete()
        db.query(ConsultationSlot).delete()
        db.query(User).delete()
        db.add_all(
            [
                User(id="inst-api", name="Seo", email="seo@example.com", role=UserRole.INSTRUCTOR),
                User(id="inst-api2", name="Moon", email="moon@example.com", role=UserRole.INSTRUCTOR),
            ]
        )
        db.commit()
    finally:
        db.close()


def _generate_career_week():
    resp = client.post("/consultation/slots", json=CAREER_WEEK, headers=INSTRUCTOR)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_generate_slots_end_to_end():
    _clean_db()

    data = _generate_career_week()

    assert data["count"] == 4
    assert [s["starts_at"] for s in data["slots"]] == [
        "2026-01-05T09:00:00",
        "2026-01-05T09:30:00",
        "2026-01-07T09:00:00",
        "2026-01-07T09:30:00",
    ]
    assert all(s["topic"] == "Career" for s in data["slots"])
    assert all(s["is_booked"] is False for s in data["slots"])

    again = _generate_career_week()
    assert again["count"] == 0
    assert again["slots"] == []


def test_generate_requires_identity_and_valid_window():
    _clean_db()

    resp = client.post("/consultation/slots", json=CAREER_WEEK)
    assert resp.status_code == 401

    resp = client.post("/consultation/slots", json=CAREER_WEEK, headers=USER_A)
    assert resp.status_code == 403
    assert resp.json()["detail"]["kind"] == "Forbidden"

    bad = dict(CAREER_WEEK, start_time="10:00", end_time="09:00")
    resp = client.post("/consultation/slots", json=bad, headers=INSTRUCTOR)
    assert resp.status_code == 400
    assert resp.json()["detail"]["kind"] == "InvalidRange"

    resp = client.post(
        "/consultation/slots",
        json=dict(CAREER_WEEK, instructor_id="inst-api2"),
        headers=INSTRUCTOR,
    )
    assert resp.status_code == 403


def test_admin_generates_for_instructor_and_lists_by_instructor():
    _clean_db()

    resp = client.post(
        "/consultation/slots",
        json=dict(CAREER_WEEK, instructor_id="inst-api2"),
        headers=ADMIN,
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["count"] == 4

    resp = client.get("/consultation/slots", params={"instructor_id": "inst-api2"})
    assert resp.status_code == 200
    assert len(resp.json()["slots"]) == 4
    assert resp.json()["slots"][0]["instructor"]["name"] == "Moon"
    assert resp.json()["slots"][0]["instructor"]["email"] == "moon@example.com"

    resp = client.get("/consultation/slots", params={"mine": "true"}, headers=INSTRUCTOR)
    assert resp.json()["slots"] == []

    resp = client.get("/consultation/slots", params={"mine": "true"})
    assert resp.status_code == 401

    resp = client.get("/consultation/slots/instructors")
    assert resp.status_code == 200
    by_id = {
        entry["instructor"]["id"]: entry["available_slots"]
        for entry in resp.json()["instructors"]
    }
    assert len(by_id["inst-api2"]) == 4
    assert by_id["inst-api"] == []


def test_booking_flow_with_cascade_and_available_filter():
    _clean_db()
    slots = _generate_career_week()["slots"]
    slot_id = slots[0]["id"]

    resp = client.post(
        "/consultation/bookings",
        json={"slot_id": slot_id, "notes": "First consultation"},
        headers=USER_A,
    )
    assert resp.status_code == 201, resp.text
    booking_a = resp.json()["booking"]
    assert booking_a["status"] == "pending"
    assert booking_a["instructor_id"] == "inst-api"

    resp = client.post("/consultation/bookings", json={"slot_id": slot_id}, headers=USER_A)
    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "DuplicateRequest"

    resp = client.post("/consultation/bookings", json={"slot_id": slot_id}, headers=USER_B)
    booking_b = resp.json()["booking"]

    resp = client.patch(
        f"/consultation/bookings/{booking_a['id']}/review",
        json={"action": "approve", "meeting_link": "https://meet.example.com/seo"},
        headers=OTHER_INSTRUCTOR,
    )
    assert resp.status_code == 403

    resp = client.patch(
        f"/consultation/bookings/{booking_a['id']}/review",
        json={"action": "approve", "meeting_link": "https://meet.example.com/seo"},
        headers=INSTRUCTOR,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["booking"]["status"] == "approved"
    assert resp.json()["booking"]["meeting_link"] == "https://meet.example.com/seo"

    resp = client.patch(
        f"/consultation/bookings/{booking_b['id']}/review",
        json={"action": "approve"},
        headers=INSTRUCTOR,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["kind"] == "InvalidState"

    resp = client.post("/consultation/bookings", json={"slot_id": slot_id}, headers=USER_B)
    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "AlreadyBooked"

    resp = client.get("/consultation/slots", params={"available": "true"})
    available_ids = [s["id"] for s in resp.json()["slots"]]
    assert slot_id not in available_ids
    assert len(available_ids) == 3

    types = [n.type for n in fake_sink.sent]
    assert types.count("booking_request") == 2
    assert "booking_status" in types


def test_booking_lists_are_scoped_by_role():
    _clean_db()
    slots = _generate_career_week()["slots"]
    client.post("/consultation/bookings", json={"slot_id": slots[0]["id"]}, headers=USER_A)
    client.post("/consultation/bookings", json={"slot_id": slots[1]["id"]}, headers=USER_B)

    mine = client.get("/consultation/bookings", headers=USER_A).json()["bookings"]
    assert [b["requester_id"] for b in mine] == ["user-a"]
    assert mine[0]["slot"]["id"] == slots[0]["id"]
    assert mine[0]["instructor"] == {"id": "inst-api", "name": "Seo", "email": "seo@example.com"}
    # user-a has no directory entry
    assert mine[0]["requester"] == {"id": "user-a", "name": None, "email": None}

    as_instructor = client.get("/consultation/bookings", headers=INSTRUCTOR).json()["bookings"]
    assert len(as_instructor) == 2

    other = client.get("/consultation/bookings", headers=OTHER_INSTRUCTOR).json()["bookings"]
    assert other == []

    everything = client.get("/consultation/bookings", headers=ADMIN).json()["bookings"]
    assert len(everything) == 2

    assert client.get("/consultation/bookings").status_code == 401


def test_slot_edit_delete_and_admin_update_endpoints():
    _clean_db()
    slots = _generate_career_week()["slots"]
    slot_id = slots[0]["id"]

    resp = client.put(
        f"/consultation/slots/{slot_id}", json={"topic": "Retirement finance"}, headers=INSTRUCTOR
    )
    assert resp.status_code == 200
    assert resp.json()["slot"]["topic"] == "Retirement finance"

    booking = client.post(
        "/consultation/bookings", json={"slot_id": slot_id}, headers=USER_A
    ).json()["booking"]

    resp = client.patch(
        f"/consultation/bookings/{booking['id']}", json={"status": "approved"}, headers=INSTRUCTOR
    )
    assert resp.status_code == 403

    resp = client.patch(
        f"/consultation/bookings/{booking['id']}",
        json={"status": "approved", "meeting_link": "https://meet.example.com/x"},
        headers=ADMIN,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["booking"]["status"] == "approved"

    resp = client.delete(f"/consultation/slots/{slot_id}", headers=INSTRUCTOR)
    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "SlotBooked"

    resp = client.patch(
        f"/consultation/bookings/{booking['id']}",
        json={"slot_id": slots[1]["id"]},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.json()["booking"]["slot_id"] == slots[1]["id"]

    resp = client.delete(f"/consultation/slots/{slot_id}", headers=INSTRUCTOR)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}

    resp = client.delete(f"/consultation/slots/{slot_id}", headers=INSTRUCTOR)
    assert resp.status_code == 404

    resp = client.patch(
        f"/consultation/bookings/{booking['id']}",
        json={"slot_id": slots[1]["id"], "status": "bogus"},
        headers=ADMIN,
    )
    assert resp.status_code == 422


def test_reassign_orphaned_endpoint_is_admin_only():
    _clean_db()
    db: Session = SessionLocal()
    try:
        db.add(
            ConsultationSlot(
                instructor_id="ghost",
                starts_at=datetime(2026, 2, 2, 9, 0),
                ends_at=datetime(2026, 2, 2, 9, 30),
            )
        )
        db.commit()
    finally:
        db.close()

    payload = {"instructor_email": "seo@example.com"}
    resp = client.post("/consultation/slots/reassign-orphaned", json=payload, headers=INSTRUCTOR)
    assert resp.status_code == 403

    resp = client.post("/consultation/slots/reassign-orphaned", json=payload, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["fixed"] == 1
    assert resp.json()["instructor_id"] == "inst-api"
