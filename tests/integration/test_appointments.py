from datetime import datetime, timedelta

from vidhanto.models import Appointment, AppointmentStatus, Lawyer

from tests.helpers import auth_headers


def book(client, user, lawyer, when, **overrides):
    payload = {
        "lawyer_id": lawyer.id,
        "consultation_type": "video",
        "scheduled_date": when.isoformat(),
        "duration": 30,
        "description": "Property dispute with neighbour",
    }
    payload.update(overrides)
    return client.post("/api/appointments/", headers=auth_headers(user), json=payload)


def test_book_appointment_prices_from_lawyer_fee(client, user, lawyer, future):
    response = book(client, user, lawyer, future)
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["payment_status"] == "pending"
    assert body["consultation_fee"] == 1500
    assert body["platform_fee"] == 150
    assert body["total_fee"] == 1650
    assert body["lawyer"]["id"] == lawyer.id


def test_book_requires_verified_lawyer(client, user, make_lawyer, future):
    unverified = make_lawyer(verified=False)
    response = book(client, user, unverified, future)
    assert response.status_code == 404
    assert response.json()["detail"] == "Lawyer not found or not verified"


def test_book_rejects_past_time(client, user, lawyer):
    response = book(client, user, lawyer, datetime.utcnow() - timedelta(hours=1))
    assert response.status_code == 400
    assert response.json()["detail"] == "Appointment must be scheduled in the future"


def test_book_outside_availability(client, user, make_lawyer, future):
    lawyer = make_lawyer(availability={})
    response = book(client, user, lawyer, future)
    assert response.status_code == 400
    assert response.json()["detail"] == "Lawyer is not available at the selected time"


def test_book_rejects_taken_slot(client, user, make_user, lawyer, future):
    assert book(client, user, lawyer, future).status_code == 201

    response = book(client, make_user(), lawyer, future)
    assert response.status_code == 400
    assert response.json()["detail"] == "This time slot is already booked"


def test_cancelled_booking_frees_slot(client, user, make_user, lawyer, make_appointment, future):
    make_appointment(make_user(), lawyer, scheduled_date=future, status=AppointmentStatus.CANCELLED)
    assert book(client, user, lawyer, future).status_code == 201


def test_reschedule_onto_taken_slot(client, user, make_user, lawyer, make_appointment, future):
    make_appointment(make_user(), lawyer, scheduled_date=future)
    appointment = make_appointment(user, lawyer, scheduled_date=future + timedelta(days=1))

    response = client.put(
        f"/api/appointments/{appointment.id}",
        headers=auth_headers(user),
        json={"scheduled_date": future.isoformat()},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "This time slot is already booked"

    # keeping its own time is not a conflict
    own = client.put(
        f"/api/appointments/{appointment.id}",
        headers=auth_headers(user),
        json={"scheduled_date": appointment.scheduled_date.isoformat()},
    )
    assert own.status_code == 200


def test_book_rejects_odd_duration(client, user, lawyer, future):
    response = book(client, user, lawyer, future, duration=20)
    assert response.status_code == 400


def test_only_clients_can_book(client, lawyer, make_lawyer, future):
    other = make_lawyer()
    response = book(client, other.user, lawyer, future)
    assert response.status_code == 403


def test_list_is_scoped_by_role(client, user, make_user, lawyer, make_lawyer, make_appointment, admin):
    other_user = make_user()
    make_appointment(user, lawyer)
    make_appointment(other_user, lawyer)
    make_appointment(other_user, make_lawyer())

    assert client.get("/api/appointments/", headers=auth_headers(user)).json()["total"] == 1
    assert client.get("/api/appointments/", headers=auth_headers(lawyer.user)).json()["total"] == 2
    assert client.get("/api/appointments/", headers=auth_headers(admin)).json()["total"] == 3


def test_get_appointment_access(client, user, make_user, lawyer, make_appointment):
    appointment = make_appointment(user, lawyer)
    assert client.get(f"/api/appointments/{appointment.id}", headers=auth_headers(user)).status_code == 200
    assert client.get(f"/api/appointments/{appointment.id}", headers=auth_headers(lawyer.user)).status_code == 200
    assert client.get(f"/api/appointments/{appointment.id}", headers=auth_headers(make_user())).status_code == 403
    assert client.get("/api/appointments/missing", headers=auth_headers(user)).status_code == 404


def test_confirm_complete_and_rate(client, db, user, lawyer, make_appointment, mailer):
    appointment = make_appointment(user, lawyer)

    confirmed = client.put(f"/api/appointments/{appointment.id}/confirm", headers=auth_headers(lawyer.user))
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert confirmed.json()["meeting_link"].endswith(f"/room/{appointment.id}")
    assert any(mail["to"] == user.email for mail in mailer.sent)

    completed = client.put(
        f"/api/appointments/{appointment.id}/complete",
        headers=auth_headers(user),
        json={"rating": 5, "review": "Very helpful", "notes": "Will follow up"},
    )
    assert completed.status_code == 200
    body = completed.json()
    assert body["status"] == "completed"
    assert body["user_rating"] == 5
    assert body["user_notes"] == "Will follow up"
    assert body["completed_at"] is not None

    db.expire_all()
    stored = db.get(Lawyer, lawyer.id)
    assert stored.rating_average == 5.0
    assert stored.rating_count == 1
    assert stored.total_consultations == 1


def test_only_assigned_lawyer_confirms(client, user, lawyer, make_lawyer, make_appointment):
    appointment = make_appointment(user, lawyer)
    assert client.put(f"/api/appointments/{appointment.id}/confirm", headers=auth_headers(user)).status_code == 403
    other = make_lawyer()
    assert client.put(f"/api/appointments/{appointment.id}/confirm", headers=auth_headers(other.user)).status_code == 403


def test_pending_appointment_cannot_complete(client, user, lawyer, make_appointment):
    appointment = make_appointment(user, lawyer)
    response = client.put(f"/api/appointments/{appointment.id}/complete", headers=auth_headers(user), json={})
    assert response.status_code == 400
    assert "pending" in response.json()["detail"]


def test_lawyer_cannot_rate(client, user, lawyer, make_appointment):
    appointment = make_appointment(user, lawyer, status=AppointmentStatus.CONFIRMED)
    response = client.put(
        f"/api/appointments/{appointment.id}/complete",
        headers=auth_headers(lawyer.user),
        json={"rating": 5},
    )
    assert response.status_code == 403

    response = client.put(
        f"/api/appointments/{appointment.id}/complete",
        headers=auth_headers(lawyer.user),
        json={"notes": "Advised mediation"},
    )
    assert response.status_code == 200
    assert response.json()["lawyer_notes"] == "Advised mediation"


def test_update_reschedules(client, user, lawyer, make_appointment, future):
    appointment = make_appointment(user, lawyer)
    new_time = future + timedelta(days=1)
    response = client.put(
        f"/api/appointments/{appointment.id}",
        headers=auth_headers(user),
        json={"scheduled_date": new_time.isoformat(), "duration": 60},
    )
    assert response.status_code == 200
    assert response.json()["duration"] == 60
    assert response.json()["scheduled_date"].startswith(new_time.strftime("%Y-%m-%dT%H:%M"))


def test_update_blocked_after_completion(client, user, lawyer, make_appointment):
    appointment = make_appointment(user, lawyer, status=AppointmentStatus.COMPLETED)
    response = client.put(f"/api/appointments/{appointment.id}", headers=auth_headers(user), json={"duration": 45})
    assert response.status_code == 400


def test_cancel_appointment(client, user, lawyer, make_appointment):
    appointment = make_appointment(user, lawyer)
    response = client.request(
        "DELETE",
        f"/api/appointments/{appointment.id}",
        headers=auth_headers(user),
        json={"reason": "Resolved out of court"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["cancellation_reason"] == "Resolved out of court"
    assert body["cancelled_by"] == user.id


def test_cancel_too_close_to_start(client, user, lawyer, make_appointment):
    appointment = make_appointment(
        user, lawyer,
        status=AppointmentStatus.CONFIRMED,
        scheduled_date=datetime.utcnow() + timedelta(hours=1),
    )
    response = client.request(
        "DELETE",
        f"/api/appointments/{appointment.id}",
        headers=auth_headers(user),
        json={"reason": "Busy"},
    )
    assert response.status_code == 400
    assert "at least 2 hours" in response.json()["detail"]


def test_no_show_only_after_start(client, db, user, lawyer, make_appointment):
    upcoming = make_appointment(user, lawyer, status=AppointmentStatus.CONFIRMED)
    response = client.put(f"/api/appointments/{upcoming.id}/no-show", headers=auth_headers(lawyer.user))
    assert response.status_code == 400

    started = make_appointment(
        user, lawyer,
        status=AppointmentStatus.CONFIRMED,
        scheduled_date=datetime.utcnow() - timedelta(minutes=30),
    )
    response = client.put(f"/api/appointments/{started.id}/no-show", headers=auth_headers(lawyer.user))
    assert response.status_code == 200
    assert response.json()["status"] == "no-show"

    db.expire_all()
    assert db.get(Appointment, started.id).status == AppointmentStatus.NO_SHOW
