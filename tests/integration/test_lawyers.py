from datetime import date, datetime, timedelta

from vidhanto.models import Lawyer, KycStatus

from tests.helpers import auth_headers


def next_monday() -> date:
    today = date.today() + timedelta(days=7)
    return today + timedelta(days=(7 - today.weekday()) % 7)


def test_directory_lists_only_verified_lawyers(client, make_lawyer):
    verified = make_lawyer(specializations=["Criminal Law"], city="Mumbai")
    make_lawyer(verified=False)

    response = client.get("/api/lawyers/")
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["lawyers"][0]["id"] == verified.id
    assert body["lawyers"][0]["user"]["first_name"] == "Asha"


def test_directory_filters(client, make_lawyer):
    criminal = make_lawyer(specializations=["Criminal Law"], city="Mumbai", experience=12)
    make_lawyer(specializations=["Family Law"], city="Pune", experience=2)

    by_specialization = client.get("/api/lawyers/", params={"specialization": "Criminal Law"}).json()
    assert [l["id"] for l in by_specialization["lawyers"]] == [criminal.id]

    by_city = client.get("/api/lawyers/", params={"city": "mum"}).json()
    assert [l["id"] for l in by_city["lawyers"]] == [criminal.id]

    by_experience = client.get("/api/lawyers/", params={"min_experience": 10}).json()
    assert by_experience["total"] == 1

    sorted_by_experience = client.get("/api/lawyers/", params={"sort_by": "experience"}).json()
    assert sorted_by_experience["lawyers"][0]["id"] == criminal.id


def test_directory_rejects_unknown_sort(client):
    response = client.get("/api/lawyers/", params={"sort_by": "name"})
    assert response.status_code == 400


def test_reference_lists(client):
    assert "Criminal Law" in client.get("/api/lawyers/specializations").json()["specializations"]
    assert "Maharashtra" in client.get("/api/lawyers/states").json()["states"]


def test_get_lawyer(client, lawyer):
    response = client.get(f"/api/lawyers/{lawyer.id}")
    assert response.status_code == 200
    assert response.json()["bar_license_number"] == lawyer.bar_license_number
    assert client.get("/api/lawyers/missing").status_code == 404


def test_update_profile(client, lawyer, make_lawyer):
    other = make_lawyer()
    headers = auth_headers(lawyer.user)

    response = client.put("/api/lawyers/profile", headers=headers, json={"bio": "Family disputes", "chat_fee": 800})
    assert response.status_code == 200
    assert response.json()["bio"] == "Family disputes"
    assert response.json()["chat_fee"] == 800

    taken = client.put("/api/lawyers/profile", headers=headers, json={"bar_license_number": other.bar_license_number})
    assert taken.status_code == 400


def test_profile_requires_lawyer_role(client, user):
    response = client.put("/api/lawyers/profile", headers=auth_headers(user), json={"bio": "x"})
    assert response.status_code == 403


def test_update_availability_validates_ranges(client, lawyer):
    headers = auth_headers(lawyer.user)
    response = client.put(
        "/api/lawyers/availability",
        headers=headers,
        json={"availability": {"monday": [{"start": "09:00", "end": "12:00"}]}},
    )
    assert response.status_code == 200
    assert response.json()["availability"] == {"monday": [{"start": "09:00", "end": "12:00"}]}

    backwards = client.put(
        "/api/lawyers/availability",
        headers=headers,
        json={"availability": {"monday": [{"start": "12:00", "end": "09:00"}]}},
    )
    assert backwards.status_code == 400

    unknown_day = client.put(
        "/api/lawyers/availability",
        headers=headers,
        json={"availability": {"someday": [{"start": "09:00", "end": "12:00"}]}},
    )
    assert unknown_day.status_code == 400


def test_availability_requires_verified_kyc(client, make_lawyer):
    pending = make_lawyer(verified=False)
    response = client.put(
        "/api/lawyers/availability",
        headers=auth_headers(pending.user),
        json={"availability": {"monday": [{"start": "09:00", "end": "12:00"}]}},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Lawyer KYC verification required"

    # profile and KYC stay open so onboarding can finish
    profile = client.put("/api/lawyers/profile", headers=auth_headers(pending.user), json={"bio": "New to the bar"})
    assert profile.status_code == 200


def test_submit_kyc_resets_review(client, db, make_lawyer):
    lawyer = make_lawyer(verified=False, kyc_status=KycStatus.REJECTED, kyc_notes="Blurry scan")
    response = client.post(
        "/api/lawyers/kyc",
        headers=auth_headers(lawyer.user),
        json={
            "documents": [{"type": "bar_certificate", "url": "https://files.example.com/bar.pdf"}],
            "bar_license_number": "MH/1234/2015",
        },
    )
    assert response.status_code == 200
    assert response.json()["kyc_status"] == "pending"

    db.expire_all()
    stored = db.get(Lawyer, lawyer.id)
    assert stored.bar_license_number == "MH/1234/2015"
    assert stored.kyc_notes is None
    assert stored.kyc_documents[0]["type"] == "bar_certificate"
    assert "uploaded_at" in stored.kyc_documents[0]


def test_verified_lawyer_cannot_resubmit_kyc(client, lawyer):
    response = client.post(
        "/api/lawyers/kyc",
        headers=auth_headers(lawyer.user),
        json={"documents": [{"type": "id", "url": "https://files.example.com/id.pdf"}]},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "KYC already verified"


def test_slots_exclude_booked_times(client, user, make_lawyer, make_appointment):
    lawyer = make_lawyer(availability={"monday": [{"start": "09:00", "end": "11:00"}]})
    monday = next_monday()
    # 09:30 IST
    booked_at = datetime(monday.year, monday.month, monday.day, 4, 0)
    make_appointment(user, lawyer, scheduled_date=booked_at)

    response = client.get(f"/api/lawyers/{lawyer.id}/slots", params={"date": monday.isoformat()})
    assert response.status_code == 200
    body = response.json()
    assert body["day"] == "monday"
    assert body["slots"] == ["09:00", "10:00", "10:30"]

    tuesday = client.get(
        f"/api/lawyers/{lawyer.id}/slots",
        params={"date": (monday + timedelta(days=1)).isoformat()},
    ).json()
    # days without configured hours fall back to the default working day
    assert tuesday["slots"][0] == "10:00"
    assert tuesday["slots"][-1] == "18:30"
