from tests.helpers import PASSWORD, auth_headers


def test_admin_routes_require_admin(client, user):
    assert client.get("/api/admin/stats", headers=auth_headers(user)).status_code == 403
    assert client.get("/api/admin/stats").status_code == 401


def test_stats(client, admin, user, make_lawyer, make_appointment):
    verified = make_lawyer()
    make_lawyer(verified=False)
    make_appointment(user, verified)

    stats = client.get("/api/admin/stats", headers=auth_headers(admin)).json()
    assert stats["total_users"] == 1
    assert stats["total_lawyers"] == 2
    assert stats["verified_lawyers"] == 1
    assert stats["pending_kyc"] == 1
    assert stats["total_appointments"] == 1
    assert stats["total_revenue"] == 0


def test_user_search_and_role_filter(client, admin, make_user, lawyer):
    make_user(first_name="Rohan", email="rohan@example.com")
    make_user(first_name="Kavya")

    found = client.get("/api/admin/users", headers=auth_headers(admin), params={"search": "rohan"}).json()
    assert [u["email"] for u in found["users"]] == ["rohan@example.com"]

    lawyers = client.get("/api/admin/users", headers=auth_headers(admin), params={"role": "lawyer"}).json()
    assert [u["id"] for u in lawyers["users"]] == [lawyer.user_id]


def test_kyc_decisions(client, admin, make_lawyer):
    pending = make_lawyer(verified=False)
    queue = client.get("/api/admin/lawyers", headers=auth_headers(admin), params={"kyc_status": "pending"}).json()
    assert [l["id"] for l in queue["lawyers"]] == [pending.id]

    approved = client.put(
        f"/api/admin/lawyers/{pending.id}/verify",
        headers=auth_headers(admin),
        json={"status": "verified", "notes": "Bar council record matches"},
    ).json()
    assert approved["kyc_status"] == "verified"
    assert approved["is_verified"] is True
    assert approved["verified_at"] is not None

    rejected = client.put(
        f"/api/admin/lawyers/{pending.id}/verify",
        headers=auth_headers(admin),
        json={"status": "rejected", "notes": "Licence expired"},
    ).json()
    assert rejected["kyc_status"] == "rejected"
    assert rejected["is_verified"] is False
    assert rejected["kyc_notes"] == "Licence expired"


def test_kyc_decision_validation(client, admin, lawyer):
    response = client.put(
        f"/api/admin/lawyers/{lawyer.id}/verify",
        headers=auth_headers(admin),
        json={"status": "maybe"},
    )
    assert response.status_code == 400
    missing = client.put("/api/admin/lawyers/nope/verify", headers=auth_headers(admin), json={"status": "verified"})
    assert missing.status_code == 404


def test_ban_and_unban(client, admin, user):
    banned = client.put(
        f"/api/admin/users/{user.id}/ban",
        headers=auth_headers(admin),
        json={"reason": "Abusive messages"},
    ).json()
    assert banned["is_active"] is False
    assert banned["ban_reason"] == "Abusive messages"

    login = client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert login.status_code == 401
    assert login.json()["detail"] == "Account is deactivated"
    assert client.get("/api/users/profile", headers=auth_headers(user)).status_code == 401

    unbanned = client.put(f"/api/admin/users/{user.id}/unban", headers=auth_headers(admin)).json()
    assert unbanned["is_active"] is True
    assert unbanned["ban_reason"] is None
    assert client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD}).status_code == 200


def test_cannot_ban_admin(client, admin, make_user):
    from vidhanto.models import UserRole

    other_admin = make_user(UserRole.ADMIN)
    response = client.put(
        f"/api/admin/users/{other_admin.id}/ban",
        headers=auth_headers(admin),
        json={"reason": "Testing"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot ban an admin"


def test_delete_user(client, admin, user):
    user_id = user.id
    response = client.delete(f"/api/admin/users/{user_id}", headers=auth_headers(admin))
    assert response.json() == {"message": "User deleted successfully"}
    assert client.delete(f"/api/admin/users/{user_id}", headers=auth_headers(admin)).status_code == 404

    own = client.delete(f"/api/admin/users/{admin.id}", headers=auth_headers(admin))
    assert own.status_code == 400
    assert own.json()["detail"] == "You cannot delete your own account"


def test_admin_lists_appointments_and_payments(client, admin, user, lawyer, make_appointment):
    make_appointment(user, lawyer)
    appointments = client.get("/api/admin/appointments", headers=auth_headers(admin)).json()
    assert appointments["total"] == 1
    payments = client.get("/api/admin/payments", headers=auth_headers(admin), params={"status": "completed"}).json()
    assert payments["total"] == 0
