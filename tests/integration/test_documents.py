from datetime import datetime, timedelta

from vidhanto.models import Document, DocumentSignature, DocumentStatus, KycStatus

from tests.helpers import auth_headers


def create_document(client, user, **overrides):
    payload = {
        "title": "Office lease",
        "type": "rent-agreement",
        "content": "The landlord agrees to lease...",
        "base_price": 1000,
        "additional_charges": 500,
    }
    payload.update(overrides)
    response = client.post("/api/documents/", headers=auth_headers(user), json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_templates(client):
    templates = client.get("/api/documents/templates").json()
    assert {t["id"] for t in templates} >= {"nda-template", "rental-agreement"}
    ndas = client.get("/api/documents/templates", params={"type": "nda"}).json()
    assert [t["id"] for t in ndas] == ["nda-template"]


def test_create_document_computes_gst(client, user):
    document = create_document(client, user)
    assert document["status"] == "draft"
    assert document["tax"] == 270
    assert document["total_amount"] == 1770
    assert document["version"] == 1
    assert document["audit_trail"][0]["action"] == "created"


def test_create_non_draft_is_pending_review(client, user):
    document = create_document(client, user, is_draft=False)
    assert document["status"] == "pending_review"


def test_list_documents_scoped_to_owner(client, user, make_user):
    create_document(client, user)
    create_document(client, user, title="NDA", type="nda")
    create_document(client, make_user())

    body = client.get("/api/documents/", headers=auth_headers(user)).json()
    assert body["total"] == 2
    ndas = client.get("/api/documents/", headers=auth_headers(user), params={"type": "nda"}).json()
    assert ndas["total"] == 1


def test_update_bumps_version_on_content_change(client, user):
    document = create_document(client, user)
    response = client.put(
        f"/api/documents/{document['id']}",
        headers=auth_headers(user),
        json={"content": "Revised terms", "base_price": 2000},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["version"] == 2
    assert body["tax"] == 450
    assert body["total_amount"] == 2950
    assert body["audit_trail"][-1]["action"] == "updated"


def test_other_users_cannot_touch_document(client, user, make_user):
    document = create_document(client, user)
    stranger = auth_headers(make_user())
    assert client.get(f"/api/documents/{document['id']}", headers=stranger).status_code == 403
    assert client.put(f"/api/documents/{document['id']}", headers=stranger, json={"title": "x"}).status_code == 403


def test_review_cycle(client, user, lawyer):
    document = create_document(client, user)
    owner = auth_headers(user)
    reviewer = auth_headers(lawyer.user)

    submitted = client.post(
        f"/api/documents/{document['id']}/submit-review",
        headers=owner,
        json={"lawyer_id": lawyer.id, "instructions": "Check the notice clause", "urgency": "high"},
    )
    assert submitted.status_code == 200
    assert submitted.json()["status"] == "under_review"
    assert submitted.json()["lawyer_id"] == lawyer.id

    # the assigned lawyer can see it now
    assert client.get(f"/api/documents/{document['id']}", headers=reviewer).status_code == 200

    # editing is locked while under review
    assert client.put(f"/api/documents/{document['id']}", headers=owner, json={"title": "x"}).status_code == 400

    revision = client.put(
        f"/api/documents/{document['id']}/review",
        headers=reviewer,
        json={"status": "needs_revision", "comments": "Add a lock-in period", "additional_charges": 1000},
    )
    assert revision.status_code == 200
    body = revision.json()
    assert body["status"] == "needs_revision"
    assert body["review_comments"] == "Add a lock-in period"
    assert body["tax"] == 360
    assert body["audit_trail"][-1]["action"] == "revision_requested"

    client.post(f"/api/documents/{document['id']}/submit-review", headers=owner, json={"lawyer_id": lawyer.id})
    approved = client.put(f"/api/documents/{document['id']}/review", headers=reviewer, json={"status": "approved"})
    assert approved.json()["status"] == "approved"


def test_review_rejects_unknown_outcome(client, user, lawyer):
    document = create_document(client, user)
    client.post(f"/api/documents/{document['id']}/submit-review", headers=auth_headers(user), json={"lawyer_id": lawyer.id})
    response = client.put(
        f"/api/documents/{document['id']}/review",
        headers=auth_headers(lawyer.user),
        json={"status": "maybe"},
    )
    assert response.status_code == 400


def test_only_assigned_lawyer_reviews(client, user, lawyer, make_lawyer):
    document = create_document(client, user)
    client.post(f"/api/documents/{document['id']}/submit-review", headers=auth_headers(user), json={"lawyer_id": lawyer.id})
    other = make_lawyer()
    response = client.put(
        f"/api/documents/{document['id']}/review",
        headers=auth_headers(other.user),
        json={"status": "approved"},
    )
    assert response.status_code == 403


def test_review_requires_verified_kyc(client, db, user, lawyer):
    document = create_document(client, user)
    client.post(f"/api/documents/{document['id']}/submit-review", headers=auth_headers(user), json={"lawyer_id": lawyer.id})

    lawyer.kyc_status = KycStatus.REJECTED
    db.commit()

    response = client.put(
        f"/api/documents/{document['id']}/review",
        headers=auth_headers(lawyer.user),
        json={"status": "approved"},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Lawyer KYC verification required"
    assert client.get(f"/api/documents/{document['id']}", headers=auth_headers(user)).json()["status"] == "under_review"


def test_sign_with_otp(client, db, user, mailer):
    document = create_document(client, user)
    headers = auth_headers(user)

    response = client.post(
        f"/api/documents/{document['id']}/sign/request-otp",
        headers=headers,
        json={"signer_name": "Meera Shah", "signer_email": "Meera@Example.com"},
    )
    assert response.status_code == 200
    assert response.json()["expires_in_seconds"] == 600
    otp = mailer.codes["meera@example.com"]
    assert len(otp) == 6

    wrong = "000000" if otp != "000000" else "111111"
    bad = client.post(
        f"/api/documents/{document['id']}/sign",
        headers=headers,
        json={"signer_email": "meera@example.com", "otp": wrong},
    )
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Invalid OTP"

    signed = client.post(
        f"/api/documents/{document['id']}/sign",
        headers=headers,
        json={"signer_email": "meera@example.com", "otp": otp},
    )
    assert signed.status_code == 200
    body = signed.json()
    assert body["status"] == "completed"
    assert body["signatures"][0]["status"] == "signed"
    assert body["signed_at"] is not None
    assert body["audit_trail"][-1]["action"] == "signed"

    # the code is single use
    again = client.post(
        f"/api/documents/{document['id']}/sign",
        headers=headers,
        json={"signer_email": "meera@example.com", "otp": otp},
    )
    assert again.status_code == 400


def test_sign_rejects_malformed_and_expired_otp(client, db, user):
    document = create_document(client, user)
    headers = auth_headers(user)

    malformed = client.post(
        f"/api/documents/{document['id']}/sign",
        headers=headers,
        json={"signer_email": "a@example.com", "otp": "12ab"},
    )
    assert malformed.json()["detail"] == "Invalid OTP format"

    client.post(
        f"/api/documents/{document['id']}/sign/request-otp",
        headers=headers,
        json={"signer_name": "A", "signer_email": "a@example.com"},
    )
    signature = db.query(DocumentSignature).filter(DocumentSignature.document_id == document["id"]).one()
    signature.otp_expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    expired = client.post(
        f"/api/documents/{document['id']}/sign",
        headers=headers,
        json={"signer_email": "a@example.com", "otp": "123456"},
    )
    assert expired.status_code == 400
    assert expired.json()["detail"] == "OTP has expired"


def test_upload_file(client, user, storage):
    document = create_document(client, user)
    response = client.post(
        f"/api/documents/{document['id']}/files",
        headers=auth_headers(user),
        files={"file": ("lease.pdf", b"%PDF-1.4 test", "application/pdf")},
    )
    assert response.status_code == 200
    files = response.json()["files"]
    assert files[0]["name"] == "lease.pdf"
    assert files[0]["size"] == 13

    rejected = client.post(
        f"/api/documents/{document['id']}/files",
        headers=auth_headers(user),
        files={"file": ("payload.exe", b"MZ", "application/octet-stream")},
    )
    assert rejected.status_code == 400


def test_delete_withdraws_but_keeps_row(client, db, user):
    document = create_document(client, user)
    response = client.delete(f"/api/documents/{document['id']}", headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    db.expire_all()
    assert db.get(Document, document["id"]).status == DocumentStatus.CANCELLED


def test_signed_document_cannot_be_withdrawn(client, db, user):
    document = create_document(client, user)
    stored = db.get(Document, document["id"])
    stored.status = DocumentStatus.COMPLETED
    db.commit()

    response = client.post(f"/api/documents/{document['id']}/cancel", headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete a signed or finalized document"
