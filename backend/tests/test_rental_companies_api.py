"""HTTP surface of /api/rental-companies."""

from ivms.models.enums import Department
from ivms.models.enums import Role
from ivms.models.models import AuditLog


def _create(client, name="Hertz"):
    return client.post("/api/rental-companies", json={"name": name})


def test_create_returns_201_and_active_row(client):
    resp = _create(client)
    assert resp.status_code == 201, resp.text

    body = resp.json()
    assert body["name"] == "Hertz"
    assert body["is_active"] is True
    assert body["id"]


def test_duplicate_create_returns_409(client):
    assert _create(client).status_code == 201

    resp = _create(client)
    assert resp.status_code == 409
    assert resp.json() == {"detail": "A rental company with this name already exists"}


def test_name_length_is_validated(client):
    resp = _create(client, name="H")
    assert resp.status_code == 422

    body = resp.json()
    assert body["errors"][0]["field"] == "name"
    assert "name" in body["detail"]


def test_delete_soft_deletes_and_frees_name(client):
    company_id = _create(client).json()["id"]

    resp = client.delete(f"/api/rental-companies/{company_id}")
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    # Still readable by id
    assert client.get(f"/api/rental-companies/{company_id}").json()["is_active"] is False

    # Listing hides it unless asked
    assert client.get("/api/rental-companies").json() == []
    assert len(client.get("/api/rental-companies?include_inactive=true").json()) == 1

    # Name is free again
    resp = _create(client)
    assert resp.status_code == 201
    assert resp.json()["id"] != company_id


def test_patch_conflict_leaves_row_unchanged(client):
    _create(client, "Hertz")
    avis_id = _create(client, "Avis").json()["id"]

    resp = client.patch(f"/api/rental-companies/{avis_id}", json={"name": "Hertz"})
    assert resp.status_code == 409
    assert client.get(f"/api/rental-companies/{avis_id}").json()["name"] == "Avis"


def test_patch_reactivation_conflicts_when_name_reused(client):
    old_id = _create(client).json()["id"]
    client.delete(f"/api/rental-companies/{old_id}")
    _create(client)

    resp = client.patch(f"/api/rental-companies/{old_id}", json={"is_active": True})
    assert resp.status_code == 409


def test_unknown_id_returns_404(client):
    resp = client.get("/api/rental-companies/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Rental company with ID does-not-exist not found"


def test_dropdown_returns_id_name_pairs(client):
    _create(client, "Sixt")
    _create(client, "Avis")

    resp = client.get("/api/rental-companies/dropdown")
    assert resp.status_code == 200
    assert [o["name"] for o in resp.json()] == ["Avis", "Sixt"]
    assert set(resp.json()[0]) == {"id", "name"}


def test_writes_are_audited(client, db_session):
    company_id = _create(client).json()["id"]
    client.delete(f"/api/rental-companies/{company_id}")

    actions = sorted(row.action for row in db_session.query(AuditLog).all())
    assert actions == ["RENTAL_COMPANY_CREATED", "RENTAL_COMPANY_DELETED"]


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------


def test_operator_can_list_but_not_create(client, make_user, as_user):
    as_user(make_user(Department.OPERATION, Role.OPERATOR))

    assert client.get("/api/rental-companies").status_code == 200
    resp = _create(client)
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Insufficient permissions"}


def test_maintenance_department_cannot_list(client, make_user, as_user):
    as_user(make_user(Department.MAINTENANCE, Role.OPERATOR))
    assert client.get("/api/rental-companies").status_code == 403
