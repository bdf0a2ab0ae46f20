from datetime import datetime
from datetime import timedelta
from datetime import timezone
from unittest.mock import patch

import pytest

from ivms.exceptions import BusinessRuleError
from ivms.exceptions import ConflictError
from ivms.models.enums import CarRequestStatus
from ivms.models.enums import CarStatus
from ivms.models.enums import CarType
from ivms.models.enums import Department
from ivms.models.enums import MaintenanceStatus
from ivms.models.models import CarRequest
from ivms.models.models import MaintenanceRequest
from ivms.services.cars import CarService
from ivms.utils.time import utc_now_naive

# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def test_new_car_is_available_with_zero_mileage(make_car):
    car = make_car()
    assert car.status == CarStatus.AVAILABLE
    assert car.mileage == 0


def test_plate_and_vin_are_each_unique_among_live_cars(make_car):
    make_car(license_plate="ABC-1", vin="VIN-1")

    with pytest.raises(ConflictError) as plate:
        make_car(license_plate="ABC-1", vin="VIN-2")
    assert plate.value.message == "A car with this license plate already exists"

    with pytest.raises(ConflictError) as vin:
        make_car(license_plate="ABC-2", vin="VIN-1")
    assert vin.value.message == "A car with this VIN already exists"


def test_deleted_car_frees_plate_and_vin(make_car, db_session):
    car = make_car(license_plate="ABC-1", vin="VIN-1")
    CarService(db_session).remove(car.id)

    replacement = make_car(license_plate="ABC-1", vin="VIN-1")
    assert replacement.id != car.id
    assert CarService(db_session).find_one(car.id).status == CarStatus.DELETED


def test_vin_index_guards_against_concurrent_insert(make_car, db_session):
    make_car(license_plate="ABC-1", vin="VIN-1")
    service = CarService(db_session)

    with patch.object(service, "find_conflict", return_value=None):
        with pytest.raises(ConflictError) as exc_info:
            service.create(
                {
                    "model": "Civic",
                    "type": CarType.SEDAN,
                    "year": 2020,
                    "color": "Blue",
                    "license_plate": "ABC-2",
                    "vin": "VIN-1",
                }
            )
    assert exc_info.value.field == "vin"


def test_update_rechecks_only_sent_keys(make_car, db_session):
    car = make_car()
    service = CarService(db_session)

    with patch.object(service, "find_conflict") as lookup:
        service.update(car.id, {"color": "Black", "mileage": 1200})
    lookup.assert_not_called()

    make_car(license_plate="TAKEN")
    with pytest.raises(ConflictError):
        service.update(car.id, {"license_plate": "TAKEN"})


def test_deleted_car_cannot_be_updated_or_deleted_again(make_car, db_session):
    car = make_car()
    service = CarService(db_session)
    service.remove(car.id)

    with pytest.raises(BusinessRuleError, match="Cannot update a deleted car"):
        service.update(car.id, {"color": "Red"})
    with pytest.raises(BusinessRuleError, match="already deleted"):
        service.remove(car.id)


def test_car_with_active_request_cannot_be_deleted(make_car, operator, db_session):
    car = make_car()
    now = utc_now_naive()
    db_session.add(
        CarRequest(
            requested_car_type=CarType.SEDAN,
            requested_car_id=car.id,
            departure_location="HQ",
            destination="Port",
            departure_datetime=now + timedelta(days=1),
            return_datetime=now + timedelta(days=2),
            status=CarRequestStatus.APPROVED,
            created_by_id=operator.id,
        )
    )
    db_session.commit()

    with pytest.raises(BusinessRuleError, match="active requests"):
        CarService(db_session).remove(car.id)


def test_car_with_active_maintenance_cannot_be_deleted(make_car, garage_user, db_session):
    car = make_car()
    db_session.add(
        MaintenanceRequest(
            car_id=car.id,
            description="Engine knocking at idle",
            status=MaintenanceStatus.IN_PROGRESS,
            created_by_id=garage_user.id,
        )
    )
    db_session.commit()

    with pytest.raises(BusinessRuleError, match="active maintenance"):
        CarService(db_session).remove(car.id)


def test_search_filters_and_hides_deleted(make_car, db_session):
    make_car(model="Corolla", color="White")
    make_car(model="Land Cruiser", type=CarType.SUV, color="Black")
    gone = make_car(model="Corolla Cross")
    service = CarService(db_session)
    service.remove(gone.id)

    assert [c.model for c in service.search(model="corolla")] == ["Corolla"]
    assert [c.model for c in service.search(type=CarType.SUV)] == ["Land Cruiser"]
    assert [c.model for c in service.search(search="black")] == ["Land Cruiser"]
    assert len(service.search()) == 2


def test_update_status_rules(make_car, db_session):
    car = make_car()
    service = CarService(db_session)

    assert service.update_status(car.id, CarStatus.UNDER_MAINTENANCE).status == CarStatus.UNDER_MAINTENANCE
    assert service.check_availability(car.id) is False

    with pytest.raises(BusinessRuleError):
        service.update_status(car.id, CarStatus.DELETED)


def test_expiring_warranty_and_needing_maintenance(make_car, db_session):
    now = utc_now_naive()
    soon = make_car(warranty_expiry=now + timedelta(days=10))
    make_car(warranty_expiry=now + timedelta(days=90))
    overdue = make_car(next_maintenance_date=now - timedelta(days=1))
    make_car(next_maintenance_date=now + timedelta(days=5))

    service = CarService(db_session)
    assert [c.id for c in service.expiring_warranty(days=30)] == [soon.id]
    assert [c.id for c in service.needing_maintenance()] == [overdue.id]


def test_offset_dates_are_stored_as_utc(make_car, db_session):
    car = make_car()
    due = datetime(2031, 6, 1, 1, 30, tzinfo=timezone(timedelta(hours=3)))

    updated = CarService(db_session).update(car.id, {"next_maintenance_date": due})

    assert updated.next_maintenance_date == datetime(2031, 5, 31, 22, 30)
    assert updated.next_maintenance_date.tzinfo is None


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


CAR_BODY = {
    "model": "Hilux",
    "type": "PICKUP",
    "year": 2021,
    "color": "Silver",
    "license_plate": "XYZ-900",
    "vin": "JTFHX02P000000001",
}


def test_create_and_fetch_car_detail(client):
    resp = client.post("/api/cars", json=CAR_BODY)
    assert resp.status_code == 201, resp.text
    car_id = resp.json()["id"]

    detail = client.get(f"/api/cars/{car_id}").json()
    assert detail["license_plate"] == "XYZ-900"
    assert detail["car_requests"] == []
    assert detail["maintenance_requests"] == []

    assert client.get(f"/api/cars/{car_id}/availability").json() == {"available": True}


def test_offset_warranty_expiry_round_trips_as_utc(client):
    resp = client.post("/api/cars", json={**CAR_BODY, "warranty_expiry": "2030-01-01T03:00:00+05:00"})
    assert resp.status_code == 201, resp.text

    car_id = resp.json()["id"]
    car = client.get(f"/api/cars/{car_id}").json()
    assert car["warranty_expiry"] == "2029-12-31T22:00:00"


def test_duplicate_plate_returns_409(client):
    client.post("/api/cars", json=CAR_BODY)
    resp = client.post("/api/cars", json={**CAR_BODY, "vin": "OTHERVIN000000001"})
    assert resp.status_code == 409


def test_invalid_year_returns_field_error(client):
    resp = client.post("/api/cars", json={**CAR_BODY, "year": 1800})
    assert resp.status_code == 422
    assert [e["field"] for e in resp.json()["errors"]] == ["year"]


def test_delete_then_reuse_plate(client):
    car_id = client.post("/api/cars", json=CAR_BODY).json()["id"]

    resp = client.delete(f"/api/cars/{car_id}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "DELETED"

    assert client.get("/api/cars").json() == []
    assert client.post("/api/cars", json=CAR_BODY).status_code == 201

    # Second delete of the same car is refused
    assert client.delete(f"/api/cars/{car_id}").status_code == 400


def test_dropdown_lists_plates(client, make_car):
    make_car(license_plate="B-2")
    make_car(license_plate="A-1")
    options = client.get("/api/cars/dropdown").json()
    assert [o["license_plate"] for o in options] == ["A-1", "B-2"]


def test_operation_department_cannot_add_cars(client, make_user, as_user):
    as_user(make_user(Department.OPERATION))
    assert client.post("/api/cars", json=CAR_BODY).status_code == 403
    assert client.get("/api/cars").status_code == 200
