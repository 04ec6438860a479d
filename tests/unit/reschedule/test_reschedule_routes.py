import pytest
from unittest.mock import patch
from datetime import date
from fastapi import FastAPI
from fastapi.testclient import TestClient

from scheduling.routers.rou_reschedule import router
from scheduling.services.svc_reschedule import RescheduleService
from scheduling.schemas.sch_reschedule import RescheduleResponse
from scheduling.configuration.database import get_schedule_store
from scheduling.dependencies.dep_auth import get_current_scheduler
from scheduling.validators.val_errors import StoreUnavailableError

app = FastAPI()
app.include_router(router)

@pytest.fixture
def client(store, admin):
    app.dependency_overrides[get_schedule_store] = lambda: store
    app.dependency_overrides[get_current_scheduler] = lambda: admin
    yield TestClient(app)
    app.dependency_overrides.clear()

def test_reschedule(client, admin):
    with patch.object(RescheduleService, 'reschedule_appointment') as mock_reschedule:
        mock_reschedule.return_value = RescheduleResponse(
            appointment_id="r1", date=date(2026, 10, 29), hour=10, room_id="room-2", reschedule_left=1
        )

        response = client.post("/reschedules/r1", json={"room_id": "room-2", "day": "thursday", "hour": 10})

    assert response.status_code == 200
    assert response.json()["date"] == "2026-10-29"
    args = mock_reschedule.call_args[0]
    assert args[1] == "r1"
    assert args[3] == admin

def test_reschedule_rejects_bad_hour(client):
    response = client.post("/reschedules/r1", json={"room_id": "room-2", "day": "thursday", "hour": 24})

    assert response.status_code == 422

def test_store_outage_maps_to_503(client):
    with patch.object(RescheduleService, 'reschedule_appointment') as mock_reschedule:
        mock_reschedule.side_effect = StoreUnavailableError("read_appointment", "timeout")

        response = client.post("/reschedules/r1", json={"room_id": "room-2", "day": "thursday", "hour": 10})

    assert response.status_code == 503
    assert response.json()["detail"]["operation"] == "read_appointment"
