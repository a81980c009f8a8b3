"""
Tests for the HTTP endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from callmonitor.config import Settings
from callmonitor.main import app
from callmonitor.models.domain import CallEvent, DirectoryContact
from callmonitor.services.monitor_service import CallMonitorService


def _offline_settings():
    return Settings(
        _env_file=None,
        CTI_API_USERNAME=None,
        CTI_API_PASSWORD=None,
        PF_API_BASE_URL=None,
        DATABASE_URL=None,
    )


@pytest.fixture
def service():
    return CallMonitorService(config=_offline_settings())


@pytest.fixture
def client(service):
    app.state.monitor = service
    with TestClient(app) as test_client:
        yield test_client
    app.state.monitor = None


def test_healthz_endpoint(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_reports_missing_cti_configuration(client):
    response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["cti_stream"]["ok"] is False
    assert data["checks"]["directory"]["ok"] is True
    assert "database" not in data["checks"]
    assert data["status"]["active_calls"] == 0


def test_active_calls_endpoint(client, service):
    service.aggregator.process_event(
        CallEvent(id="c1", extension="100", caller="0625182755", callee="100", state="ring")
    )

    response = client.get("/api/calls/active")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    call = data["calls"][0]
    assert call["id"] == "c1"
    assert call["extensionName"] == "100"
    assert call["status"] == "ringing"
    assert call["answerTime"] is None


def test_extensions_endpoint(client, service):
    service.extensions.load([{"extension_number": "100", "name": "Empfang", "uuid": "u-100"}])

    response = client.get("/api/extensions")

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 1
    assert data["extensions"][0]["extensionNumber"] == "100"
    assert data["extensions"][0]["presence"] == "offline"


def test_contact_lookup(client, service):
    service.directory.replace([("06251 82755", DirectoryContact(name="Firma ABC", contact_id=1))])

    response = client.get("/api/contacts/lookup", params={"number": "+49 6251 82755"})

    assert response.status_code == 200
    match = response.json()["match"]
    assert match["name"] == "Firma ABC"
    assert match["contactId"] == 1
    assert match["city"] == "Bensheim"


def test_contact_lookup_requires_number(client):
    response = client.get("/api/contacts/lookup")

    assert response.status_code == 422


def test_contact_lookup_batch(client, service):
    service.directory.replace([("062518275", DirectoryContact(name="Firma Kurz", contact_id=10))])

    response = client.post(
        "/api/contacts/lookup-batch", json={"numbers": ["0625182755", "01705664234", ""]}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["directory_ready"] is True
    assert set(data["results"]) == {"0625182755", "01705664234"}
    assert data["results"]["0625182755"]["fuzzy"] == 1
    assert data["results"]["01705664234"]["city"] == "Mobil"
    assert data["results"]["01705664234"]["contactId"] == 0
