"""Tests for the HTTP entity store client, driven through httpx.MockTransport."""

import json

import httpx
import pytest

from graftrack.errors import NetworkFailure, NotFound, ValidationError
from graftrack.models.entity_models import GeoPoint, LocationCreate, LocationUpdate, ProspectCreate
from graftrack.services.entity_client import OWNER_HEADER, EntityStoreClient


pytestmark = pytest.mark.unit

BASE = "http://api.test"
UPLOAD_URL = "https://storage.example.com/graftrack-uploads/uploads/abc?expires=1&signature=s"

LOCATION_JSON = {
    "id": "loc-1",
    "owner_id": "alice",
    "latitude": 40.0,
    "longitude": -74.0,
    "title": "Test Tag",
    "type": "Tag",
    "tags": [],
    "photos": [],
    "photo_headings": None,
    "created_at": "2026-10-18T12:00:00Z",
}


def make_client(handler, owner_id="alice"):
    return EntityStoreClient(BASE, owner_id=owner_id, timeout=1.0, transport=httpx.MockTransport(handler))


class TestRequests:
    def test_list_sends_owner_header(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[LOCATION_JSON])

        with make_client(handler) as client:
            locations = client.list_locations()

        assert locations[0].id == "loc-1"
        assert locations[0].created_at.tzinfo is not None
        assert seen[0].headers[OWNER_HEADER] == "alice"
        assert seen[0].url.path == "/api/locations"

    def test_no_owner_header_when_anonymous(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        make_client(handler, owner_id=None).list_prospects()
        assert OWNER_HEADER not in seen[0].headers

    def test_create_location_body(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json=LOCATION_JSON)

        payload = LocationCreate(position=GeoPoint(latitude=40.0, longitude=-74.0), title="Test Tag", client_token="t1")
        loc = make_client(handler).create_location(payload)

        assert loc.title == "Test Tag"
        assert bodies[0]["latitude"] == 40.0
        assert bodies[0]["type"] == "Tag"
        assert bodies[0]["client_token"] == "t1"

    def test_update_sends_only_set_fields(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=dict(LOCATION_JSON, title="Renamed"))

        loc = make_client(handler).update_location("loc-1", LocationUpdate(title="Renamed"))
        assert bodies == [{"title": "Renamed"}]
        assert loc.title == "Renamed"

    def test_create_prospect(self):
        def handler(request):
            body = json.loads(request.content)
            return httpx.Response(
                201,
                json={"id": "p-1", "latitude": body["latitude"], "longitude": body["longitude"], "created_at": "2026-10-18T12:00:00Z"},
            )

        prospect = make_client(handler).create_prospect(ProspectCreate(latitude=40.1, longitude=-74.1))
        assert prospect.id == "p-1"
        assert prospect.notes is None


class TestErrorMapping:
    def test_404_is_not_found(self):
        client = make_client(lambda request: httpx.Response(404, json={"detail": "Location not found"}))
        with pytest.raises(NotFound) as exc:
            client.delete_location("gone")
        assert exc.value.notice == "Already removed"

    def test_422_carries_field_errors(self):
        detail = [{"loc": ["body", "title"], "msg": "String should have at least 1 character", "type": "string_too_short"}]
        client = make_client(lambda request: httpx.Response(422, json={"detail": detail}))
        payload = LocationCreate(latitude=0.0, longitude=0.0, title="x")
        with pytest.raises(ValidationError) as exc:
            client.create_location(payload)
        assert "title" in exc.value.field_errors

    def test_400_string_detail(self):
        client = make_client(lambda request: httpx.Response(400, json={"detail": "photo_headings length 2 must equal photos length 1"}))
        with pytest.raises(ValidationError) as exc:
            client.update_location("loc-1", LocationUpdate(photo_headings=[1.0, 2.0]))
        assert "__all__" in exc.value.field_errors

    def test_500_is_network_failure(self):
        client = make_client(lambda request: httpx.Response(503))
        with pytest.raises(NetworkFailure) as exc:
            client.list_locations()
        assert exc.value.retryable

    def test_transport_error_is_network_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkFailure):
            make_client(handler).delete_prospect("p-1")

    def test_malformed_success_body_is_network_failure(self):
        client = make_client(lambda request: httpx.Response(201, json={"id": "loc-1"}))
        payload = LocationCreate(latitude=0.0, longitude=0.0, title="x")
        with pytest.raises(NetworkFailure):
            client.create_location(payload)

    def test_non_json_body_is_network_failure(self):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>oops</html>"))
        with pytest.raises(NetworkFailure):
            client.get_location("loc-1")

    def test_list_endpoint_returning_object(self):
        client = make_client(lambda request: httpx.Response(200, json=LOCATION_JSON))
        with pytest.raises(NetworkFailure):
            client.list_locations()

    def test_timeout_is_network_failure(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(NetworkFailure):
            make_client(handler).list_prospects()


class TestUpload:
    def test_upload_flow(self):
        seen = []

        def handler(request):
            seen.append(request)
            if request.url.path == "/api/objects/upload":
                return httpx.Response(200, json={"upload_url": UPLOAD_URL})
            return httpx.Response(200)

        url = make_client(handler).upload_photo(b"jpeg-bytes", "image/jpeg")

        assert url == UPLOAD_URL
        assert seen[1].method == "PUT"
        assert seen[1].url.host == "storage.example.com"
        assert seen[1].content == b"jpeg-bytes"
        assert seen[1].headers["Content-Type"] == "image/jpeg"

    @pytest.mark.parametrize("status", [403, 404, 500])
    def test_upload_failure_is_retryable(self, status):
        def handler(request):
            if request.url.path == "/api/objects/upload":
                return httpx.Response(200, json={"upload_url": UPLOAD_URL})
            return httpx.Response(status)

        with pytest.raises(NetworkFailure) as exc:
            make_client(handler).upload_photo(b"data")
        assert exc.value.notice == "Upload failed, retry"

    def test_upload_url_request_failure(self):
        client = make_client(lambda request: httpx.Response(500))
        with pytest.raises(NetworkFailure):
            client.request_upload_url()
