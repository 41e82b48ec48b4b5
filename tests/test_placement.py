"""Tests for the placement workflow state machine and its forms."""

import httpx
import pytest

from graftrack.errors import ValidationError
from graftrack.models.entity_models import GeoPoint, LocationType
from graftrack.models.map_models import PlacementMode, PlacementState
from graftrack.services.entity_client import EntityStoreClient
from graftrack.services.placement import LocationForm, PlacementWorkflow, ProspectForm


pytestmark = pytest.mark.unit


@pytest.fixture
def notices():
    return []


@pytest.fixture
def saved():
    return []


@pytest.fixture
def workflow(fake_store, notices, saved):
    return PlacementWorkflow(
        fake_store,
        on_saved=lambda mode, entity: saved.append((mode, entity)),
        on_notice=notices.append,
        heading_provider=lambda: 123.0,
    )


def point(lat, lng):
    return GeoPoint(latitude=lat, longitude=lng)


class TestToggle:
    def test_toggle_twice_returns_to_idle(self, workflow, notices):
        assert workflow.toggle_add() == PlacementState.ARMED
        assert workflow.armed
        assert workflow.toggle_add() == PlacementState.IDLE
        assert workflow.pending is None
        assert notices[-1].title == "Cancelled"

    def test_toggle_while_pending_cancels(self, workflow, fake_store):
        workflow.toggle_add()
        workflow.handle_tap(point(1.0, 2.0))
        workflow.toggle_add()
        assert workflow.state == PlacementState.IDLE
        assert workflow.form is None
        assert fake_store.create_location_calls == []

    def test_tap_ignored_when_idle(self, workflow):
        assert workflow.handle_tap(point(1.0, 2.0)) is False
        assert workflow.pending is None

    def test_second_tap_does_not_replace_pending(self, workflow):
        workflow.toggle_add()
        workflow.handle_tap(point(1.0, 2.0))
        assert workflow.handle_tap(point(3.0, 4.0)) is False
        assert workflow.pending.position == point(1.0, 2.0)

    def test_change_callback(self, fake_store):
        states = []
        wf = PlacementWorkflow(fake_store, on_change=lambda w: states.append(w.state))
        wf.toggle_add()
        wf.handle_tap(point(0.0, 0.0))
        wf.cancel()
        assert states == [PlacementState.ARMED, PlacementState.PENDING, PlacementState.IDLE]


class TestModeSelection:
    def test_mode_switch_while_armed(self, workflow):
        workflow.toggle_add()
        assert workflow.select_mode(PlacementMode.PROSPECT)
        workflow.handle_tap(point(1.0, 2.0))
        assert isinstance(workflow.form, ProspectForm)
        assert workflow.pending.mode == PlacementMode.PROSPECT

    def test_mode_locked_after_tap(self, workflow):
        workflow.toggle_add(PlacementMode.LOCATION)
        workflow.handle_tap(point(1.0, 2.0))
        assert workflow.select_mode(PlacementMode.PROSPECT) is False
        assert workflow.mode == PlacementMode.LOCATION
        assert isinstance(workflow.form, LocationForm)

    def test_mode_locked_when_idle(self, workflow):
        assert workflow.select_mode(PlacementMode.PROSPECT) is False


class TestSubmitLocation:
    def test_location_scenario(self, workflow, fake_store, notices, saved):
        workflow.toggle_add(PlacementMode.LOCATION)
        workflow.handle_tap(point(40.0, -74.0))
        workflow.form.title = "Test Tag"

        loc = workflow.submit()

        assert loc is not None
        assert (loc.latitude, loc.longitude) == (40.0, -74.0)
        assert loc.title == "Test Tag"
        assert loc.type == LocationType.TAG
        assert len(fake_store.create_location_calls) == 1
        assert fake_store.create_location_calls[0].position == point(40.0, -74.0)
        assert workflow.state == PlacementState.IDLE
        assert workflow.pending is None
        assert saved == [(PlacementMode.LOCATION, loc)]
        assert notices[-1].description == "Location saved successfully!"
        assert fake_store.locations == [loc]

    def test_blank_title_stays_pending(self, workflow, fake_store, notices):
        workflow.toggle_add()
        workflow.handle_tap(point(40.0, -74.0))
        workflow.form.title = "   "
        assert workflow.submit() is None
        assert workflow.state == PlacementState.PENDING
        assert "title" in workflow.form.errors
        assert notices[-1].title == "Title Required"
        assert fake_store.create_location_calls == []

    def test_network_failure_then_retry(self, workflow, fake_store, notices):
        workflow.toggle_add()
        workflow.handle_tap(point(40.0, -74.0))
        workflow.form.title = "Retry me"
        token = workflow.form.client_token
        fake_store.fail_next_create = True

        assert workflow.submit() is None
        assert workflow.state == PlacementState.PENDING
        assert not workflow.submitting
        assert notices[-1].description == "Failed to save location. Please try again."

        assert workflow.submit() is not None
        assert workflow.state == PlacementState.IDLE
        # Same token on retry, so the server can collapse duplicates.
        assert [c.client_token for c in fake_store.create_location_calls] == [token, token]

    def test_server_validation_error_stays_pending(self, workflow, fake_store):
        def reject(payload):
            raise ValidationError("bad", field_errors={"latitude": "out of range"})

        fake_store.create_location = reject
        workflow.toggle_add()
        workflow.handle_tap(point(40.0, -74.0))
        workflow.form.title = "x"
        assert workflow.submit() is None
        assert workflow.state == PlacementState.PENDING
        assert workflow.form.errors == {"latitude": "out of range"}

    def test_unexpected_error_does_not_lock_the_form(self, workflow, fake_store):
        original = fake_store.create_location

        def explode(payload):
            raise ValueError("unexpected")

        fake_store.create_location = explode
        workflow.toggle_add()
        workflow.handle_tap(point(40.0, -74.0))
        workflow.form.title = "x"
        with pytest.raises(ValueError):
            workflow.submit()
        assert not workflow.submitting
        assert workflow.state == PlacementState.PENDING

        fake_store.create_location = original
        assert workflow.submit() is not None
        assert workflow.state == PlacementState.IDLE

    def test_malformed_server_reply_stays_pending(self, notices):
        transport = httpx.MockTransport(lambda request: httpx.Response(201, json={"unexpected": True}))
        client = EntityStoreClient("http://api.test", transport=transport)
        wf = PlacementWorkflow(client, on_notice=notices.append)
        wf.toggle_add()
        wf.handle_tap(point(40.0, -74.0))
        wf.form.title = "x"
        assert wf.submit() is None
        assert wf.state == PlacementState.PENDING
        assert not wf.submitting
        assert notices[-1].description == "Failed to save location. Please try again."

    def test_submit_when_idle_is_noop(self, workflow, fake_store):
        assert workflow.submit() is None
        assert fake_store.create_location_calls == []

    def test_tags_in_payload(self, workflow):
        workflow.toggle_add()
        workflow.handle_tap(point(1.0, 1.0))
        form = workflow.form
        form.title = "t"
        form.toggle_tag("Mural")
        form.toggle_tag("Stencil")
        form.toggle_tag("Mural")
        assert form.add_custom_tag(" rooftop ")
        assert not form.add_custom_tag("rooftop")
        loc = workflow.submit()
        assert loc.tags == ["Stencil", "rooftop"]


class TestSubmitProspect:
    def test_prospect_scenario(self, workflow, fake_store, notices, saved):
        workflow.toggle_add(PlacementMode.PROSPECT)
        workflow.handle_tap(point(40.1, -74.1))
        workflow.form.notes = ""

        prospect = workflow.submit()

        assert prospect is not None
        assert (prospect.latitude, prospect.longitude) == (40.1, -74.1)
        assert prospect.notes is None
        assert workflow.state == PlacementState.IDLE
        assert saved[0][0] == PlacementMode.PROSPECT
        assert notices[-1].description == "Prospect saved successfully!"

    def test_prospect_network_failure(self, workflow, fake_store, notices):
        fake_store.fail_next_create = True
        workflow.toggle_add(PlacementMode.PROSPECT)
        workflow.handle_tap(point(40.1, -74.1))
        assert workflow.submit() is None
        assert workflow.state == PlacementState.PENDING
        assert notices[-1].description == "Failed to save prospect. Please try again."


class TestCancel:
    def test_cancel_from_pending(self, workflow, fake_store):
        workflow.toggle_add()
        workflow.handle_tap(point(1.0, 2.0))
        workflow.form.title = "draft"
        workflow.cancel()
        assert workflow.state == PlacementState.IDLE
        assert workflow.form is None
        assert fake_store.create_location_calls == []

    def test_cancel_when_idle(self, workflow):
        workflow.cancel()
        assert workflow.state == PlacementState.IDLE


class TestPhotos:
    def test_attach_uses_current_heading_without_exif(self, workflow, fake_store):
        workflow.toggle_add()
        workflow.handle_tap(point(1.0, 2.0))
        assert workflow.attach_photo(b"not really a jpeg")
        assert workflow.form.photo_headings == [123.0]
        assert len(workflow.form.photos) == 1
        assert fake_store.uploads == [b"not really a jpeg"]

    def test_photos_and_headings_saved_together(self, workflow):
        workflow.toggle_add()
        workflow.handle_tap(point(1.0, 2.0))
        workflow.attach_photo(b"one")
        workflow.attach_photo(b"two")
        workflow.form.remove_photo(0)
        workflow.form.title = "with photo"
        loc = workflow.submit()
        assert len(loc.photos) == 1
        assert loc.photo_headings == [123.0]

    def test_upload_failure(self, workflow, fake_store, notices):
        fake_store.fail_uploads = True
        workflow.toggle_add()
        workflow.handle_tap(point(1.0, 2.0))
        assert workflow.attach_photo(b"data") is False
        assert workflow.form.photos == []
        assert workflow.state == PlacementState.PENDING
        assert notices[-1].description == "Upload failed, retry"

    def test_no_photos_on_prospects(self, workflow):
        workflow.toggle_add(PlacementMode.PROSPECT)
        workflow.handle_tap(point(1.0, 2.0))
        assert workflow.attach_photo(b"data") is False
