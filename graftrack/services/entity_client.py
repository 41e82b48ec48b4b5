# path: graftrack-api/graftrack/services/entity_client.py

"""HTTP client for the entity store and the upload-URL issuer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

import httpx
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from graftrack.config import settings
from graftrack.errors import NetworkFailure, NotFound, ValidationError
from graftrack.models.entity_models import (
    Location,
    LocationCreate,
    LocationUpdate,
    Prospect,
    ProspectCreate,
    UploadURLResponse,
)


OWNER_HEADER = "X-User-Id"


def _field_errors(resp: httpx.Response) -> Dict[str, str]:
    try:
        detail = resp.json().get("detail")
    except ValueError:
        return {}
    if isinstance(detail, str):
        return {"__all__": detail}
    out: Dict[str, str] = {}
    for err in detail or []:
        loc = [str(p) for p in err.get("loc", []) if p != "body"]
        out[".".join(loc) or "__all__"] = err.get("msg", "invalid")
    return out


def _parse(model, resp: httpx.Response, many: bool = False):
    """Validate a 2xx body; a malformed one is a failed call, not a crash."""
    try:
        body = resp.json()
        if many:
            if not isinstance(body, list):
                raise ValueError(f"expected a list, got {type(body).__name__}")
            return [model.model_validate(item) for item in body]
        return model.model_validate(body)
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"Malformed response from {resp.request.url}: {e}")
        raise NetworkFailure(f"malformed response from {resp.request.url}") from e


class EntityStoreClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        owner_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {OWNER_HEADER: owner_id} if owner_id else {}
        self.owner_id = owner_id
        self._http = httpx.Client(
            base_url=base_url or settings.api_base_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.http_timeout_s,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "EntityStoreClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {url} timed out: {e}")
            raise NetworkFailure(f"{method} {url} timed out") from e
        except httpx.HTTPError as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise NetworkFailure(f"{method} {url} failed: {e}") from e

        if resp.status_code == 404:
            raise NotFound(f"{url} not found")
        if resp.status_code in (400, 422):
            raise ValidationError(f"{method} {url} rejected", field_errors=_field_errors(resp))
        if resp.is_error:
            logger.warning(f"{method} {url} returned {resp.status_code}")
            raise NetworkFailure(f"{method} {url} returned {resp.status_code}")
        return resp

    # -- locations ---------------------------------------------------------

    def list_locations(self) -> List[Location]:
        resp = self._send("GET", "/api/locations")
        return _parse(Location, resp, many=True)

    def get_location(self, location_id: str) -> Location:
        resp = self._send("GET", f"/api/locations/{location_id}")
        return _parse(Location, resp)

    def create_location(self, payload: LocationCreate) -> Location:
        resp = self._send("POST", "/api/locations", json=payload.model_dump(mode="json"))
        return _parse(Location, resp)

    def update_location(self, location_id: str, patch: LocationUpdate) -> Location:
        body = patch.model_dump(mode="json", exclude_unset=True)
        resp = self._send("PUT", f"/api/locations/{location_id}", json=body)
        return _parse(Location, resp)

    def delete_location(self, location_id: str) -> None:
        self._send("DELETE", f"/api/locations/{location_id}")

    # -- prospects ---------------------------------------------------------

    def list_prospects(self) -> List[Prospect]:
        resp = self._send("GET", "/api/prospects")
        return _parse(Prospect, resp, many=True)

    def create_prospect(self, payload: ProspectCreate) -> Prospect:
        resp = self._send("POST", "/api/prospects", json=payload.model_dump(mode="json"))
        return _parse(Prospect, resp)

    def delete_prospect(self, prospect_id: str) -> None:
        self._send("DELETE", f"/api/prospects/{prospect_id}")

    # -- uploads -----------------------------------------------------------

    def request_upload_url(self) -> str:
        resp = self._send("POST", "/api/objects/upload")
        return _parse(UploadURLResponse, resp).upload_url

    def upload_photo(self, data: Union[bytes, bytearray], content_type: str = "image/jpeg") -> str:
        """Push one photo to storage and return the URL to attach to the entity.

        The upload URL is opaque to us; any failure of the transfer itself is
        reported as a retryable upload failure.
        """
        upload_url = self.request_upload_url()
        try:
            self._send("PUT", upload_url, content=bytes(data), headers={"Content-Type": content_type})
        except (NotFound, ValidationError) as e:
            raise NetworkFailure(f"upload rejected: {e}", notice="Upload failed, retry") from e
        except NetworkFailure as e:
            raise NetworkFailure(str(e), notice="Upload failed, retry") from e
        # Query string carries the one-time signature; the server strips it.
        return upload_url
