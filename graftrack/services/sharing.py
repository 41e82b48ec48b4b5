# path: graftrack-api/graftrack/services/sharing.py

"""Share links for a location. The ``/shared/<id>`` page resolves through the
public ``GET /api/locations/{id}``, so no owner is needed to open one."""

from __future__ import annotations

from urllib.parse import quote, urlencode

from pydantic import BaseModel

from graftrack.models.entity_models import Location


class ShareLink(BaseModel):
    url: str
    text: str
    twitter_url: str
    facebook_url: str
    whatsapp_url: str


def share_url(location: Location, base_url: str) -> str:
    return f"{base_url.rstrip('/')}/shared/{quote(location.id, safe='')}"


def share_text(location: Location) -> str:
    return f"Check out this graffiti spot: {location.title} in {location.city or 'the city'}"


def share_link(location: Location, base_url: str) -> ShareLink:
    url = share_url(location, base_url)
    text = share_text(location)
    return ShareLink(
        url=url,
        text=text,
        twitter_url="https://twitter.com/intent/tweet?" + urlencode({"text": text, "url": url}),
        facebook_url="https://www.facebook.com/sharer/sharer.php?" + urlencode({"u": url}),
        whatsapp_url="https://wa.me/?" + urlencode({"text": f"{text} {url}"}),
    )
