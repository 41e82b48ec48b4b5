# path: graftrack-api/graftrack/services/object_storage.py

"""Photo storage boundary: single-use upload URLs and entity paths.

Binary data never passes through this service. Clients PUT straight to the
bucket URL handed out here; entities then store the bucket-independent
``/objects/uploads/<id>`` path.
"""

from __future__ import annotations

import hashlib
import hmac
import time
import uuid
from typing import Optional
from urllib.parse import urlencode, urlsplit

from loguru import logger


ENTITY_PREFIX = "/objects/uploads/"


class ObjectStorageService:
    def __init__(self, bucket_url: str, secret: str, ttl_s: int = 900) -> None:
        self._bucket_url = bucket_url.rstrip("/")
        self._secret = secret.encode("utf-8")
        self._ttl_s = ttl_s

    def _sign(self, object_id: str, expires: int) -> str:
        msg = f"PUT\n{object_id}\n{expires}".encode("utf-8")
        return hmac.new(self._secret, msg, hashlib.sha256).hexdigest()

    def get_upload_url(self, now: Optional[float] = None) -> str:
        object_id = str(uuid.uuid4())
        expires = int((now if now is not None else time.time()) + self._ttl_s)
        query = urlencode({"expires": expires, "signature": self._sign(object_id, expires)})
        logger.debug(f"Issued upload URL for {object_id}")
        return f"{self._bucket_url}/uploads/{object_id}?{query}"

    def normalize_object_path(self, url: str) -> str:
        """Rewrite a bucket upload URL to its entity path; leave others alone."""
        if not url.startswith(self._bucket_url + "/"):
            return url
        path = urlsplit(url).path
        object_id = path.rstrip("/").rsplit("/", 1)[-1]
        if not object_id:
            return url
        return f"{ENTITY_PREFIX}{object_id}"
