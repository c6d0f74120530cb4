# assetfinish/geo/refresh_geoip.py
"""
Refresh MaxMind GeoLite2 databases in the background.

Runs on its own thread, outside the compression worker pool. Failures are
logged and kept on `.error`; they never fail the asset run.
"""
import io
import logging
import os
import tarfile
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional, Sequence

import requests

logger = logging.getLogger(__name__)

DOWNLOAD_URL = "https://download.maxmind.com/app/geoip_download"
DEFAULT_EDITIONS = ("GeoLite2-City", "GeoLite2-ASN")
USER_AGENT = "assetfinish/1.0 (+geo refresh) Requests"


# Robust GET with retries/backoff
def http_get(url, params=None, timeout=60, max_retries=3, backoff=1.5):
    attempt = 0
    while True:
        try:
            r = requests.get(url, params=params, timeout=timeout, headers={"User-Agent": USER_AGENT})
            r.raise_for_status()
            return r
        except requests.RequestException:
            attempt += 1
            if attempt >= max_retries:
                raise
            time.sleep(backoff ** attempt)


def extract_mmdb(payload: bytes, edition: str) -> bytes:
    with tarfile.open(fileobj=io.BytesIO(payload), mode="r:gz") as tar:
        for member in tar.getmembers():
            if member.isfile() and member.name.endswith(f"{edition}.mmdb"):
                return tar.extractfile(member).read()
    raise ValueError(f"{edition}.mmdb not found in archive")


def write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}-", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


class GeoDatabaseRefresh:
    def __init__(
        self,
        dest_dir: Path,
        license_key: str,
        editions: Sequence[str] = DEFAULT_EDITIONS,
        backoff: float = 1.5,
    ):
        self.dest_dir = Path(dest_dir)
        self.license_key = license_key
        self.editions = tuple(editions)
        self.backoff = backoff
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    def download(self, edition: str) -> Path:
        params = {"edition_id": edition, "license_key": self.license_key, "suffix": "tar.gz"}
        r = http_get(DOWNLOAD_URL, params=params, backoff=self.backoff)
        target = self.dest_dir / f"{edition}.mmdb"
        write_atomic(target, extract_mmdb(r.content, edition))
        logger.info("geo database refreshed: %s", target)
        return target

    def _run(self) -> None:
        try:
            for edition in self.editions:
                self.download(edition)
        except Exception as e:
            self.error = e
            logger.exception("geo database refresh failed")

    def start(self) -> "GeoDatabaseRefresh":
        self._thread = threading.Thread(target=self._run, name="geo-refresh", daemon=True)
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)
