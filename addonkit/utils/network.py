"""Archive downloads over HTTP(S)."""

from __future__ import annotations

import logging
import ssl
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30  # seconds
CHUNK_SIZE = 64 * 1024


class NetworkError(Exception):
    """Error downloading a file."""

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class DownloadCancelledError(NetworkError):
    """A download was cancelled before it completed."""


@dataclass(frozen=True)
class DownloadProgress:
    """Download progress.

    percent is between 0 and 100; speed is a human readable rate.
    """

    percent: int
    speed: str


DownloadCallback = Callable[[DownloadProgress], None]


def format_speed(bytes_per_second: float) -> str:
    """Format a transfer rate, e.g. ``1.5 MB/s``."""
    value = bytes_per_second
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.1f} {unit}/s"
        value /= 1024
    return f"{value:.1f} GB/s"


def download_file(
    url: str,
    dest: Path,
    on_progress: DownloadCallback | None = None,
    cancel_event: threading.Event | None = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> Path:
    """Stream a URL to a local file.

    The cancellation event is checked between chunks; a cancelled download
    leaves no partial file behind.

    Args:
        url: URL to download
        dest: Destination file path
        on_progress: Optional progress callback
        cancel_event: Optional event that aborts the download when set
        timeout: Socket timeout in seconds

    Returns:
        Path to the downloaded file

    Raises:
        DownloadCancelledError: If the cancel event is set mid-download
        NetworkError: If the request fails
    """
    logger.info("Downloading %s", url)
    dest.parent.mkdir(parents=True, exist_ok=True)
    request = Request(url, headers={"User-Agent": "addonkit"})
    context = ssl.create_default_context()
    started = time.monotonic()
    received = 0
    last_percent = -1

    try:
        with urlopen(request, timeout=timeout, context=context) as response, open(
            dest, "wb"
        ) as out:
            total = int(response.headers.get("Content-Length") or 0)
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    raise DownloadCancelledError(f"Download cancelled: {url}", url=url)
                chunk = response.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
                received += len(chunk)
                if on_progress is None:
                    continue
                percent = int(received * 100 / total) if total else 0
                if percent != last_percent:
                    last_percent = percent
                    elapsed = max(time.monotonic() - started, 1e-6)
                    on_progress(DownloadProgress(percent, format_speed(received / elapsed)))
    except DownloadCancelledError:
        dest.unlink(missing_ok=True)
        raise
    except HTTPError as e:
        dest.unlink(missing_ok=True)
        logger.error("HTTP error %d: %s for %s", e.code, e.reason, url)
        raise NetworkError(f"HTTP {e.code}: {e.reason} for {url}", url=url, status_code=e.code) from e
    except URLError as e:
        dest.unlink(missing_ok=True)
        logger.error("Failed to connect to %s: %s", url, e.reason)
        raise NetworkError(f"Failed to connect to {url}: {e.reason}", url=url) from e
    except TimeoutError as e:
        dest.unlink(missing_ok=True)
        logger.error("Request timed out for %s", url)
        raise NetworkError(f"Request timed out for {url}", url=url) from e

    if on_progress is not None and last_percent != 100:
        elapsed = max(time.monotonic() - started, 1e-6)
        on_progress(DownloadProgress(100, format_speed(received / elapsed)))
    logger.debug("Downloaded %d bytes to %s", received, dest)
    return dest
