"""HTTP download operations: interface, httpx implementation and dry-run wrapper."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

import httpx

CHUNK_SIZE = 1024 * 1024


class HttpClient(ABC):
    """Abstract interface for fetching artifacts over HTTP."""

    @abstractmethod
    def download(self, url: str, destination: Path, *, timeout: float) -> int:
        """Download url to destination.

        The destination only appears once the transfer is complete; no partial
        file is ever left under the destination name.

        Args:
            url: Remote locator
            destination: Final local path (parent directory must exist)
            timeout: Seconds allowed between network events

        Returns:
            Number of bytes written

        Raises:
            RuntimeError: If the transfer fails for any reason
        """
        ...


class RealHttpClient(HttpClient):
    """Production implementation streaming with httpx."""

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    def download(self, url: str, destination: Path, *, timeout: float) -> int:
        partial = destination.with_name(destination.name + ".part")
        written = 0
        try:
            with (
                httpx.Client(
                    transport=self._transport, follow_redirects=True, timeout=timeout
                ) as client,
                client.stream("GET", url) as response,
            ):
                response.raise_for_status()
                with partial.open("wb") as f:
                    for chunk in response.iter_bytes(chunk_size=CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
        except (httpx.HTTPError, OSError) as e:
            partial.unlink(missing_ok=True)
            raise RuntimeError(f"Failed to download {url}: {e}") from e
        partial.replace(destination)
        return written


class DryRunHttpClient(HttpClient):
    """No-op wrapper that logs downloads instead of performing them."""

    def __init__(self, wrapped: HttpClient, logger: logging.Logger | logging.LoggerAdapter) -> None:
        self._wrapped = wrapped
        self._logger = logger

    def download(self, url: str, destination: Path, *, timeout: float) -> int:
        self._logger.info("[preview] would download %s -> %s", url, destination)
        return 0
