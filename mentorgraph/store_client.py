"""
Thin HTTP client for the entity store's query and subscribe surface.

- fetch_network(): GET /api/network, retried with exponential backoff on
  timeouts, dropped connections and retryable statuses, behind a circuit
  breaker.
- stream(): GET /api/subscribe (server-sent events); each `data:` message is
  published on a PostingChannel. A broken stream is published as a channel
  failure and not reconnected.
"""

import json
import threading
from typing import Iterable, Iterator, Optional

import requests

from .exceptions import CircuitOpenError, StoreError, StoreUnavailableError
from .filters import NetworkFilter
from .live import PostingChannel
from .logger import StructuredLogger, get_logger
from .models import FetchResult
from .retry import CircuitBreaker, RetryError, exponential_backoff, should_retry_http_status
from .schema import parse_fetch_response

NETWORK_PATH = "/api/network"
SUBSCRIBE_PATH = "/api/subscribe"


class TransientStatusError(Exception):
    """Store answered with a status worth retrying."""
    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Store returned retryable status {status_code}")


def iter_sse_data(lines: Iterable) -> Iterator[str]:
    """
    Yield the data payload of each server-sent event.

    Multi-line data fields are joined with newlines; comments and other
    fields (event, id, retry) are ignored.
    """
    buffer: list[str] = []
    for line in lines:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        line = line.rstrip("\r")
        if line == "":
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith(":"):
            continue
        name, _, value = line.partition(":")
        if name == "data":
            buffer.append(value[1:] if value.startswith(" ") else value)
    if buffer:
        yield "\n".join(buffer)


class EntityStoreClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        breaker: Optional[CircuitBreaker] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or get_logger()
        self._stream_response: Optional[requests.Response] = None
        self.breaker = breaker or CircuitBreaker(
            failure_threshold=5, recovery_timeout=30.0, expected_exception=RetryError
        )
        self._get_with_retry = exponential_backoff(
            max_retries=max_retries,
            base_delay=base_delay,
            exceptions=(
                requests.exceptions.Timeout,
                requests.exceptions.ConnectionError,
                TransientStatusError,
            ),
            on_retry=self._log_retry,
        )(self._get)

    def _log_retry(self, attempt: int, error: Exception, delay: float):
        self.logger.warning("Store request failed, retrying", attempt=attempt, delay=delay, error=str(error))

    def _get(self, url: str, params: dict):
        resp = self.session.get(url, params=params, timeout=self.timeout)
        if should_retry_http_status(resp.status_code):
            raise TransientStatusError(resp.status_code)
        return resp

    def fetch_network(
        self, network_filter: Optional[NetworkFilter] = None, space_id: Optional[str] = None
    ) -> FetchResult:
        """
        Fetch the full ask/offer/profile collection.

        Only the store-side parameters of the filter are sent; the rest is
        applied by the viewing session.

        Raises:
            StoreUnavailableError: After retries are exhausted or while the circuit is open
            StoreError: On a non-retryable error status or an unusable body
        """
        params = (network_filter or NetworkFilter()).store_params(space_id)
        url = self.base_url + NETWORK_PATH
        try:
            resp = self.breaker.call(self._get_with_retry, url, params)
        except CircuitOpenError:
            self.logger.record_fetch(success=False)
            self.logger.warning("Store fetch blocked by open circuit", url=url)
            raise
        except RetryError as e:
            self.logger.record_fetch(success=False)
            self.logger.error("Store unreachable", url=url, error=str(e))
            raise StoreUnavailableError(f"Entity store unreachable: {e}") from e

        if resp.status_code >= 400:
            self.logger.record_fetch(success=False)
            self.logger.error("Store fetch failed", url=url, status=resp.status_code)
            raise StoreError(f"Entity store fetch failed ({resp.status_code}): {url}")

        try:
            payload = resp.json()
        except ValueError as e:
            self.logger.record_fetch(success=False)
            raise StoreError(f"Entity store returned invalid JSON: {e}") from e

        result = parse_fetch_response(payload, logger=self.logger)
        self.logger.record_fetch(success=True)
        self.logger.info(
            "Fetched network",
            asks=len(result.asks),
            offers=len(result.offers),
            profiles=len(result.profiles),
            skipped=result.skipped,
            params=params,
        )
        return result

    def stream(self, channel: PostingChannel, stop: Optional[threading.Event] = None) -> None:
        """
        Read the push stream until it ends, breaks, or `stop` is set.

        Every outcome other than `stop` ends with channel.fail(); no retry.
        Call close_stream() after setting `stop` to unblock a reader that is
        waiting on an idle stream.
        """
        url = self.base_url + SUBSCRIBE_PATH
        try:
            resp = self.session.get(
                url,
                stream=True,
                timeout=(self.timeout, None),
                headers={"Accept": "text/event-stream"},
            )
        except requests.exceptions.RequestException as e:
            self.logger.error("Could not open push stream", url=url, error=str(e))
            channel.fail(e)
            return

        self._stream_response = resp
        try:
            if stop is not None and stop.is_set():
                return
            if resp.status_code >= 400:
                channel.fail(f"Push stream rejected ({resp.status_code})")
                return
            self.logger.info("Push stream opened", url=url)
            for data in iter_sse_data(resp.iter_lines(decode_unicode=True)):
                if stop is not None and stop.is_set():
                    return
                try:
                    payload = json.loads(data)
                except ValueError:
                    self.logger.record_skipped_item("invalid_json")
                    self.logger.warning("Skipping non-JSON push", data=data[:200])
                    continue
                channel.publish(payload)
        except requests.exceptions.RequestException as e:
            if stop is not None and stop.is_set():
                return
            self.logger.error("Push stream broke", url=url, error=str(e))
            channel.fail(e)
            return
        finally:
            self._stream_response = None
            resp.close()

        if stop is None or not stop.is_set():
            channel.fail("Push stream closed by store")

    def close_stream(self) -> None:
        """Close the open push stream, if any."""
        resp = self._stream_response
        if resp is not None:
            resp.close()
