"""HTTP client with retries, a shared circuit breaker and per-attempt timeouts.

Every call goes through three layers, outermost first: a tenacity retry
loop, the dependency's circuit breaker, and the ``requests`` timeout of a
single attempt. A ``CircuitOpenError`` raised by the breaker is retryable,
so a short break can be ridden out inside one call's retry budget.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any, Callable

import requests
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from kinoreview.common.constants import RETRYABLE_STATUS_CODES, USER_AGENT
from kinoreview.common.errors import TransportError
from kinoreview.common.logging import get_logger, log_event


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 10.0


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 3
    multiplier: float = 2.0
    max_wait: float = 30.0


@dataclass(frozen=True)
class BreakerConfig:
    failure_threshold: int = 5
    reset_timeout: float = 10.0


class HttpRequestError(TransportError):
    error_code = "HTTP_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RetryableHttpError(HttpRequestError):
    pass


class InvalidPayloadError(TransportError):
    """Response body that is not JSON, even though the status was a success."""

    error_code = "INVALID_PAYLOAD"

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CircuitOpenError(TransportError):
    error_code = "CIRCUIT_OPEN"


class CircuitBreaker:
    """Consecutive-failure breaker shared by all calls to one remote dependency."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        name: str,
        config: BreakerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self.config = config or BreakerConfig()
        self.clock = clock
        self.logger = logger or get_logger("http")
        self.failures = 0
        self.opened_at: float | None = None
        self._state = self.CLOSED
        self._trial_in_flight = False
        self.lock = threading.Lock()

    @property
    def state(self) -> str:
        with self.lock:
            if self._state == self.OPEN and self._break_elapsed():
                return self.HALF_OPEN
            return self._state

    def _break_elapsed(self) -> bool:
        return self.opened_at is not None and self.clock() - self.opened_at >= self.config.reset_timeout

    def before_call(self) -> None:
        with self.lock:
            if self._state == self.CLOSED:
                return
            if self._state == self.OPEN:
                if not self._break_elapsed():
                    raise CircuitOpenError(f"Circuit for {self.name} is open")
                self._state = self.HALF_OPEN
                self._trial_in_flight = False
            if self._trial_in_flight:
                raise CircuitOpenError(f"Circuit for {self.name} is half-open; trial call in flight")
            self._trial_in_flight = True

    def record_success(self) -> None:
        with self.lock:
            was_closed = self._state == self.CLOSED
            self.failures = 0
            self.opened_at = None
            self._state = self.CLOSED
            self._trial_in_flight = False
        if not was_closed:
            log_event(self.logger, f"circuit for {self.name} reset", source=self.name, event="CIRCUIT_RESET", status="ok")

    def record_failure(self, cause: str) -> None:
        with self.lock:
            self.failures += 1
            if self._state == self.HALF_OPEN or self.failures >= self.config.failure_threshold:
                opened = True
                self._state = self.OPEN
                self.opened_at = self.clock()
                self._trial_in_flight = False
            else:
                opened = False
            failures = self.failures
        if opened:
            log_event(
                self.logger,
                f"circuit for {self.name} opened for {self.config.reset_timeout}s after {failures} failures: {cause}",
                level=logging.WARNING,
                source=self.name,
                event="CIRCUIT_OPEN",
                status="error",
            )


class HttpClient:
    """Long-lived JSON client for one remote dependency.

    Build one instance per dependency at startup and share it; the circuit
    breaker only protects the dependency if its failure count survives
    between calls.
    """

    def __init__(
        self,
        name: str,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        breaker: CircuitBreaker | None = None,
        default_headers: dict[str, str] | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.logger = logger or get_logger("http")
        self.breaker = breaker or CircuitBreaker(name, logger=self.logger)
        self.default_headers = dict(default_headers or {})
        self.session = session or requests.Session()
        self.sleep = sleep

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _headers(self, headers: dict[str, str] | None) -> dict[str, str]:
        out = {"User-Agent": USER_AGENT, "Accept": "application/json"}
        out.update(self.default_headers)
        if headers:
            out.update(headers)
        return out

    def _raise_for_status_or_retry(self, response: requests.Response, url: str) -> None:
        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status {status} from {url}", status_code=status)
        if status >= 400:
            raise HttpRequestError(
                f"HTTP status {status} from {url}",
                status_code=status,
                body=getattr(response, "text", None),
            )

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.breaker.before_call()
        try:
            response = self.session.request(method=method, url=url, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as exc:
            self.breaker.record_failure(type(exc).__name__)
            raise RetryableHttpError(f"Network failure calling {url}: {exc}") from exc
        except requests.RequestException as exc:
            self.breaker.record_failure(type(exc).__name__)
            raise HttpRequestError(f"Request to {url} failed: {exc}") from exc
        except BaseException as exc:
            self.breaker.record_failure(type(exc).__name__)
            raise

        if response.status_code >= 400:
            self.breaker.record_failure(f"HTTP {response.status_code}")
        else:
            self.breaker.record_success()
        return response

    def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Any:
        req_timeout = timeout or self.timeout
        response = self._send(
            method,
            url,
            params=params,
            json=json_body,
            headers=self._headers(headers),
            timeout=(req_timeout.connect, req_timeout.read),
        )
        self._raise_for_status_or_retry(response, url)

        try:
            return response.json()
        except ValueError as exc:
            raise InvalidPayloadError(f"Invalid JSON payload from {url}", status_code=response.status_code) from exc

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        log_event(
            self.logger,
            f"retry {retry_state.attempt_number} for {self.name} after {wait:.0f}s: {exc}",
            level=logging.WARNING,
            source=self.name,
            event="HTTP_RETRY",
            status="retry",
            attempt=retry_state.attempt_number,
            error_code=getattr(exc, "error_code", None),
        )

    def request_json(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Any:
        @retry(
            stop=stop_after_attempt(self.retry.max_retries + 1),
            wait=wait_exponential(multiplier=self.retry.multiplier, max=self.retry.max_wait),
            retry=retry_if_exception_type((RetryableHttpError, CircuitOpenError)),
            before_sleep=self._log_retry,
            sleep=self.sleep,
            reraise=True,
        )
        def _wrapped() -> Any:
            return self._request_json(
                method,
                url,
                params=params,
                json_body=json_body,
                headers=headers,
                timeout=timeout,
            )

        return _wrapped()

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Any:
        return self.request_json("GET", url, params=params, headers=headers, timeout=timeout)

    def post_json(
        self,
        url: str,
        payload: Any,
        *,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
    ) -> Any:
        merged = {"Content-Type": "application/json"}
        if headers:
            merged.update(headers)
        return self.request_json("POST", url, json_body=payload, headers=merged, timeout=timeout)
