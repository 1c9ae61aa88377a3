"""
HTTP transport configuration, JSON fetching and the polling primitive.
"""
import base64
import logging
import random
import threading
import time
from typing import Any, Callable, Dict, Optional, Protocol, Union

import requests
from pydantic import BaseModel, Field
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .. import errors

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:26657"
DEFAULT_TIMEOUT = 60


class ConnectionInfo(BaseModel):
    """Connection settings for a JSON-RPC node."""
    url: str = DEFAULT_URL
    user: Optional[str] = None
    password: Optional[str] = None
    allow_insecure: bool = Field(False, alias="allowInsecure")
    timeout: float = DEFAULT_TIMEOUT
    headers: Dict[str, Union[str, int]] = Field(default_factory=dict)
    polling_interval: Optional[float] = Field(None, alias="pollingInterval")
    retry_count: int = Field(3, alias="retryCount")

    class Config:
        populate_by_name = True


class OnceBlockable(Protocol):
    def once(self, event_name: str, listener: Callable[..., Any]) -> Any:
        ...

    def remove_listener(self, event_name: str, listener: Callable[..., Any]) -> Any:
        ...


class _PollAgain:
    def __repr__(self):
        return "POLL_AGAIN"


# Returned by a poll function to request another attempt
POLL_AGAIN = _PollAgain()


def create_session(retry_count: int = 3) -> requests.Session:
    """Create an HTTP session that retries transient server failures."""
    session = requests.Session()
    retries = Retry(
        total=retry_count,
        backoff_factor=0.5,
        status_forcelist=[500, 502, 503, 504],
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
        connect=retry_count,
        read=retry_count,
        other=retry_count
    )
    session.mount("http://", HTTPAdapter(max_retries=retries))
    session.mount("https://", HTTPAdapter(max_retries=retries))
    return session


def fetch_json(
    connection: Union[str, ConnectionInfo],
    json: Optional[str] = None,
    process_func: Optional[Callable[[Any], Any]] = None,
    session: Optional[requests.Session] = None
) -> Any:
    """
    Fetch a JSON document, POSTing ``json`` when given.

    Args:
        connection: URL or ConnectionInfo
        json: Request body, already serialized
        process_func: Optional function applied to the decoded payload
        session: HTTP session to use (a plain one is created otherwise)

    Returns:
        The decoded (and processed) payload

    Raises:
        ValidationError: MISSING_ARGUMENT without a URL, INVALID_ARGUMENT for
            basic authentication over plain http
        InfrastructureError: CONNECTION_ERROR when the request fails
        ProtocolError: UNEXPECTED_RESULT for a non-200 or non-JSON response
    """
    headers: Dict[str, str] = {}
    timeout: float = 120

    if isinstance(connection, str):
        url = connection
    else:
        if not connection.url:
            errors.throw_error("missing URL", errors.MISSING_ARGUMENT, {"arg": "url"})
        url = connection.url

        if connection.timeout and connection.timeout > 0:
            timeout = connection.timeout

        for key, value in connection.headers.items():
            headers[key] = str(value)

        if connection.user is not None and connection.password is not None:
            if not url.startswith("https:") and not connection.allow_insecure:
                errors.throw_error(
                    "basic authentication requires a secure https url",
                    errors.INVALID_ARGUMENT,
                    {"arg": "url", "url": url, "user": connection.user, "password": "[REDACTED]"}
                )
            authorization = f"{connection.user}:{connection.password}".encode("utf-8")
            headers["Authorization"] = "Basic " + base64.b64encode(authorization).decode("ascii")

    http = session or requests.Session()
    try:
        if json:
            headers.setdefault("Content-Type", "application/json")
            response = http.post(url, data=json.encode("utf-8"), headers=headers, timeout=timeout)
        else:
            response = http.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as e:
        logger.debug(f"Request to {url} failed: {e}")
        errors.throw_error("connection error", errors.CONNECTION_ERROR, {"url": url, "error": str(e)})

    if response.status_code != 200:
        errors.throw_error(
            f"invalid response - {response.status_code}", errors.UNEXPECTED_RESULT,
            {"url": url, "statusCode": response.status_code, "responseText": response.text, "request": json}
        )

    try:
        result = response.json()
    except ValueError:
        errors.throw_error(
            "invalid json response", errors.UNEXPECTED_RESULT,
            {"url": url, "statusCode": response.status_code, "responseText": response.text, "request": json}
        )

    if process_func:
        try:
            result = process_func(result)
        except Exception as error:
            error.url = url
            error.body = json
            error.response_text = response.text
            raise

    return result


def _wait_for_block(once_block: OnceBlockable, timeout: Optional[float]) -> None:
    arrived = threading.Event()

    def on_block(*args):
        arrived.set()

    once_block.once("block", on_block)
    if not arrived.wait(timeout):
        once_block.remove_listener("block", on_block)


def poll(
    func: Callable[[], Any],
    timeout: Optional[float] = None,
    floor: float = 0,
    ceiling: float = 10.0,
    interval: float = 0.25,
    once_block: Optional[OnceBlockable] = None,
    fast_retry: Optional[float] = None
) -> Any:
    """
    Call ``func`` until it returns something other than ``POLL_AGAIN``.

    Between attempts it waits for the next ``block`` event of ``once_block``
    when given, otherwise it backs off exponentially with jitter, clamped to
    ``[floor, ceiling]`` seconds. ``fast_retry`` makes the first retry happen
    after that many seconds instead.

    Args:
        func: Poll function; returns POLL_AGAIN to keep polling, any other
            value (including None) to finish, raises to abort
        timeout: Overall limit in seconds

    Returns:
        The first value returned by ``func`` that is not POLL_AGAIN

    Raises:
        MxwTimeoutError: TIMEOUT once ``timeout`` has elapsed
    """
    deadline = time.monotonic() + timeout if timeout else None

    def remaining() -> Optional[float]:
        if deadline is None:
            return None
        left = deadline - time.monotonic()
        if left <= 0:
            errors.throw_error("timeout", errors.TIMEOUT, {"timeout": timeout})
        return left

    attempt = 0
    fast_timeout = fast_retry

    while True:
        remaining()
        result = func()

        # A result that lands after the deadline is discarded
        left = remaining()

        if result is not POLL_AGAIN:
            return result

        if once_block is not None:
            _wait_for_block(once_block, left)
            continue

        attempt += 1
        delay = interval * int(random.random() * (2 ** attempt))
        if delay < floor:
            delay = floor
        if delay > ceiling:
            delay = ceiling

        # Fast retry means we quickly try again the first time
        if fast_timeout:
            attempt -= 1
            delay = fast_timeout
            fast_timeout = None

        if left is not None:
            delay = min(delay, left)
        time.sleep(delay)
