from typing import Any, Dict, Mapping, cast

import httpx

from crossroute.configuration.config import settings
from crossroute.logging.logger import get_logger

log = get_logger(__name__)


def _build_socket_headers(api_key: str | None = None) -> Dict[str, str]:
    """
    Construct aggregator HTTP headers, including the API key when configured.
    """
    headers: Dict[str, str] = {"Accept": "application/json"}
    key = api_key if api_key is not None else settings.SOCKET_API_KEY
    if isinstance(key, str) and key.strip():
        headers["API-KEY"] = key.strip()
    return headers


def _build_timeout() -> httpx.Timeout:
    return httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS, connect=6.0)


def _unwrap_result(payload: object, url: str) -> Dict[str, Any]:
    """Return the `result` node of a `{success, result}` envelope."""
    if not isinstance(payload, Mapping):
        raise ValueError(f"Unexpected Socket payload type for {url}: {type(payload).__name__}")
    if payload.get("success") is False:
        raise ValueError(f"Socket reported failure for {url}: {payload.get('message') or payload.get('error')}")
    result = payload.get("result")
    if not isinstance(result, Mapping):
        raise ValueError(f"Socket payload for {url} has no result object")
    return cast(Dict[str, Any], result)


async def _http_get_json(client: httpx.AsyncClient, url: str, params: Mapping[str, object]) -> Dict[str, Any]:
    """
    Perform a GET request and return the unwrapped `result` node.

    Raises:
        httpx.HTTPStatusError on non-2xx responses.
        httpx.RequestError on connection/timeout errors.
    """
    try:
        response = await client.get(url, params=dict(params))
        response.raise_for_status()
        return _unwrap_result(response.json(), url)
    except httpx.HTTPStatusError as exc:
        log.warning(
            "[SOCKET][HTTP][GET][FAIL] url=%s status=%s body=%s",
            url,
            exc.response.status_code if exc.response is not None else "n/a",
            exc.response.text if exc.response is not None else "n/a",
        )
        raise
    except httpx.RequestError as exc:
        log.warning("[SOCKET][HTTP][GET][ERROR] url=%s error=%s", url, str(exc))
        raise


async def _http_post_json(client: httpx.AsyncClient, url: str, body: Mapping[str, object]) -> Dict[str, Any]:
    """POST a JSON body and return the unwrapped `result` node. Same error contract as `_http_get_json`."""
    try:
        response = await client.post(url, json=dict(body))
        response.raise_for_status()
        return _unwrap_result(response.json(), url)
    except httpx.HTTPStatusError as exc:
        log.warning(
            "[SOCKET][HTTP][POST][FAIL] url=%s status=%s body=%s",
            url,
            exc.response.status_code if exc.response is not None else "n/a",
            exc.response.text if exc.response is not None else "n/a",
        )
        raise
    except httpx.RequestError as exc:
        log.warning("[SOCKET][HTTP][POST][ERROR] url=%s error=%s", url, str(exc))
        raise
