from __future__ import annotations

from functools import lru_cache
from typing import Any

import requests
from requests.adapters import HTTPAdapter

from .errors import UpstreamTransportError
from .logging_setup import get_correlation_id, get_logger
from .settings import settings

logger = get_logger("http")


def default_timeout() -> tuple[int, int]:
    return (settings.HTTP_CONNECT_TIMEOUT, settings.HTTP_READ_TIMEOUT)


def _build_session() -> requests.Session:
    s = requests.Session()
    s.headers.update(
        {
            "User-Agent": "lg-fulfillment/HTTPClient (+https://example.invalid)",
            "Accept": "application/json, */*;q=0.1",
        }
    )
    # sem retry: qualquer falha é terminal para a unidade de trabalho
    adapter = HTTPAdapter(max_retries=0, pool_connections=10, pool_maxsize=10)
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    return s


@lru_cache(maxsize=1)
def _get_cached_session() -> requests.Session:
    return _build_session()


def get_session(session: requests.Session | None = None) -> requests.Session:
    return session or _get_cached_session()


def _request_with_handling(method: str, url: str, **kwargs: Any) -> requests.Response:
    timeout = kwargs.pop("timeout", None) or default_timeout()
    session: requests.Session = kwargs.pop("session", None) or get_session()

    # adiciona correlation-id
    headers = kwargs.pop("headers", {}) or {}
    headers = {**session.headers, **headers}
    headers.setdefault("X-Correlation-ID", get_correlation_id())
    kwargs["headers"] = headers

    try:
        res = session.request(method, url, timeout=timeout, **kwargs)
        res.raise_for_status()
        logger.info(
            "HTTP %s OK",
            method,
            extra={"url": url, "status": res.status_code, "cid": get_correlation_id()},
        )
        return res

    except requests.Timeout as e:
        logger.warning("HTTP %s timeout", method, extra={"url": url})
        raise UpstreamTransportError(
            f"Timeout ao chamar {url}",
            code="HTTP_TIMEOUT",
            cause=e,
            details=str(e),
            data={"url": url},
        ) from e

    except requests.HTTPError as e:
        status = getattr(e.response, "status_code", None)
        logger.error(
            "HTTP %s error",
            method,
            extra={"url": url, "status": status, "cid": get_correlation_id()},
        )
        raise UpstreamTransportError(
            f"Falha HTTP {status} ao chamar {url}",
            code="HTTP_ERROR",
            cause=e,
            details=getattr(e.response, "text", None),
            data={"url": url, "status": status},
        ) from e

    except requests.RequestException as e:
        logger.error(
            "HTTP %s request exception",
            method,
            extra={"url": url, "cid": get_correlation_id()},
        )
        raise UpstreamTransportError(
            f"Erro de rede ao chamar {url}",
            code="HTTP_REQUEST_ERROR",
            cause=e,
            details=str(e),
            data={"url": url},
        ) from e


def http_post(url: str, **kwargs: Any) -> requests.Response:
    return _request_with_handling("POST", url, **kwargs)
