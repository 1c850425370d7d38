"""Shared HTTP helpers for catalog, probe and reconciler lookups.

Lookups use the short configured timeout and normalize every failure to a
library error; no retries happen here.
"""

import json
import logging
from typing import Any

import requests

from .config import AcquisitionConfig
from .exceptions import AcquisitionError
from .exceptions import NetworkError
from .protocols import HttpSession

logger = logging.getLogger(__name__)


def build_session(config: AcquisitionConfig) -> requests.Session:
    """Create a session carrying the configured User-Agent."""
    session = requests.Session()
    session.headers["User-Agent"] = config.user_agent
    return session


def get_text(
    session: HttpSession,
    url: str,
    *,
    timeout: float | None,
    context: str,
    error_cls: type[AcquisitionError] = NetworkError,
) -> str:
    """GET a URL and return its body.

    Raises:
        error_cls: On transport failure or non-2xx status
    """
    logger.debug(f"GET {url} ({context})")
    try:
        response = session.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise error_cls(f"Error loading {context} from {url}: {e}", context={"url": url}) from e

    if not 200 <= response.status_code < 300:
        raise error_cls(
            f"Error loading {context} from {url} (status code: {response.status_code})",
            context={"url": url, "status_code": response.status_code},
        )
    return response.text


def get_json(
    session: HttpSession,
    url: str,
    *,
    timeout: float | None,
    context: str,
    error_cls: type[AcquisitionError] = NetworkError,
) -> Any:
    """GET a URL and decode its JSON body.

    Raises:
        error_cls: On transport failure, non-2xx status or undecodable JSON
    """
    text = get_text(session, url, timeout=timeout, context=context, error_cls=error_cls)
    try:
        return json.loads(text)
    except ValueError as e:
        raise error_cls(f"Error JSON decoding {context} from {url}: {e}", context={"url": url}) from e
