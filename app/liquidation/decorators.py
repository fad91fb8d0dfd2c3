"""
Decorators and API request utilities.
"""

import functools
import logging
import time
from typing import Any, Callable, Dict, Optional

import requests


def retry_request(logger: logging.Logger, max_retries: int = 3, delay: int = 10) -> Callable:
    """
    Decorator to retry a function on RequestException.

    Args:
        logger: Logger instance for retry logging.
        max_retries: Maximum number of retry attempts.
        delay: Delay between retries in seconds.

    Returns:
        Decorated function with retry logic.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(1, max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except requests.RequestException as e:
                    logger.error(
                        "Error in API request, waiting %s seconds before retrying. Attempt %s/%s",
                        delay, attempt, max_retries,
                    )
                    logger.error("Error: %s", e)

                    if attempt == max_retries:
                        logger.error("Failed after %s attempts.", max_retries)
                        return None

                    time.sleep(delay)

        return wrapper

    return decorator


@retry_request(logging.getLogger("liquidation_bot"), delay=2)
def post_api_request(url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Optional[Dict[str, Any]]:
    """
    Make a JSON POST API request with retry functionality.

    Used for the Odos router API and the GraphQL subgraph.

    Args:
        url: The URL for the API request.
        payload: JSON body.
        headers: Optional headers for the request.

    Returns:
        JSON response if successful, None otherwise.
    """
    response = requests.post(
        url, json=payload, headers=headers or {"Content-Type": "application/json"}, timeout=15
    )
    response.raise_for_status()
    return response.json()
