"""
Live traffic feed client.

Fetches every aircraft within a radius of a point from an airplanes.live
style REST API:

    GET https://api.airplanes.live/v2/point/{lat}/{lon}/{radius}

One request per call. Retries, backoff and rate limiting are deliberately
absent: the ingestion loop polls on a short fixed interval and a failed
poll simply leaves a gap in the observation log.
"""

import logging
from typing import Optional

import requests

from overhead.config import config
from overhead.errors import TransportError

logger = logging.getLogger(__name__)


class FeedClient:
    """
    Client for the point/radius endpoint of the traffic feed.

    Args:
        url_template: URL with {lat}, {lon} and {radius} placeholders
        timeout: Request timeout in seconds
        session: requests.Session to reuse (created if None)
    """

    def __init__(
        self,
        url_template: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.url_template = url_template or config.feed.url_template
        self.timeout = timeout or config.feed.timeout_seconds
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls) -> 'FeedClient':
        """Create client from application configuration."""
        return cls(
            url_template=config.feed.url_template,
            timeout=config.feed.timeout_seconds,
        )

    def build_url(self, lat: float, lon: float, radius: float) -> str:
        return self.url_template.format(lat=lat, lon=lon, radius=radius)

    def fetch(self, lat: float, lon: float, radius: float) -> bytes:
        """
        Fetch the raw snapshot body around a point.

        Raises:
            TransportError if the feed is unreachable or not HTTP 200
        """
        url = self.build_url(lat, lon, radius)
        logger.debug(f'Fetching snapshot: {url}')

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise TransportError(f'feed timeout after {self.timeout}s') from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f'error fetching data: {e}') from e

        if response.status_code != 200:
            raise TransportError(
                f'unexpected status code: {response.status_code}',
                status_code=response.status_code,
            )

        return response.content
