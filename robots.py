"""
robots.txt politeness gate.

Advisory and fail-open: any problem fetching or reading robots.txt means
the target is allowed.
"""

import logging
import urllib.robotparser as urobot
from urllib.parse import urlparse

import httpx

from config import Settings

logger = logging.getLogger(__name__)


class RobotsGate:
    def __init__(self, settings: Settings, client: httpx.AsyncClient):
        self.settings = settings
        self.client = client

    async def allowed(self, url: str) -> bool:
        """Return False only when robots.txt was read and disallows our user agent."""
        try:
            parsed = urlparse(url)
            if not parsed.scheme or not parsed.netloc:
                return True
            robots_url = f"{parsed.scheme}://{parsed.netloc}/robots.txt"
            resp = await self.client.get(
                robots_url,
                headers={"User-Agent": self.settings.user_agent},
                timeout=self.settings.robots_timeout,
                follow_redirects=True,
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError):
            logger.debug("robots.txt unavailable for %s, allowing", url)
            return True

        if not resp.is_success:
            return True

        rp = urobot.RobotFileParser(robots_url)
        rp.parse(resp.text.splitlines())
        return rp.can_fetch(self.settings.user_agent, url)
