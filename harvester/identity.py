"""
Network identity selection.
Chooses the user agent and proxy for each render attempt from the static crawl configuration.
"""

import random
from dataclasses import dataclass
from typing import Optional, Sequence

from harvester.config import ProxyConfig
from harvester.core import USER_AGENTS, DEFAULT_USER_AGENT, logger


@dataclass(frozen=True)
class Identity:
    user_agent: str
    # None means "no explicit proxy": either none at all, or the managed proxy
    # that the browser launch resolves on its own
    proxy_url: Optional[str]
    headless: bool = True


def pick_proxy(pool: Sequence[str], rng: random.Random) -> Optional[str]:
    """Uniform pick from an explicit pool; None for an empty pool."""
    if not pool:
        return None
    return pool[rng.randrange(len(pool))]


class IdentityManager:

    def __init__(self, proxy: ProxyConfig, headless: bool = True, user_agents: Sequence[str] = USER_AGENTS,
                 rng: Optional[random.Random] = None):
        self._proxy = proxy
        self._headless = headless
        self._user_agents = tuple(user_agents)
        self._rng = rng or random.Random()

    def choose(self) -> Identity:
        """
        FLOW: Draws a user agent from the rotating pool -> Resolves the proxy
        (managed -> None, static pool -> random pick, nothing configured -> None).
        Any failure degrades to no proxy with the default user agent and headless mode.
        """
        try:
            user_agent = self._user_agents[self._rng.randrange(len(self._user_agents))]
            if self._proxy.use_managed_proxy:
                proxy_url = None
            else:
                proxy_url = pick_proxy(self._proxy.proxy_urls, self._rng)
            return Identity(user_agent=user_agent, proxy_url=proxy_url, headless=self._headless)
        except Exception as e:
            logger.warning(f"Identity selection failed, falling back to defaults: {e}", extra={'context': 'identity'})
            return Identity(user_agent=DEFAULT_USER_AGENT, proxy_url=None, headless=True)
