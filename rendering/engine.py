"""
FILE DESCRIPTION: Playwright-backed page renderer for the listing crawl.
KEY FUNCTIONS/CLASSES: PageRenderer
"""

from typing import Optional

from playwright.sync_api import sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from harvester.core import NAVIGATION_TIMEOUT_MS, MANAGED_PROXY_URL, LIVE_VIEW_SLOW_MO, logger
from harvester.errors import RenderTimeout, NavigationError
from harvester.identity import Identity
from rendering.models import RenderedPage
from rendering.policy import is_resource_allowed

# Masks the most common automation signal before any page script runs
HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"


class PageRenderer:
    """
    FLOW: Lazily launches Chromium in the identity's headless mode (relaunched only when that mode
    changes) -> For each URL opens a fresh context with the chosen identity -> Installs the
    resource-blocking route and webdriver mask -> Navigates with a fixed timeout -> Returns the rendered DOM.
    """

    def __init__(self, live_view: bool = False, use_managed_proxy: bool = False,
                 navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS, playwright_factory=sync_playwright):
        self._live_view = live_view
        self._use_managed_proxy = use_managed_proxy
        self._navigation_timeout_ms = navigation_timeout_ms
        self._playwright_factory = playwright_factory
        self._playwright = None
        self._browser = None
        self._browser_headless = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _launch_options(self, headless: bool):
        options = {
            # Live view keeps the window visible and slowed down for an operator to watch
            "headless": headless and not self._live_view,
            "args": ["--disable-gpu", "--no-sandbox", "--disable-dev-shm-usage"],
        }
        if self._live_view:
            options["slow_mo"] = LIVE_VIEW_SLOW_MO
        if self._use_managed_proxy:
            if MANAGED_PROXY_URL:
                options["proxy"] = {"server": MANAGED_PROXY_URL}
            else:
                logger.warning("Managed proxy requested but MANAGED_PROXY_URL is not set; launching without proxy",
                               extra={'context': 'renderer'})
        return options

    def _ensure_browser(self, headless: bool):
        if self._browser is not None:
            if self._browser_headless == headless:
                return self._browser
            self._close_browser()
        if self._playwright is None:
            self._playwright = self._playwright_factory().start()
        self._browser = self._playwright.chromium.launch(**self._launch_options(headless))
        self._browser_headless = headless
        logger.info(f"Browser launched (headless={headless}, live_view={self._live_view})",
                    extra={'context': 'renderer'})
        return self._browser

    @staticmethod
    def _route_intercept(route):
        if is_resource_allowed(route.request.resource_type):
            return route.continue_()
        return route.abort()

    def render(self, url: str, identity: Identity) -> RenderedPage:
        """
        Raises RenderTimeout when navigation exceeds the timeout,
        NavigationError for any other browser failure or an error status on the document.
        """
        try:
            browser = self._ensure_browser(identity.headless)
        except PlaywrightError as e:
            raise NavigationError(f"Browser launch failed: {e}") from e

        proxy: Optional[dict] = {"server": identity.proxy_url} if identity.proxy_url else None
        try:
            context = browser.new_context(user_agent=identity.user_agent, proxy=proxy)
        except PlaywrightError as e:
            raise NavigationError(f"Browser context creation failed: {e}") from e

        try:
            context.add_init_script(HIDE_WEBDRIVER_SCRIPT)
            page = context.new_page()
            page.route("**/*", self._route_intercept)

            try:
                response = page.goto(url, timeout=self._navigation_timeout_ms)
            except PlaywrightTimeoutError as e:
                raise RenderTimeout(f"Navigation to {url} timed out after {self._navigation_timeout_ms} ms") from e
            except PlaywrightError as e:
                raise NavigationError(f"Navigation to {url} failed: {e}") from e

            status_code = response.status if response else 0
            if status_code >= 400:
                raise NavigationError(f"Navigation to {url} returned HTTP {status_code}")

            try:
                html = page.content()
            except PlaywrightError as e:
                raise NavigationError(f"Reading DOM of {url} failed: {e}") from e

            return RenderedPage(url=url, final_url=page.url, html=html, status_code=status_code)
        finally:
            try:
                context.close()
            except PlaywrightError as e:
                logger.debug(f"Context close failed for {url}: {e}", extra={'context': 'renderer'})

    def _close_browser(self):
        try:
            self._browser.close()
        except PlaywrightError as e:
            logger.debug(f"Browser close failed: {e}", extra={'context': 'renderer'})
        self._browser = None
        self._browser_headless = None

    def close(self):
        if self._browser is not None:
            self._close_browser()
        if self._playwright is not None:
            self._playwright.stop()
            self._playwright = None
