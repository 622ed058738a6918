"""Headless-browser scraping strategy.

Fallback for pages whose content only exists after client-side rendering,
or whose origin rejects plain HTTP clients. Pages are loaded in undetected
headless Chrome, given a bounded chance to render, and their visible text
is collected by a script evaluated inside the page.

The Selenium API is blocking, so each render runs in a worker thread via
asyncio.to_thread(). Every attempt owns its own driver and quits it on
every exit path.
"""

import asyncio
import os
import time
from typing import Any, Callable, List

import logfire
from selenium.common.exceptions import TimeoutException
from selenium.webdriver.support.ui import WebDriverWait

from src.constants import (
    BROWSER_CONTENT_WAIT_TIMEOUT_SECONDS,
    BROWSER_EXTRA_HEADERS,
    BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
    BROWSER_USER_AGENT,
    BROWSER_WINDOW_SIZE,
    EXCLUDED_ROLES,
    INTERACTIVE_SELECTORS,
    MIN_CONTENT_BLOCK_CHARS,
    MIN_READY_CONTENT_CHARS,
    MIN_TEXT_NODE_CHARS,
    MIN_TEXT_NODE_WORDS,
    RENDER_CONTENT_SELECTORS,
    RENDER_MAX_ATTEMPTS,
    RENDER_RETRY_DELAY_SECONDS,
    SECTION_CONTAINER_SELECTOR,
    SECTION_KEYWORDS,
)
from src.models.scraper_models import PageMetadata, ScrapeResult
from src.services.page_fetcher import validate_url
from src.services.scrape_errors import NoContentFoundError, RenderError

# True once the document has loaded and some selector holds real text.
# arguments: [selectors, minChars]
_CONTENT_READY_SCRIPT = """
const selectors = arguments[0];
const minChars = arguments[1];
if (document.readyState !== 'complete') return false;
return selectors.some((selector) => {
  const el = document.querySelector(selector);
  return !!el && (el.textContent || '').trim().length > minChars;
});
"""

# Returns {metadata, blocks, interactive}. arguments: [config]
_EXTRACT_SCRIPT = """
const cfg = arguments[0];
const chromeSelector = cfg.excludedRoles.map((r) => `[role="${r}"]`).join(',');

function isHidden(el) {
  const style = window.getComputedStyle(el);
  return style.display === 'none' || style.visibility === 'hidden';
}

function isExcluded(el) {
  return isHidden(el) || (chromeSelector && el.closest(chromeSelector) !== null);
}

function visibleText(el) {
  if (isExcluded(el)) return '';
  return (el.innerText || el.textContent || '').trim();
}

function firstMeta(selectors) {
  for (const selector of selectors) {
    const el = document.querySelector(selector);
    const value = el && el.getAttribute('content');
    if (value && value.trim()) return value.trim();
  }
  return '';
}

const metadata = {
  title: (document.title || '').trim(),
  description: firstMeta([
    'meta[name="description"]',
    'meta[property="og:description"]',
    'meta[name="twitter:description"]',
  ]),
  contentType: firstMeta(['meta[property="og:type"]']),
  imageUrl: firstMeta([
    'meta[property="og:image"]',
    'meta[name="twitter:image"]',
    'meta[itemprop="image"]',
  ]),
};

const blocks = new Set();
for (const selector of cfg.contentSelectors) {
  for (const el of document.querySelectorAll(selector)) {
    const text = visibleText(el);
    if (text.length > cfg.minBlockChars) blocks.add(text);
  }
}

const interactive = new Set();
for (const selector of cfg.interactiveSelectors) {
  for (const el of document.querySelectorAll(selector)) {
    if (isExcluded(el)) continue;
    const text = (el.textContent || '').trim();
    if (text && cfg.sectionKeywords.some((k) => text.includes(k))) {
      const section = el.closest(cfg.sectionContainer);
      if (section) {
        const sectionText = visibleText(section);
        if (sectionText) blocks.add(sectionText);
      }
    }
    const tag = el.tagName.toLowerCase();
    if (tag === 'input' || tag === 'select' || tag === 'textarea') {
      const label = el.getAttribute('placeholder') || el.getAttribute('aria-label');
      if (label && label.trim()) interactive.add('Input: ' + label.trim().slice(0, 100));
    } else if (tag === 'button' || el.getAttribute('role') === 'button') {
      const label = text || el.getAttribute('aria-label') || '';
      if (label.trim()) interactive.add('Button: ' + label.trim().slice(0, 100));
    }
  }
}

if (blocks.size === 0 && document.body) {
  const walker = document.createTreeWalker(document.body, NodeFilter.SHOW_TEXT, {
    acceptNode: (node) => {
      const parent = node.parentElement;
      if (!parent) return NodeFilter.FILTER_REJECT;
      for (let el = parent; el; el = el.parentElement) {
        if (isHidden(el)) return NodeFilter.FILTER_REJECT;
      }
      const text = (node.textContent || '').trim();
      if (text.length < cfg.minNodeChars || text.split(/\\s+/).length < cfg.minNodeWords) {
        return NodeFilter.FILTER_REJECT;
      }
      return NodeFilter.FILTER_ACCEPT;
    },
  });
  while (walker.nextNode()) {
    blocks.add(walker.currentNode.textContent.trim());
  }
}

return {metadata, blocks: Array.from(blocks), interactive: Array.from(interactive)};
"""


def build_chrome_driver() -> Any:
    """Launch undetected headless Chrome configured like a desktop browser.

    Set CHROME_VERSION_MAIN to your Chrome major version (e.g. 143) if you see
    "This version of ChromeDriver only supports Chrome version X".
    """
    import undetected_chromedriver as uc

    width, height = BROWSER_WINDOW_SIZE
    options = uc.ChromeOptions()
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-setuid-sandbox")
    options.add_argument("--disable-dev-shm-usage")
    options.add_argument(f"--window-size={width},{height}")
    options.add_argument(f"--user-agent={BROWSER_USER_AGENT}")

    kwargs: dict[str, Any] = {"options": options, "headless": True}
    version_main = os.environ.get("CHROME_VERSION_MAIN")
    if version_main is not None:
        try:
            kwargs["version_main"] = int(version_main)
        except ValueError:
            pass
    return uc.Chrome(**kwargs)


class RenderStrategy:
    """Render pages in headless Chrome and extract their visible text."""

    name = "render"

    def __init__(
        self,
        page_load_timeout: float = BROWSER_PAGE_LOAD_TIMEOUT_SECONDS,
        content_wait_timeout: float = BROWSER_CONTENT_WAIT_TIMEOUT_SECONDS,
        max_attempts: int = RENDER_MAX_ATTEMPTS,
        retry_delay: float = RENDER_RETRY_DELAY_SECONDS,
        driver_factory: Callable[[], Any] | None = None,
    ):
        """Initialize the render strategy.

        Args:
            page_load_timeout: Navigation timeout in seconds
            content_wait_timeout: How long to wait for rendered content
            max_attempts: Attempts before raising RenderError
            retry_delay: Fixed pause between attempts in seconds
            driver_factory: Creates a WebDriver (defaults to build_chrome_driver)
        """
        self._page_load_timeout = page_load_timeout
        self._content_wait_timeout = content_wait_timeout
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._driver_factory = driver_factory or build_chrome_driver
        self._script_config = {
            "contentSelectors": list(RENDER_CONTENT_SELECTORS),
            "interactiveSelectors": list(INTERACTIVE_SELECTORS),
            "sectionKeywords": list(SECTION_KEYWORDS),
            "sectionContainer": SECTION_CONTAINER_SELECTOR,
            "excludedRoles": list(EXCLUDED_ROLES),
            "minBlockChars": MIN_CONTENT_BLOCK_CHARS,
            "minNodeChars": MIN_TEXT_NODE_CHARS,
            "minNodeWords": MIN_TEXT_NODE_WORDS,
        }

    async def try_extract(self, url: str) -> ScrapeResult:
        url = validate_url(url)
        start_time = time.time()
        last_error: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                payload = await asyncio.to_thread(self._render_sync, url)
                break
            except Exception as e:
                last_error = e
                logfire.warning(
                    "Render attempt failed",
                    url=url,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay)
        else:
            raise RenderError(url, last_error) from last_error

        result = self._to_result(url, payload or {})
        logfire.info(
            "Page fetched via browser",
            url=url,
            attempts=attempt,
            content_length=len(result.main_content),
            response_time_ms=(time.time() - start_time) * 1000,
        )
        return result

    def _render_sync(self, url: str) -> dict:
        driver = self._driver_factory()
        try:
            driver.set_page_load_timeout(self._page_load_timeout)
            driver.execute_cdp_cmd("Network.enable", {})
            driver.execute_cdp_cmd(
                "Network.setExtraHTTPHeaders", {"headers": BROWSER_EXTRA_HEADERS}
            )
            driver.get(url)
            self._wait_for_content(driver, url)
            return driver.execute_script(_EXTRACT_SCRIPT, self._script_config)
        finally:
            driver.quit()

    def _wait_for_content(self, driver: Any, url: str) -> None:
        """Give client-rendered pages a bounded chance to fill a content container."""
        selectors = list(RENDER_CONTENT_SELECTORS)
        try:
            WebDriverWait(driver, self._content_wait_timeout, poll_frequency=0.25).until(
                lambda d: d.execute_script(
                    _CONTENT_READY_SCRIPT, selectors, MIN_READY_CONTENT_CHARS
                )
            )
        except TimeoutException:
            logfire.info("Timeout waiting for content selectors", url=url)

    def _to_result(self, url: str, payload: dict) -> ScrapeResult:
        raw_meta = payload.get("metadata") or {}
        blocks: List[str] = [b.strip() for b in payload.get("blocks") or [] if b and b.strip()]
        if not blocks:
            raise NoContentFoundError(url, self.name)

        interactive: List[str] = list(payload.get("interactive") or [])
        if interactive:
            blocks.append("\n".join(interactive))

        return ScrapeResult(
            url=url,
            metadata=PageMetadata(
                title=raw_meta.get("title") or "",
                description=raw_meta.get("description") or None,
                content_type=raw_meta.get("contentType") or None,
                image_url=raw_meta.get("imageUrl") or None,
            ),
            main_content="\n\n".join(blocks),
            fetched_at=time.time(),
            strategy=self.name,
        )
