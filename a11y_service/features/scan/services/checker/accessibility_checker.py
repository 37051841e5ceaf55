"""
Accessibility Checker

Audits one page in Chrome with axe-core and returns typed findings
(error / warning / notice). The browser work is blocking, so the async
entry point hands it to a worker thread.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import urllib3
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service

from a11y_service.features.scan.services.checker.actions import run_actions
from a11y_service.features.scan.services.discovery.sitemap import basic_auth_header
from a11y_service.platform.config import settings
from a11y_service.platform.exceptions import CheckError

logger = logging.getLogger(__name__)

STANDARD_TAGS = {
    "WCAG2A": ["wcag2a", "wcag21a"],
    "WCAG2AA": ["wcag2a", "wcag21a", "wcag2aa", "wcag21aa"],
    "WCAG2AAA": ["wcag2a", "wcag21a", "wcag2aa", "wcag21aa", "wcag2aaa"],
    "Section508": ["section508"],
}

TYPE_CODES = {"error": 1, "warning": 2, "notice": 3}

RUN_AXE_SCRIPT = """
const context = arguments[0] || document;
const options = arguments[1];
const done = arguments[arguments.length - 1];
if (!window.axe) { return done({error: 'axe not injected'}); }
axe.run(context, options)
  .then(r => done({ok: true, r: {violations: r.violations, incomplete: r.incomplete}}))
  .catch(e => done({error: (e && e.message) || String(e)}));
"""


def _noop_log(message):
    pass


@dataclass
class CheckerConfig:
    """Everything one page check needs, built once per run from the task."""
    standard: str = settings.DEFAULT_STANDARD
    timeout: int = settings.DEFAULT_TIMEOUT_MS
    wait: int = settings.DEFAULT_WAIT_MS
    ignore: List[str] = field(default_factory=list)
    actions: List[str] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None
    scan_sitemap: bool = False
    hide_elements: Optional[str] = None
    include_warnings: bool = True
    include_notices: bool = True
    log: Callable[[str], None] = _noop_log

    def request_headers(self) -> Dict[str, str]:
        headers = dict(self.headers)
        if self.username and self.password and "Authorization" not in headers:
            headers["Authorization"] = basic_auth_header(self.username, self.password)
        return headers


def _finding_type(source: str, rule: Dict[str, Any]) -> str:
    if source == "incomplete":
        return "warning"
    tags = rule.get("tags") or []
    if "best-practice" in tags and not any(tag.startswith(("wcag", "section508")) for tag in tags):
        return "notice"
    return "error"


def map_axe_results(raw: Dict[str, Any], url: str, config: CheckerConfig) -> List[Dict[str, Any]]:
    """
    Flatten axe rule results into one finding per affected node.

    Ignored codes and ignored types (e.g. "notice") are dropped here.
    """
    ignored = {code.lower() for code in config.ignore}
    findings = []
    for source in ("violations", "incomplete"):
        for rule in raw.get(source) or []:
            finding_type = _finding_type(source, rule)
            if finding_type == "warning" and not config.include_warnings:
                continue
            if finding_type == "notice" and not config.include_notices:
                continue
            code = rule.get("id", "")
            if code.lower() in ignored or finding_type in ignored:
                continue
            for node in rule.get("nodes") or []:
                target = node.get("target") or []
                findings.append({
                    "code": code,
                    "type": finding_type,
                    "typeCode": TYPE_CODES[finding_type],
                    "message": f"{rule.get('help', '')} ({rule.get('helpUrl', '')})".strip(),
                    "context": node.get("html", ""),
                    "selector": " ".join(str(part) for part in target),
                    "runner": "axe",
                    "url": url,
                })
    return findings


def build_driver() -> webdriver.Chrome:
    chrome_options = Options()
    if settings.CHROME_HEADLESS:
        chrome_options.add_argument('--headless=new')
    for argument in settings.CHROME_ARGS:
        chrome_options.add_argument(argument)

    if settings.CHROMEDRIVER_PATH:
        driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
        return webdriver.Chrome(service=driver_service, options=chrome_options)
    return webdriver.Chrome(options=chrome_options)


class AccessibilityChecker:

    def __init__(self, driver_factory: Callable[[], Any] = build_driver, axe_script_path: str = None):
        self.driver_factory = driver_factory
        self.axe_script_path = axe_script_path or settings.AXE_SCRIPT_PATH
        self._axe_source = None

    def _axe(self) -> str:
        if self._axe_source is None:
            try:
                with open(self.axe_script_path, "r", encoding="utf-8") as f:
                    self._axe_source = f.read()
            except OSError as e:
                raise CheckError(f"Cannot read axe-core script at {self.axe_script_path}: {e}")
        return self._axe_source

    async def check(self, url: str, config: CheckerConfig) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self.check_sync, url, config)

    def check_sync(self, url: str, config: CheckerConfig) -> List[Dict[str, Any]]:
        log = config.log
        driver = None
        try:
            axe_source = self._axe()
            driver = self.driver_factory()
            driver.set_page_load_timeout(config.timeout / 1000)
            driver.set_script_timeout(config.timeout / 1000)

            headers = config.request_headers()
            if headers:
                driver.execute_cdp_cmd("Network.enable", {})
                driver.execute_cdp_cmd("Network.setExtraHTTPHeaders", {"headers": headers})

            log(f"Opening page {url}")
            driver.get(url)

            if config.actions:
                run_actions(driver, config.actions, config.timeout, log)

            if config.wait:
                log(f"Waiting for {config.wait}ms")
                time.sleep(config.wait / 1000)

            log("Running axe-core")
            driver.execute_script(axe_source)
            context = None
            if config.hide_elements:
                context = {"exclude": [[s.strip()] for s in config.hide_elements.split(",") if s.strip()]}
            options = {
                "runOnly": {
                    "type": "tag",
                    "values": STANDARD_TAGS.get(config.standard, STANDARD_TAGS["WCAG2AA"]) + ["best-practice"],
                },
                "resultTypes": ["violations", "incomplete"],
            }
            outcome = driver.execute_async_script(RUN_AXE_SCRIPT, context, options)
            if not outcome or outcome.get("error"):
                raise CheckError(f"axe.run failed: {(outcome or {}).get('error')}", url=url)

            findings = map_axe_results(outcome["r"], url, config)
            log(f"Found {len(findings)} issues on {url}")
            return findings

        except TimeoutException as e:
            raise CheckError(f"Timed out checking {url}", url=url) from e
        except WebDriverException as e:
            raise CheckError(f"Browser error checking {url}: {e.msg or e}", url=url) from e
        except CheckError as e:
            e.url = e.url or url
            raise
        except (urllib3.exceptions.HTTPError, OSError) as e:
            # chromedriver went away: the connection to it failed, not the page
            raise CheckError(f"Lost connection to the browser checking {url}: {e}", url=url) from e
        finally:
            if driver is not None:
                try:
                    driver.quit()
                except (WebDriverException, urllib3.exceptions.HTTPError, OSError) as e:
                    logger.warning(f"Failed to close browser after {url}: {e}")
