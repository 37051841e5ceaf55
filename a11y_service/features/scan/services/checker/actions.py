"""
Scripted page actions run before a page is audited, e.g. logging in or
opening a menu. The grammar follows the plain-English actions users type
into a task ("click element #login", "wait for path to be /dashboard").
"""
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urlparse

from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.common.by import By
from selenium.webdriver.support import expected_conditions as EC
from selenium.webdriver.support.ui import WebDriverWait

from a11y_service.platform.exceptions import CheckError


ACTION_PATTERNS = [
    ("navigate-url", re.compile(r"^navigate to( url)? (?P<url>.+)$", re.I)),
    ("click-element", re.compile(r"^click( element)? (?P<selector>.+)$", re.I)),
    ("set-field-value", re.compile(r"^set( field)? (?P<selector>.+?) to (?P<value>.+)$", re.I)),
    ("clear-field-value", re.compile(r"^clear( field)? (?P<selector>.+?)$", re.I)),
    ("check-field", re.compile(r"^(?P<state>check|uncheck)( field)? (?P<selector>.+)$", re.I)),
    ("screen-capture", re.compile(r"^(screen[ -]?capture|capture[ -]?screen)( to)? (?P<path>.+)$", re.I)),
    ("wait-for-url", re.compile(
        r"^wait for (?P<part>fragment|hash|host|path|url)( to)? (?P<negated>not )?be (?P<value>.+)$", re.I)),
    ("wait-for-element-state", re.compile(
        r"^wait for( element)? (?P<selector>.+?) to( be)? (?P<state>added|removed|visible|hidden)$", re.I)),
    ("wait-for-element-event", re.compile(
        r"^wait for( element)? (?P<selector>.+?) to emit (?P<event>.+)$", re.I)),
]

WAIT_FOR_EVENT_SCRIPT = """
const selector = arguments[0];
const eventType = arguments[1];
const done = arguments[arguments.length - 1];
const target = document.querySelector(selector);
if (!target) { return done({error: 'No element matching ' + selector}); }
target.addEventListener(eventType, () => done({ok: true}), {once: true});
"""

SET_VALUE_SCRIPT = """
const field = arguments[0];
field.value = arguments[1];
field.dispatchEvent(new Event('input', {bubbles: true}));
"""

SET_CHECKED_SCRIPT = """
const field = arguments[0];
field.checked = arguments[1];
field.dispatchEvent(new Event('change', {bubbles: true}));
"""


@dataclass
class Action:
    text: str
    kind: str
    params: dict


def parse_action(text: str) -> Optional[Action]:
    for kind, pattern in ACTION_PATTERNS:
        match = pattern.match(text.strip())
        if match:
            params = {k: v for k, v in match.groupdict().items() if v is not None}
            return Action(text=text, kind=kind, params=params)
    return None


def is_valid_action(text: str) -> bool:
    return isinstance(text, str) and parse_action(text) is not None


def _url_part(url: str, part: str) -> str:
    parsed = urlparse(url)
    part = part.lower()
    if part in ("fragment", "hash"):
        return f"#{parsed.fragment}" if parsed.fragment else ""
    if part == "host":
        return parsed.netloc
    if part == "path":
        return parsed.path
    return url


def _run_one(driver, action: Action, timeout_s: float) -> None:
    params = action.params
    wait = WebDriverWait(driver, timeout_s)

    if action.kind == "navigate-url":
        driver.get(params["url"])

    elif action.kind == "click-element":
        driver.find_element(By.CSS_SELECTOR, params["selector"]).click()

    elif action.kind == "set-field-value":
        field = driver.find_element(By.CSS_SELECTOR, params["selector"])
        driver.execute_script(SET_VALUE_SCRIPT, field, params["value"])

    elif action.kind == "clear-field-value":
        field = driver.find_element(By.CSS_SELECTOR, params["selector"])
        driver.execute_script(SET_VALUE_SCRIPT, field, "")

    elif action.kind == "check-field":
        field = driver.find_element(By.CSS_SELECTOR, params["selector"])
        driver.execute_script(SET_CHECKED_SCRIPT, field, params["state"].lower() == "check")

    elif action.kind == "screen-capture":
        driver.save_screenshot(params["path"])

    elif action.kind == "wait-for-url":
        expected = params["value"]
        negated = "negated" in params

        def url_matches(d):
            return (_url_part(d.current_url, params["part"]) == expected) != negated

        wait.until(url_matches)

    elif action.kind == "wait-for-element-state":
        locator = (By.CSS_SELECTOR, params["selector"])
        state = params["state"].lower()
        if state == "added":
            wait.until(EC.presence_of_element_located(locator))
        elif state == "removed":
            wait.until(lambda d: not d.find_elements(*locator))
        elif state == "visible":
            wait.until(EC.visibility_of_element_located(locator))
        else:
            wait.until(EC.invisibility_of_element_located(locator))

    elif action.kind == "wait-for-element-event":
        outcome = driver.execute_async_script(WAIT_FOR_EVENT_SCRIPT, params["selector"], params["event"])
        if outcome and outcome.get("error"):
            raise CheckError(outcome["error"])


def run_actions(driver, actions: List[str], timeout_ms: int, log: Callable[[str], None] = None) -> None:
    """
    Run each action in order; the first failure aborts the page check.
    """
    timeout_s = timeout_ms / 1000
    for text in actions:
        action = parse_action(text)
        if action is None:
            raise CheckError(f'Failed action: "{text}" does not match any action')
        if log:
            log(f"Running action: {text}")
        try:
            _run_one(driver, action, timeout_s)
        except TimeoutException as e:
            raise CheckError(f'Failed action: "{text}" timed out') from e
        except WebDriverException as e:
            raise CheckError(f'Failed action: "{text}": {e.msg or e}') from e
