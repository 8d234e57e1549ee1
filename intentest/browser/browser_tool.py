"""
Browser actions executed on behalf of the model and during cache replay.

Action names follow the computer-use vocabulary (``mouse_move``,
``left_click``, ``key``...), plus ``navigate``, ``sleep``, ``run_callback``,
``github_login`` and ``check_email`` for the custom tools.
"""

from __future__ import annotations

import asyncio
import base64
import html
import logging
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from intentest.browser.github import GitHubAuthenticator
from intentest.browser.mailbox import Mailbox
from intentest.core.context import TestContext, invoke_callback
from intentest.core.types import ToolResult
from intentest.error_handling import TestError, ToolError

logger = logging.getLogger(__name__)

SCROLL_STEP_PX = 100
MAX_SLEEP_MS = 60_000

KEY_ALIASES: Dict[str, str] = {
    "return": "Enter",
    "enter": "Enter",
    "esc": "Escape",
    "escape": "Escape",
    "tab": "Tab",
    "delete": "Delete",
    "backspace": "Backspace",
    "space": " ",
    "ctrl": "Control",
    "control": "Control",
    "alt": "Alt",
    "shift": "Shift",
    "super": "Meta",
    "cmd": "Meta",
    "meta": "Meta",
    "up": "ArrowUp",
    "down": "ArrowDown",
    "left": "ArrowLeft",
    "right": "ArrowRight",
    "arrowup": "ArrowUp",
    "arrowdown": "ArrowDown",
    "arrowleft": "ArrowLeft",
    "arrowright": "ArrowRight",
    "page_down": "PageDown",
    "page_up": "PageUp",
    "home": "Home",
    "end": "End",
}

COMPONENT_SCRIPT = """
([x, y]) => {
    const element = document.elementFromPoint(x, y);
    if (!element) {
        return "";
    }
    const attributes = ["id", "name", "type", "role", "aria-label", "placeholder", "href"]
        .filter((attr) => element.hasAttribute(attr))
        .map((attr) => `${attr}="${element.getAttribute(attr)}"`);
    const text = (element.innerText || element.textContent || "")
        .replace(/\\s+/g, " ")
        .trim()
        .slice(0, 50);
    return [element.tagName.toLowerCase(), ...attributes, text].filter(Boolean).join(" ");
}
"""


def to_playwright_key(text: str) -> str:
    """Translate ``ctrl+a`` / ``Return`` style keys into Playwright key names."""
    parts = [part for part in text.split("+") if part]
    mapped = []
    for part in parts:
        alias = KEY_ALIASES.get(part.lower())
        if alias is not None:
            mapped.append(alias)
        elif len(part) == 1:
            mapped.append(part)
        else:
            mapped.append(part[0].upper() + part[1:])
    return "+".join(mapped)


def _coordinate(value: Any, field: str = "coordinate") -> Tuple[int, int]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ToolError(f"{field} must be a pair of integers", tool="browser")
    x, y = value
    if not isinstance(x, int) or not isinstance(y, int) or x < 0 or y < 0:
        raise ToolError("Coordinates must be non-negative integers", tool="browser")
    return x, y


class BrowserTool:
    """Executes browser actions against the page of the current test file."""

    def __init__(
        self,
        page: Page,
        test_context: TestContext,
        width: int = 1920,
        height: int = 1080,
        artifact_dir: Optional[Path] = None,
        settings: Any = None,
    ) -> None:
        self.page = page
        self.test_context = test_context
        self.width = width
        self.height = height
        self.artifact_dir = artifact_dir
        self.settings = settings
        self.cursor: Tuple[int, int] = (0, 0)
        self._github: Optional[GitHubAuthenticator] = None
        self._mailbox: Optional[Mailbox] = None

        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[ToolResult]]] = {
            "mouse_move": self._mouse_move,
            "left_click": self._click("left"),
            "right_click": self._click("right"),
            "middle_click": self._click("middle"),
            "double_click": self._click("left", 2),
            "triple_click": self._click("left", 3),
            "left_click_drag": self._left_click_drag,
            "left_mouse_down": self._left_mouse_down,
            "left_mouse_up": self._left_mouse_up,
            "type": self._type,
            "key": self._key,
            "hold_key": self._hold_key,
            "scroll": self._scroll,
            "wait": self._wait,
            "screenshot": self._screenshot,
            "cursor_position": self._cursor_position,
            "navigate": self._navigate,
            "sleep": self._sleep,
            "run_callback": self._run_callback,
            "github_login": self._github_login,
            "check_email": self._check_email,
        }

    async def execute(self, action_input: Dict[str, Any]) -> ToolResult:
        """
        Run one action.

        Raises:
            ToolError: Unknown action or invalid arguments
            TestError: A user callback failed
        """
        action = action_input.get("action")
        handler = self._handlers.get(action) if isinstance(action, str) else None
        if handler is None:
            raise ToolError(f"Unknown action: {action}", tool="browser")

        logger.debug("Executing browser action", extra={"action": action})
        result = await handler(action_input)
        result.metadata.setdefault("window_info", await self.window_info())
        return result

    async def window_info(self) -> Dict[str, Any]:
        return {"url": self.page.url, "title": await self.page.title()}

    async def get_normalized_component_string_by_coords(self, x: int, y: int) -> str:
        """Stable description of the element at ``(x, y)``, used to validate replays."""
        value = await self.page.evaluate(COMPONENT_SCRIPT, [x, y])
        return value or ""

    # ------------------------------------------------------------------ #
    # Pointer
    # ------------------------------------------------------------------ #

    async def _move_to(self, x: int, y: int) -> None:
        await self.page.mouse.move(x, y)
        self.cursor = (x, y)

    async def _mouse_move(self, action_input: Dict[str, Any]) -> ToolResult:
        x, y = _coordinate(action_input.get("coordinate"))
        await self._move_to(x, y)
        return ToolResult(output=f"Mouse moved to ({x}, {y})")

    def _click(self, button: str, click_count: int = 1):
        async def handler(action_input: Dict[str, Any]) -> ToolResult:
            if action_input.get("coordinate") is not None:
                await self._move_to(*_coordinate(action_input["coordinate"]))
            x, y = self.cursor
            modifier = action_input.get("text")
            if modifier:
                await self.page.keyboard.down(to_playwright_key(modifier))
            try:
                await self.page.mouse.click(x, y, button=button, click_count=click_count)
            finally:
                if modifier:
                    await self.page.keyboard.up(to_playwright_key(modifier))
            return ToolResult(output=f"{button.capitalize()} click x{click_count} at ({x}, {y})")

        return handler

    async def _left_click_drag(self, action_input: Dict[str, Any]) -> ToolResult:
        if action_input.get("start_coordinate") is not None:
            await self._move_to(*_coordinate(action_input["start_coordinate"], "start_coordinate"))
        end_x, end_y = _coordinate(action_input.get("coordinate"))
        await self.page.mouse.down()
        await self.page.mouse.move(end_x, end_y, steps=10)
        await self.page.mouse.up()
        self.cursor = (end_x, end_y)
        return ToolResult(output=f"Dragged to ({end_x}, {end_y})")

    async def _left_mouse_down(self, action_input: Dict[str, Any]) -> ToolResult:
        await self.page.mouse.down()
        return ToolResult(output="Left mouse button pressed")

    async def _left_mouse_up(self, action_input: Dict[str, Any]) -> ToolResult:
        await self.page.mouse.up()
        return ToolResult(output="Left mouse button released")

    async def _scroll(self, action_input: Dict[str, Any]) -> ToolResult:
        if action_input.get("coordinate") is not None:
            await self._move_to(*_coordinate(action_input["coordinate"]))
        direction = action_input.get("scroll_direction", "down")
        amount = int(action_input.get("scroll_amount", 1)) * SCROLL_STEP_PX
        delta = {
            "up": (0, -amount),
            "down": (0, amount),
            "left": (-amount, 0),
            "right": (amount, 0),
        }.get(direction)
        if delta is None:
            raise ToolError(f"Invalid scroll direction: {direction}", tool="browser")
        await self.page.mouse.wheel(*delta)
        return ToolResult(output=f"Scrolled {direction} by {amount}px")

    async def _cursor_position(self, action_input: Dict[str, Any]) -> ToolResult:
        x, y = self.cursor
        return ToolResult(output=f"X={x},Y={y}")

    # ------------------------------------------------------------------ #
    # Keyboard
    # ------------------------------------------------------------------ #

    async def _type(self, action_input: Dict[str, Any]) -> ToolResult:
        text = action_input.get("text")
        if not isinstance(text, str):
            raise ToolError("Text is required for type action", tool="browser")
        await self.page.keyboard.type(text)
        return ToolResult(output=f"Typed {len(text)} characters")

    async def _key(self, action_input: Dict[str, Any]) -> ToolResult:
        text = action_input.get("text")
        if not isinstance(text, str) or not text:
            raise ToolError("Key is required for key action", tool="browser")
        key = to_playwright_key(text)
        await self.page.keyboard.press(key)
        return ToolResult(output=f"Pressed {key}")

    async def _hold_key(self, action_input: Dict[str, Any]) -> ToolResult:
        text = action_input.get("text")
        if not isinstance(text, str) or not text:
            raise ToolError("Key is required for hold_key action", tool="browser")
        duration = float(action_input.get("duration", 1))
        keys = to_playwright_key(text).split("+")
        for key in keys:
            await self.page.keyboard.down(key)
        try:
            await asyncio.sleep(duration)
        finally:
            for key in reversed(keys):
                await self.page.keyboard.up(key)
        return ToolResult(output=f"Held {text} for {duration:g}s")

    # ------------------------------------------------------------------ #
    # Page
    # ------------------------------------------------------------------ #

    async def _screenshot(self, action_input: Dict[str, Any]) -> ToolResult:
        image = await self.page.screenshot(type="png")
        metadata: Dict[str, Any] = {}
        if self.artifact_dir is not None:
            self.artifact_dir.mkdir(parents=True, exist_ok=True)
            path = self.artifact_dir / f"screenshot-{int(time.time() * 1000)}.png"
            path.write_bytes(image)
            metadata["screenshot_path"] = str(path)
        return ToolResult(
            output="Screenshot taken",
            base64_image=base64.b64encode(image).decode("ascii"),
            metadata=metadata,
        )

    async def _navigate(self, action_input: Dict[str, Any]) -> ToolResult:
        url = action_input.get("url")
        if not isinstance(url, str) or not url:
            raise ToolError("URL is required for navigate action", tool="navigate")
        await self.page.goto(url)
        return ToolResult(output=f"Navigated to {url}")

    async def _wait(self, action_input: Dict[str, Any]) -> ToolResult:
        duration = float(action_input.get("duration", 1))
        await asyncio.sleep(duration)
        return ToolResult(output=f"Waited {duration:g}s")

    async def _sleep(self, action_input: Dict[str, Any]) -> ToolResult:
        duration_ms = action_input.get("duration", 1000)
        if not isinstance(duration_ms, (int, float)) or not 0 <= duration_ms <= MAX_SLEEP_MS:
            raise ToolError(
                f"Sleep duration must be between 0 and {MAX_SLEEP_MS}ms", tool="sleep"
            )
        await asyncio.sleep(duration_ms / 1000)
        return ToolResult(output=f"Slept for {duration_ms}ms")

    # ------------------------------------------------------------------ #
    # Callbacks
    # ------------------------------------------------------------------ #

    def _pending_callbacks(self) -> List[Callable[..., Any]]:
        test = self.test_context.current_test
        if test is None:
            return []
        callbacks = [test.fn] if test.fn else []
        callbacks.extend(expectation.fn for expectation in test.expectations if expectation.fn)
        return callbacks

    async def _run_callback(self, action_input: Dict[str, Any]) -> ToolResult:
        callbacks = self._pending_callbacks()
        index = self.test_context.current_step_index
        if index >= len(callbacks):
            return ToolResult(output="No callback to run")

        self.test_context.current_step_index = index + 1
        try:
            await invoke_callback(callbacks[index], self.test_context)
        except Exception as exc:
            raise TestError(
                "callback-execution-failed",
                f"Callback execution failed: {exc}",
                cause=exc,
            ) from exc
        return ToolResult(output="Callback executed successfully")

    # ------------------------------------------------------------------ #
    # Accounts
    # ------------------------------------------------------------------ #

    def _setting(self, name: str, default: Any = "") -> Any:
        return getattr(self.settings, name, default) if self.settings is not None else default

    def _get_github(self) -> GitHubAuthenticator:
        if self._github is None:
            self._github = GitHubAuthenticator(
                self._setting("github_totp_secret"),
                timeout_ms=self._setting("browser_timeout", 30000),
            )
        return self._github

    def _get_mailbox(self) -> Mailbox:
        if self._mailbox is None:
            self._mailbox = Mailbox(
                self._setting("mailosaur_api_key"), self._setting("mailosaur_server_id")
            )
        return self._mailbox

    async def _github_login(self, action_input: Dict[str, Any]) -> ToolResult:
        username = action_input.get("username")
        password = action_input.get("password")
        if not username or not password:
            raise ToolError("Username and password are required", tool="github_login")

        github = self._get_github()
        try:
            await github.login(self.page, username, password)
        except PlaywrightError as exc:
            logger.warning("GitHub login failed", extra={"error": str(exc)})
            return ToolResult(error=f"GitHub login failed: {exc}")
        return ToolResult(output="GitHub login was successfully completed")

    async def _check_email(self, action_input: Dict[str, Any]) -> ToolResult:
        address = action_input.get("email")
        if not isinstance(address, str) or not address:
            raise ToolError("Email address is required", tool="check_email")

        email = await self._get_mailbox().latest_email(address)
        content = email.html or f"<pre>{html.escape(email.text)}</pre>"
        email_page = await self.page.context.new_page()
        await email_page.set_content(content, wait_until="domcontentloaded")
        self.page = email_page
        return ToolResult(
            output=(
                "Email received successfully. "
                f"Navigated to new tab to display email: {email.subject}"
            )
        )
