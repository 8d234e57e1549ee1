"""
GitHub sign-in for applications that authenticate through GitHub OAuth.

The flow clicks the application's "Sign in with GitHub" button, submits the
credentials on github.com and answers the two-factor prompt with a TOTP code
derived from the account's shared secret.
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

import pyotp
from playwright.async_api import Page

from intentest.error_handling import ToolError

logger = logging.getLogger(__name__)

TOTP_SECRET_ENV = "GITHUB_TOTP_SECRET"

SIGN_IN_SELECTOR = (
    "button:has-text('Sign in with GitHub'), a:has-text('Sign in with GitHub')"
)
LOGIN_FIELD_SELECTOR = "#login_field"
PASSWORD_SELECTOR = "#password"
SUBMIT_SELECTOR = "input[type='submit']"
TOTP_FIELD_SELECTOR = "#app_totp"


@dataclass
class TOTPCode:
    code: str
    time_remaining: int


class GitHubAuthenticator:
    """Generates TOTP codes and drives the GitHub login form."""

    def __init__(self, secret: Optional[str] = None, timeout_ms: int = 30000) -> None:
        secret = secret or os.environ.get(TOTP_SECRET_ENV, "")
        if not secret:
            raise ToolError(
                f"GitHub TOTP secret is required. Set github_totp_secret or {TOTP_SECRET_ENV}",
                tool="github_login",
            )
        self.totp = pyotp.TOTP(secret)
        self.timeout_ms = timeout_ms
        try:
            self.totp.now()
        except ValueError as exc:
            raise ToolError(
                "GitHub TOTP secret is not valid base32", tool="github_login", cause=exc
            ) from exc

    def generate_totp_code(self) -> TOTPCode:
        interval = self.totp.interval
        remaining = interval - int(time.time()) % interval
        return TOTPCode(code=self.totp.now(), time_remaining=remaining)

    async def login(self, page: Page, username: str, password: str) -> None:
        """
        Complete the GitHub login starting from the application or github.com.

        Raises:
            playwright.async_api.Error: A selector or navigation timed out
        """
        if "github.com/login" not in page.url:
            await page.click(SIGN_IN_SELECTOR, timeout=self.timeout_ms)
            await page.wait_for_url("**/github.com/login**", timeout=self.timeout_ms)

        await page.fill(LOGIN_FIELD_SELECTOR, username)
        await page.fill(PASSWORD_SELECTOR, password)
        await page.click(SUBMIT_SELECTOR)

        await page.wait_for_selector(TOTP_FIELD_SELECTOR, timeout=self.timeout_ms)
        totp = self.generate_totp_code()
        logger.debug(
            "Submitting GitHub two-factor code",
            extra={"time_remaining": totp.time_remaining},
        )
        # GitHub submits the form once the last digit is entered
        await page.fill(TOTP_FIELD_SELECTOR, totp.code)
        await page.wait_for_url(lambda url: "github.com" not in url, timeout=self.timeout_ms)
