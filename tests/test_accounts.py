"""
Unit tests for GitHub two-factor login and Mailosaur inbox lookups.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, call

import pyotp
import pytest
from mailosaur.models import MailosaurException

from intentest.browser.github import (
    LOGIN_FIELD_SELECTOR,
    PASSWORD_SELECTOR,
    SIGN_IN_SELECTOR,
    TOTP_FIELD_SELECTOR,
    GitHubAuthenticator,
)
from intentest.browser.mailbox import Mailbox
from intentest.error_handling import ToolError

TOTP_SECRET = "JBSWY3DPEHPK3PXP"


class SearchTimeout(MailosaurException):
    """Mailosaur error raised when no message arrives in time."""

    def __init__(self):
        Exception.__init__(self, "No matching messages found in time")


def make_login_page(url="http://localhost:3000/login"):
    page = MagicMock()
    page.url = url
    for method in ("click", "fill", "wait_for_url", "wait_for_selector"):
        setattr(page, method, AsyncMock())
    return page


class TestGitHubAuthenticator:
    """TOTP codes and the login form flow."""

    def test_code_matches_totp(self):
        totp = GitHubAuthenticator(TOTP_SECRET).generate_totp_code()

        assert totp.code == pyotp.TOTP(TOTP_SECRET).now()
        assert 0 < totp.time_remaining <= 30

    def test_secret_from_environment(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOTP_SECRET", TOTP_SECRET)

        assert len(GitHubAuthenticator().generate_totp_code().code) == 6

    def test_missing_secret(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOTP_SECRET", raising=False)

        with pytest.raises(ToolError, match="TOTP secret is required"):
            GitHubAuthenticator()

    def test_invalid_secret(self):
        with pytest.raises(ToolError, match="not valid base32"):
            GitHubAuthenticator("not-base32!")

    @pytest.mark.asyncio
    async def test_login_from_application(self):
        page = make_login_page()
        github = GitHubAuthenticator(TOTP_SECRET, timeout_ms=5000)

        await github.login(page, "octocat", "hunter2")

        page.click.assert_any_await(SIGN_IN_SELECTOR, timeout=5000)
        fills = page.fill.await_args_list
        assert fills[:2] == [
            call(LOGIN_FIELD_SELECTOR, "octocat"),
            call(PASSWORD_SELECTOR, "hunter2"),
        ]
        assert fills[2].args[0] == TOTP_FIELD_SELECTOR
        assert fills[2].args[1].isdigit()
        page.wait_for_selector.assert_awaited_once_with(TOTP_FIELD_SELECTOR, timeout=5000)

    @pytest.mark.asyncio
    async def test_login_already_on_github(self):
        page = make_login_page("https://github.com/login?return_to=/oauth")

        await GitHubAuthenticator(TOTP_SECRET).login(page, "octocat", "hunter2")

        assert call(SIGN_IN_SELECTOR, timeout=30000) not in page.click.await_args_list


class TestMailbox:
    """Latest message lookup."""

    def test_requires_credentials(self):
        with pytest.raises(ToolError, match="Mailosaur api key and server id are required"):
            Mailbox("key", "")

    @pytest.mark.asyncio
    async def test_latest_email(self):
        client = MagicMock()
        client.messages.get.return_value = SimpleNamespace(
            subject="Welcome",
            html=None,
            text=SimpleNamespace(body="Hello there"),
        )
        mailbox = Mailbox("key", "abc123", wait_ms=2000, client=client)

        email = await mailbox.latest_email("new@abc123.mailosaur.net")

        assert (email.subject, email.html, email.text) == ("Welcome", "", "Hello there")
        server_id, criteria = client.messages.get.call_args.args
        assert server_id == "abc123"
        assert criteria.sent_to == "new@abc123.mailosaur.net"
        assert client.messages.get.call_args.kwargs == {"timeout": 2000}

    @pytest.mark.asyncio
    async def test_no_message_in_time(self):
        client = MagicMock()
        client.messages.get.side_effect = SearchTimeout()

        with pytest.raises(ToolError, match="Failed to fetch email for new@abc123"):
            await Mailbox("key", "abc123", client=client).latest_email("new@abc123.mailosaur.net")
