"""Provider-independent tools available to every model."""

from intentest.agents.tools.base import Tool, ToolKind

MAX_SLEEP_MS = 60_000


def create_navigate_tool(browser) -> Tool:
    return Tool(
        name="navigate",
        kind=ToolKind.BROWSER_ACTION,
        description="Navigate to URLs in new browser tab",
        input_schema={
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "The URL to navigate to"},
            },
            "required": ["url"],
        },
        fixed_action="navigate",
        browser=browser,
    )


def create_sleep_tool(browser) -> Tool:
    return Tool(
        name="sleep",
        kind=ToolKind.BROWSER_ACTION,
        description="Pause test execution for specified duration",
        input_schema={
            "type": "object",
            "properties": {
                "duration": {
                    "type": "number",
                    "minimum": 0,
                    "maximum": MAX_SLEEP_MS,
                    "description": "Duration in milliseconds",
                },
            },
            "required": ["duration"],
        },
        fixed_action="sleep",
        browser=browser,
    )


def create_run_callback_tool(browser) -> Tool:
    return Tool(
        name="run_callback",
        kind=ToolKind.CALLBACK,
        description="Run callback function for current test step",
        input_schema={"type": "object", "properties": {}},
        browser=browser,
    )


def create_github_login_tool(browser) -> Tool:
    return Tool(
        name="github_login",
        kind=ToolKind.BROWSER_ACTION,
        description="Handle GitHub OAuth login with 2FA",
        input_schema={
            "type": "object",
            "properties": {
                "username": {"type": "string"},
                "password": {"type": "string"},
            },
            "required": ["username", "password"],
        },
        fixed_action="github_login",
        browser=browser,
    )


def create_check_email_tool(browser) -> Tool:
    return Tool(
        name="check_email",
        kind=ToolKind.BROWSER_ACTION,
        description="View received email in new browser tab",
        input_schema={
            "type": "object",
            "properties": {
                "email": {
                    "type": "string",
                    "description": "Email content or address to check for",
                },
            },
            "required": ["email"],
        },
        fixed_action="check_email",
        browser=browser,
    )
