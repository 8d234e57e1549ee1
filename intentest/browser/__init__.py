"""
Browser automation for intentest.
"""

from intentest.browser.browser_tool import BrowserTool
from intentest.browser.manager import BrowserManager

__all__ = ["BrowserManager", "BrowserTool"]
