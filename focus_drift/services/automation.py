"""Read the frontmost application and active browser tab via AppleScript"""
import asyncio
import logging
import subprocess
from typing import Optional

from pydantic import BaseModel

from focus_drift.config.settings import settings
from focus_drift.services.errors import AutomationError

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "||"

FRONTMOST_APP_SCRIPT = """
tell application "System Events"
  set frontApp to name of first application process whose frontmost is true
  set bundleId to bundle identifier of first application process whose frontmost is true
end tell

tell application "System Events"
  tell process frontApp
    try
      set winTitle to name of front window
    on error
      set winTitle to ""
    end try
  end tell
end tell

return frontApp & "||" & bundleId & "||" & winTitle
"""

# Chromium browsers share Chrome's scripting dictionary
CHROMIUM_TAB_SCRIPT = """
tell application "{app}"
  if (count of windows) = 0 then
    return "||"
  end if
  try
    set theUrl to URL of active tab of front window
    set theTitle to title of active tab of front window
    return theUrl & "||" & theTitle
  on error
    return "||"
  end try
end tell
"""

SAFARI_TAB_SCRIPT = """
tell application "Safari"
  if (count of windows) = 0 then
    return "||"
  end if
  try
    set theUrl to URL of current tab of front window
    set theTitle to name of current tab of front window
    return theUrl & "||" & theTitle
  on error
    return "||"
  end try
end tell
"""

CHROMIUM_BROWSERS = {
    "chrome": "Google Chrome",
    "brave browser": "Brave Browser",
    "microsoft edge": "Microsoft Edge",
}

class FrontmostApp(BaseModel):
    name: str
    bundle_id: Optional[str] = None
    window_title: Optional[str] = None

class BrowserTab(BaseModel):
    url: Optional[str] = None
    title: Optional[str] = None

class MacAutomation:
    """Thin wrapper around osascript"""

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout = timeout_seconds or settings.OSASCRIPT_TIMEOUT_SECONDS

    async def get_frontmost_app(self) -> FrontmostApp:
        """Get the frontmost (currently active) application"""
        output = await self.run_script(FRONTMOST_APP_SCRIPT)
        name, bundle_id, window_title = _split_fields(output, 3)
        if not name:
            raise AutomationError("System Events returned no frontmost application")
        return FrontmostApp(
            name=name,
            bundle_id=bundle_id or None,
            window_title=window_title or None,
        )

    async def get_browser_active_tab(self, app_name: str) -> BrowserTab:
        """Get the active tab for recognised browsers, empty for anything else"""
        script = browser_tab_script(app_name)
        if script is None:
            return BrowserTab()
        output = await self.run_script(script)
        url, title = _split_fields(output, 2)
        return BrowserTab(url=url or None, title=title or None)

    async def run_script(self, script: str) -> str:
        """Run an AppleScript and return its trimmed stdout"""
        try:
            result = await asyncio.to_thread(
                subprocess.run,
                ["osascript", "-e", script],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise AutomationError(f"osascript timed out after {self.timeout}s")
        except OSError as e:
            raise AutomationError(f"Failed to run osascript: {e}")

        if result.returncode != 0:
            message = result.stderr.strip() or f"exit status {result.returncode}"
            logger.error(f"AppleScript failed: {message}")
            raise AutomationError(f"AppleScript failed: {message}")
        return result.stdout.strip()

def browser_tab_script(app_name: str) -> Optional[str]:
    """AppleScript that reads the active tab of ``app_name``, if it is a known browser"""
    lower_name = app_name.lower()
    if "safari" in lower_name:
        return SAFARI_TAB_SCRIPT
    for key, application in CHROMIUM_BROWSERS.items():
        if key in lower_name:
            return CHROMIUM_TAB_SCRIPT.format(app=application)
    return None

def _split_fields(output: str, count: int):
    parts = [part.strip() for part in output.split(FIELD_SEPARATOR)]
    parts += [""] * (count - len(parts))
    return parts[:count]
