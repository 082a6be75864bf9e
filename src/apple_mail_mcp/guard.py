"""
Make sure Apple Mail is running before a script talks to it.
"""

import asyncio
import logging
from typing import Optional

from apple_mail_mcp.applescript import build_activate_script, build_is_running_script
from apple_mail_mcp.config import settings
from apple_mail_mcp.runner import AppleScriptError, run_applescript

logger = logging.getLogger(__name__)


async def is_mail_running() -> bool:
    """Check whether the Mail process is active. Any failure counts as not running."""
    try:
        result = await run_applescript(build_is_running_script())
    except AppleScriptError as e:
        logger.debug(f"Mail process check failed: {e}")
        return False
    return result.strip().lower() == "true"


async def ensure_mail_running(timeout: Optional[float] = None, poll_interval: Optional[float] = None) -> bool:
    """
    Launch Apple Mail if needed and wait for its process to show up.

    This is a best-effort warm-up: when Mail has not come up within
    ``timeout`` seconds a warning is logged and the caller carries on.

    Args:
        timeout: Seconds to wait after activating (default: APPLE_MAIL_STARTUP_TIMEOUT)
        poll_interval: Seconds between process checks (default: APPLE_MAIL_STARTUP_POLL_INTERVAL)

    Returns:
        True if Mail was seen running, False otherwise
    """
    if await is_mail_running():
        return True

    if timeout is None:
        timeout = settings.startup_timeout
    if poll_interval is None:
        poll_interval = settings.startup_poll_interval

    logger.info("Apple Mail is not running, activating it")
    try:
        await run_applescript(build_activate_script())
    except AppleScriptError as e:
        logger.warning(f"Could not activate Apple Mail: {e}")
        return False

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        await asyncio.sleep(min(poll_interval, remaining))
        if await is_mail_running():
            logger.info("Apple Mail is up")
            return True

    logger.warning(f"Apple Mail did not report running within {timeout:g}s, continuing anyway")
    return False
