"""
Run AppleScript through osascript.

Two strategies: inline (``osascript -e <script>``) for one-line scripts and
piped (``osascript -`` with the script on stdin) for everything else. Every
run is bounded by a timeout and the child process is killed when the run
times out or the calling task is cancelled.
"""

import asyncio
import logging
from typing import Optional, Sequence

from apple_mail_mcp.config import settings

logger = logging.getLogger(__name__)


class AppleScriptError(Exception):
    """osascript failed or exited non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class AppleScriptNotFoundError(AppleScriptError):
    """The osascript interpreter could not be started."""


class AppleScriptTimeoutError(AppleScriptError):
    """osascript did not finish within the configured timeout."""


async def _terminate(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


async def _execute(args: Sequence[str], stdin_data: Optional[bytes], timeout: Optional[float]) -> str:
    if timeout is None:
        timeout = settings.script_timeout

    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise AppleScriptNotFoundError(
            f"{args[0]} not found. This tool requires macOS with AppleScript support."
        )
    except (OSError, UnicodeError) as e:
        raise AppleScriptError(f"AppleScript execution failed: {e}")

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(stdin_data), timeout=timeout)
    except asyncio.TimeoutError:
        await _terminate(process)
        raise AppleScriptTimeoutError(
            f"AppleScript execution timed out after {timeout:g}s. Apple Mail may be unresponsive."
        )
    except asyncio.CancelledError:
        logger.debug("AppleScript execution cancelled, killing osascript")
        await _terminate(process)
        raise

    error_text = stderr.decode("utf-8", errors="replace").strip() if stderr else ""

    if process.returncode != 0:
        raise AppleScriptError(
            f"AppleScript error (code {process.returncode}): {error_text or 'Unknown AppleScript error'}",
            returncode=process.returncode,
            stderr=error_text,
        )

    if error_text:
        logger.warning(f"AppleScript stderr: {error_text}")

    return stdout.decode("utf-8", errors="replace").strip()


async def run_applescript(script: str, timeout: Optional[float] = None) -> str:
    """Execute a single-line AppleScript passed as an ``-e`` argument.

    The script goes straight into the argument vector (no shell), so quotes
    need no extra escaping. Newlines cannot be carried inline; use
    ``run_applescript_file`` for multi-line scripts.
    """
    if "\n" in script or "\r" in script:
        raise ValueError("Inline AppleScript must be a single line; use run_applescript_file")
    logger.debug(f"Running inline AppleScript: {script}")
    return await _execute([settings.osascript, "-e", script], None, timeout)


async def run_applescript_file(script: str, timeout: Optional[float] = None) -> str:
    """Execute an AppleScript of any length by piping it to ``osascript -``."""
    logger.debug(f"Running piped AppleScript ({len(script)} chars)")
    try:
        # Lone surrogates and other unencodable text cannot reach osascript
        stdin_data = script.encode("utf-8")
    except UnicodeEncodeError as e:
        raise AppleScriptError(f"AppleScript execution failed: script is not valid UTF-8 ({e.reason})")
    return await _execute([settings.osascript, "-"], stdin_data, timeout)
