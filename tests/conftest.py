"""Shared pytest fixtures."""

from unittest.mock import AsyncMock, patch

import pytest


@pytest.fixture
def search_output() -> str:
    """osascript output of a search that matched two messages."""
    return (
        "MESSAGE_START\n"
        "ID:101\n"
        "SUBJECT:Quarterly report\n"
        "SENDER:Alice <alice@example.com>\n"
        "DATE:Monday, 5 October 2026 at 09:12:00\n"
        "READ:false\n"
        "FLAGGED:true\n"
        "CONTENT:Numbers attached: see page 2\n"
        "MESSAGE_END\n"
        "MESSAGE_START\n"
        "ID:102\n"
        "SUBJECT:Lunch?\n"
        "SENDER:bob@example.com\n"
        "DATE:Tuesday, 6 October 2026 at 12:00:00\n"
        "READ:true\n"
        "FLAGGED:false\n"
        "CONTENT:Noon at the usual place\n"
        "MESSAGE_END\n"
    )


@pytest.fixture
def message_output() -> str:
    """osascript output of a lookup by id."""
    return (
        "MESSAGE_START\n"
        "ID:101\n"
        "SUBJECT:Quarterly report\n"
        "SENDER:Alice <alice@example.com>\n"
        "RECIPIENTS:me@example.com,team@example.com,\n"
        "DATE:Monday, 5 October 2026 at 09:12:00\n"
        "READ:true\n"
        "FLAGGED:false\n"
        "MAILBOX:INBOX\n"
        "ACCOUNT:Work\n"
        "ATTACHMENT_COUNT:2\n"
        "CONTENT:Numbers attached\n"
        "MESSAGE_END\n"
    )


@pytest.fixture
def mail_script_runner():
    """Patch the osascript runner and the Mail warm-up used by the operations module."""
    with patch("apple_mail_mcp.mail.ensure_mail_running", new=AsyncMock(return_value=True)) as ensure, \
            patch("apple_mail_mcp.mail.run_applescript_file", new=AsyncMock(return_value="")) as runner:
        runner.ensure_mail_running = ensure
        yield runner
