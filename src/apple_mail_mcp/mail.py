"""
Apple Mail operations: one coroutine per capability.

Each operation makes sure Mail is running, builds its AppleScript, runs it
through osascript and parses the output into records.
"""

import logging
from collections import Counter
from typing import Optional, List

from apple_mail_mcp import applescript
from apple_mail_mcp.guard import ensure_mail_running
from apple_mail_mcp.models import (
    EmailMessage,
    EmailAttachment,
    Mailbox,
    EmailAccount,
    DraftEmail,
    SendEmailResult,
)
from apple_mail_mcp.parser import parse_messages, parse_mailboxes, parse_accounts, parse_attachments
from apple_mail_mcp.runner import AppleScriptError, run_applescript_file

logger = logging.getLogger(__name__)

# Malformed or incomplete blocks dropped by the parser, per entity kind
dropped_blocks: Counter = Counter()


def _record_dropped(kind: str, count: int) -> None:
    dropped_blocks[kind] += count
    logger.info(f"Ignored {count} incomplete {kind} block(s) from Apple Mail")


async def search_emails(
    query: Optional[str] = None,
    sender: Optional[str] = None,
    subject: Optional[str] = None,
    mailbox: Optional[str] = None,
    account: Optional[str] = None,
    unread_only: bool = False,
    limit: int = 50
) -> List[EmailMessage]:
    """
    Search for emails.

    Args:
        query: Text matched against subject or content
        sender: Filter by sender address or name
        subject: Filter by subject line (partial match)
        mailbox: Mailbox to search in
        account: Account to search in
        unread_only: Only return unread emails
        limit: Maximum number of emails to return

    Returns:
        Matching messages, at most ``limit``
    """
    await ensure_mail_running()

    script = applescript.build_search_script(
        query=query,
        sender=sender,
        subject=subject,
        mailbox=mailbox,
        account=account,
        unread_only=unread_only,
        limit=limit,
    )
    result = await run_applescript_file(script)
    return parse_messages(result, on_dropped=_record_dropped)


async def get_email_by_id(
    message_id: str,
    mailbox: Optional[str] = None,
    account: Optional[str] = None
) -> Optional[EmailMessage]:
    """Fetch one message with recipients and attachment count, or None if it does not exist."""
    await ensure_mail_running()

    script = applescript.build_get_email_script(message_id, mailbox=mailbox, account=account)
    result = await run_applescript_file(script)

    if result == applescript.NOT_FOUND:
        return None

    emails = parse_messages(result, on_dropped=_record_dropped)
    return emails[0] if emails else None


async def list_mailboxes() -> List[Mailbox]:
    await ensure_mail_running()

    result = await run_applescript_file(applescript.build_list_mailboxes_script())
    return parse_mailboxes(result, on_dropped=_record_dropped)


async def list_accounts() -> List[EmailAccount]:
    await ensure_mail_running()

    result = await run_applescript_file(applescript.build_list_accounts_script())
    return parse_accounts(result, on_dropped=_record_dropped)


async def create_draft(draft: DraftEmail) -> str:
    """Create an unsent outgoing message and return its id."""
    await ensure_mail_running()

    message_id = await run_applescript_file(applescript.build_compose_script(draft, send=False))
    logger.info(f"Created draft {message_id!r}: {draft.subject}")
    return message_id


async def send_email(draft: DraftEmail) -> SendEmailResult:
    """Create and send a message. Failures are reported in the result, never raised."""
    await ensure_mail_running()

    try:
        message_id = await run_applescript_file(applescript.build_compose_script(draft, send=True))
    except AppleScriptError as e:
        logger.error(f"Sending '{draft.subject}' failed: {e}")
        return SendEmailResult(success=False, error=str(e))

    logger.info(f"Sent message {message_id!r}: {draft.subject}")
    return SendEmailResult(success=True, message_id=message_id)


async def move_email(message_id: str, target_mailbox: str, target_account: Optional[str] = None) -> bool:
    """
    Move a message to another mailbox.

    Returns False on any failure: a missing message and an AppleScript error
    look the same to the caller.
    """
    await ensure_mail_running()

    script = applescript.build_move_script(message_id, target_mailbox, target_account)
    try:
        await run_applescript_file(script)
    except AppleScriptError as e:
        logger.warning(f"Moving message {message_id} to {target_mailbox} failed: {e}")
        return False
    return True


async def set_read_status(message_id: str, read: bool) -> bool:
    """Mark a message read or unread. Returns False on any failure."""
    await ensure_mail_running()

    script = applescript.build_set_read_status_script(message_id, read)
    try:
        await run_applescript_file(script)
    except AppleScriptError as e:
        logger.warning(f"Setting read status of message {message_id} failed: {e}")
        return False
    return True


async def get_attachments(message_id: str) -> List[EmailAttachment]:
    await ensure_mail_running()

    result = await run_applescript_file(applescript.build_get_attachments_script(message_id))
    return parse_attachments(result, on_dropped=_record_dropped)
