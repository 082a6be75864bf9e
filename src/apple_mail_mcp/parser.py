"""
Parse the delimited AppleScript output back into records.

A block is a run of ``KEY:value`` lines between a start and an end marker.
Only the first colon separates key from value, so values may contain
colons. Duplicate keys keep the last value, unknown keys are ignored.
Fragments without an end marker and blocks missing a required field are
dropped without raising; the optional ``on_dropped`` hook is told how many.
"""

import logging
import re
from typing import Optional, List, Dict, Tuple, Callable

from apple_mail_mcp import applescript as markers
from apple_mail_mcp.models import EmailMessage, Mailbox, EmailAccount, EmailAttachment

logger = logging.getLogger(__name__)

DropHook = Callable[[str, int], None]

_ESCAPES = re.compile(r"\\(\\|n)")


def split_blocks(output: str, start: str, end: str) -> Tuple[List[Dict[str, str]], int]:
    """
    Split raw output into per-block field dictionaries.

    Args:
        output: Raw osascript output
        start: Start marker, e.g. "MESSAGE_START"
        end: End marker, e.g. "MESSAGE_END"

    Returns:
        (field dictionaries of the complete blocks, number of dangling fragments)
    """
    blocks = []
    dropped = 0

    for segment in output.split(start + "\n"):
        if not segment:
            continue
        if end not in segment:
            if segment.strip():
                dropped += 1
            continue

        fields: Dict[str, str] = {}
        for line in segment[:segment.index(end)].split("\n"):
            if not line:
                continue
            key, _, value = line.partition(":")
            fields[key] = value.strip()
        blocks.append(fields)

    return blocks, dropped


def unescape_text(value: str) -> str:
    """Reverse the script-side escaping: ``\\n`` is a line break, ``\\\\`` a backslash."""
    return _ESCAPES.sub(lambda m: "\n" if m.group(1) == "n" else "\\", value)


def _to_int(value: str) -> Optional[int]:
    try:
        return int(value, 10)
    except ValueError:
        return None


def _report(kind: str, dropped: int, on_dropped: Optional[DropHook]) -> None:
    if not dropped:
        return
    logger.debug(f"Dropped {dropped} malformed {kind} block(s)")
    if on_dropped is not None:
        on_dropped(kind, dropped)


def parse_messages(output: str, on_dropped: Optional[DropHook] = None) -> List[EmailMessage]:
    """Parse MESSAGE blocks; a block needs both ID and SUBJECT to be kept."""
    blocks, dropped = split_blocks(output, markers.MESSAGE_START, markers.MESSAGE_END)
    messages = []

    for fields in blocks:
        if not fields.get("ID") or not fields.get("SUBJECT"):
            dropped += 1
            continue

        message = EmailMessage(id=fields["ID"], subject=fields["SUBJECT"])
        if "SENDER" in fields:
            message.sender = fields["SENDER"]
        if "RECIPIENTS" in fields:
            message.recipients = [r for r in fields["RECIPIENTS"].split(",") if r]
        if "DATE" in fields:
            message.date = fields["DATE"]
        if "READ" in fields:
            message.read = fields["READ"] == "true"
        if "FLAGGED" in fields:
            message.flagged = fields["FLAGGED"] == "true"
        if "MAILBOX" in fields:
            message.mailbox = fields["MAILBOX"]
        if "ACCOUNT" in fields:
            message.account = fields["ACCOUNT"]
        if "ATTACHMENT_COUNT" in fields:
            message.attachment_count = _to_int(fields["ATTACHMENT_COUNT"])
        if "CONTENT" in fields:
            message.content = unescape_text(fields["CONTENT"])
        messages.append(message)

    _report("message", dropped, on_dropped)
    return messages


def parse_mailboxes(output: str, on_dropped: Optional[DropHook] = None) -> List[Mailbox]:
    """Parse MAILBOX blocks. An empty ACCOUNT value is fine, a missing ACCOUNT line is not."""
    blocks, dropped = split_blocks(output, markers.MAILBOX_START, markers.MAILBOX_END)
    mailboxes = []

    for fields in blocks:
        if not fields.get("NAME") or "ACCOUNT" not in fields:
            dropped += 1
            continue
        mailboxes.append(Mailbox(
            name=fields["NAME"],
            account=fields["ACCOUNT"],
            unread_count=_to_int(fields["UNREAD"]) if "UNREAD" in fields else None,
            total_count=_to_int(fields["TOTAL"]) if "TOTAL" in fields else None,
        ))

    _report("mailbox", dropped, on_dropped)
    return mailboxes


def parse_accounts(output: str, on_dropped: Optional[DropHook] = None) -> List[EmailAccount]:
    blocks, dropped = split_blocks(output, markers.ACCOUNT_START, markers.ACCOUNT_END)
    accounts = []

    for fields in blocks:
        if not fields.get("NAME") or not fields.get("TYPE"):
            dropped += 1
            continue
        accounts.append(EmailAccount(name=fields["NAME"], type=fields["TYPE"]))

    _report("account", dropped, on_dropped)
    return accounts


def parse_attachments(output: str, on_dropped: Optional[DropHook] = None) -> List[EmailAttachment]:
    blocks, dropped = split_blocks(output, markers.ATTACHMENT_START, markers.ATTACHMENT_END)
    attachments = []

    for fields in blocks:
        if not fields.get("NAME"):
            dropped += 1
            continue
        attachments.append(EmailAttachment(name=fields["NAME"]))

    _report("attachment", dropped, on_dropped)
    return attachments
