#!/usr/bin/env python3
"""
Apple Mail MCP Server - FastMCP implementation
Provides tools to search, read, organize and send Apple Mail messages
"""

import logging
from typing import Optional, List, Dict, Any, Annotated

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations
from pydantic import Field
from starlette.requests import Request
from starlette.responses import JSONResponse

from apple_mail_mcp import mail
from apple_mail_mcp.config import settings
from apple_mail_mcp.models import DraftEmail
from apple_mail_mcp.runner import AppleScriptError

# Configure logging
logger = logging.getLogger(__name__)

SERVER_NAME = "apple-mail-mcp-server"
VERSION = "1.0.0"

# Search results carry a content preview, not the full body
SEARCH_CONTENT_LIMIT = 500

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

EmailAddress = Annotated[str, Field(pattern=EMAIL_PATTERN, description="Email address")]

# Initialize FastMCP server
mcp = FastMCP("Apple Mail MCP", host=settings.host, port=settings.port)


# Decorator to inject user preferences into tool docstrings
def inject_preferences(func):
    """Decorator that appends user preferences to tool docstrings"""
    if settings.user_preferences:
        if func.__doc__:
            func.__doc__ = func.__doc__.rstrip() + f"\n\nUser Preferences: {settings.user_preferences}"
        else:
            func.__doc__ = f"User Preferences: {settings.user_preferences}"
    return func


def _truncate(content: str, limit: int = SEARCH_CONTENT_LIMIT) -> str:
    if len(content) > limit:
        return content[:limit] + "..."
    return content


@mcp.custom_route("/health", methods=["GET"])
async def health(request: Request) -> JSONResponse:
    return JSONResponse({"status": "healthy", "server": SERVER_NAME, "version": VERSION})


@mcp.tool(
    name="apple_mail_search",
    title="Search Apple Mail",
    annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=True),
)
@inject_preferences
async def search_emails(
    query: Annotated[Optional[str], Field(min_length=1, max_length=500)] = None,
    sender: Optional[str] = None,
    subject: Optional[str] = None,
    mailbox: Optional[str] = None,
    account: Optional[str] = None,
    unread_only: bool = False,
    limit: Annotated[int, Field(ge=1, le=100)] = 50
) -> Dict[str, Any]:
    """
    Search for emails in Apple Mail by various criteria.

    Args:
        query: General search text matched against subject and content
        sender: Filter by sender email or name
        subject: Filter by subject line (partial match)
        mailbox: Mailbox name (e.g., "INBOX", "Sent", "Receipts")
        account: Account name to search within
        unread_only: Only return unread emails (default: False)
        limit: Maximum results to return, 1-100 (default: 50)

    Returns:
        {"count", "query", "emails": [{"id", "subject", "sender", "date", "read", "flagged", "content"}]}
        Content is cut to the first 500 characters. Use the id with the other tools.
    """
    try:
        emails = await mail.search_emails(
            query=query,
            sender=sender,
            subject=subject,
            mailbox=mailbox,
            account=account,
            unread_only=unread_only,
            limit=limit,
        )
    except AppleScriptError as e:
        raise ToolError(f"Error searching emails: {e}")

    return {
        "count": len(emails),
        "query": query or "all",
        "emails": [
            {
                "id": email.id,
                "subject": email.subject,
                "sender": email.sender,
                "date": email.date,
                "read": email.read,
                "flagged": email.flagged,
                "content": _truncate(email.content),
            }
            for email in emails
        ],
    }


@mcp.tool(
    name="apple_mail_get_email",
    title="Get Email Details",
    annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False),
)
@inject_preferences
async def get_email(
    message_id: str,
    mailbox: Optional[str] = None,
    account: Optional[str] = None
) -> Dict[str, Any]:
    """
    Get full details of a specific email by its message ID.

    Args:
        message_id: Message ID from search results
        mailbox: Optional mailbox name for faster lookup
        account: Optional account name for faster lookup (used together with mailbox)

    Returns:
        Full email: id, subject, sender, recipients, date, read, flagged,
        mailbox, account, hasAttachments, attachmentCount, content (line breaks preserved)
    """
    try:
        email = await mail.get_email_by_id(message_id, mailbox=mailbox, account=account)
    except AppleScriptError as e:
        raise ToolError(f"Error getting email: {e}")

    if email is None:
        raise ToolError(f"Email with ID {message_id} not found")

    return email.to_dict()


@mcp.tool(
    name="apple_mail_list_mailboxes",
    title="List Mailboxes",
    annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False),
)
@inject_preferences
async def list_mailboxes() -> Dict[str, Any]:
    """
    Get a list of all mailboxes/folders across all accounts.

    Returns:
        {"count", "mailboxes": [{"name", "account", "unreadCount", "totalCount"}]}
    """
    try:
        mailboxes = await mail.list_mailboxes()
    except AppleScriptError as e:
        raise ToolError(f"Error listing mailboxes: {e}")

    return {"count": len(mailboxes), "mailboxes": [m.to_dict() for m in mailboxes]}


@mcp.tool(
    name="apple_mail_get_attachments",
    title="Get Email Attachments",
    annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False),
)
@inject_preferences
async def get_attachments(message_id: str) -> Dict[str, Any]:
    """
    List the attachments of an email.

    Args:
        message_id: Message ID to get attachments from

    Returns:
        {"count", "messageId", "attachments": [{"name"}]}
    """
    try:
        attachments = await mail.get_attachments(message_id)
    except AppleScriptError as e:
        raise ToolError(f"Error getting attachments: {e}")

    return {
        "count": len(attachments),
        "messageId": message_id,
        "attachments": [a.to_dict() for a in attachments],
    }


@mcp.tool(
    name="apple_mail_move_email",
    title="Move Email",
    annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, idempotentHint=True, openWorldHint=False),
)
@inject_preferences
async def move_email(
    message_id: str,
    target_mailbox: str,
    target_account: Optional[str] = None
) -> Dict[str, Any]:
    """
    Move an email to a different mailbox/folder.

    Args:
        message_id: Message ID to move
        target_mailbox: Destination mailbox name (e.g., "Archive", "Receipts")
        target_account: Destination account if moving between accounts

    Returns:
        {"success", "messageId", "targetMailbox"}; success is false if the move failed
    """
    success = await mail.move_email(message_id, target_mailbox, target_account)
    return {"success": success, "messageId": message_id, "targetMailbox": target_mailbox}


@mcp.tool(
    name="apple_mail_mark_read",
    title="Mark Email Read/Unread",
    annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, idempotentHint=True, openWorldHint=False),
)
@inject_preferences
async def mark_read(message_id: str, read: bool) -> Dict[str, Any]:
    """
    Mark an email as read or unread.

    Args:
        message_id: Message ID to update
        read: True to mark as read, False for unread

    Returns:
        {"success", "messageId", "read"}; success is false if the update failed
    """
    success = await mail.set_read_status(message_id, read)
    return {"success": success, "messageId": message_id, "read": read}


def _draft(subject, to, content, cc, bcc, account) -> DraftEmail:
    return DraftEmail(subject=subject, to=list(to), content=content, cc=list(cc or []), bcc=list(bcc or []), account=account)


@mcp.tool(
    name="apple_mail_create_draft",
    title="Create Draft Email",
    annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, idempotentHint=False, openWorldHint=False),
)
@inject_preferences
async def create_draft(
    subject: Annotated[str, Field(min_length=1, max_length=500)],
    to: Annotated[List[EmailAddress], Field(min_length=1)],
    content: str,
    cc: Optional[List[EmailAddress]] = None,
    bcc: Optional[List[EmailAddress]] = None,
    account: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create a new draft email in Apple Mail. The draft is saved but not sent.

    Args:
        subject: Email subject line
        to: Recipient email addresses (at least one)
        content: Email body
        cc: Optional CC recipients
        bcc: Optional BCC recipients
        account: Account to create the draft in (default account if omitted)

    Returns:
        {"success", "messageId", "subject", "recipientCount"}
    """
    draft = _draft(subject, to, content, cc, bcc, account)
    try:
        message_id = await mail.create_draft(draft)
    except AppleScriptError as e:
        raise ToolError(f"Error creating draft: {e}")

    return {
        "success": True,
        "messageId": message_id,
        "subject": subject,
        "recipientCount": len(draft.recipients),
    }


@mcp.tool(
    name="apple_mail_send_email",
    title="Send Email",
    annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True, idempotentHint=False, openWorldHint=False),
)
@inject_preferences
async def send_email(
    subject: Annotated[str, Field(min_length=1, max_length=500)],
    to: Annotated[List[EmailAddress], Field(min_length=1)],
    content: str,
    cc: Optional[List[EmailAddress]] = None,
    bcc: Optional[List[EmailAddress]] = None,
    account: Optional[str] = None
) -> Dict[str, Any]:
    """
    Send an email immediately through Apple Mail.

    WARNING: this sends right away, there is no confirmation step. Use
    apple_mail_create_draft for anything that needs review first.

    Args:
        subject: Email subject line
        to: Recipient email addresses (at least one)
        content: Email body
        cc: Optional CC recipients
        bcc: Optional BCC recipients
        account: Account to send from (default account if omitted)

    Returns:
        {"success", "messageId", "error", "subject", "recipientCount"}
    """
    draft = _draft(subject, to, content, cc, bcc, account)
    result = await mail.send_email(draft)

    return {
        "success": result.success,
        "messageId": result.message_id or "",
        "error": result.error,
        "subject": subject,
        "recipientCount": len(draft.recipients),
    }


@mcp.tool(
    name="apple_mail_list_accounts",
    title="List Accounts",
    annotations=ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=False),
)
@inject_preferences
async def list_accounts() -> Dict[str, Any]:
    """
    List all email accounts configured in Apple Mail.

    Returns:
        {"count", "accounts": [{"name", "email", "type"}]}
    """
    try:
        accounts = await mail.list_accounts()
    except AppleScriptError as e:
        raise ToolError(f"Error listing accounts: {e}")

    return {"count": len(accounts), "accounts": [a.to_dict() for a in accounts]}
