"""
Value records exchanged between the AppleScript bridge and the MCP tools.

Every record is a fresh snapshot of Apple Mail state, built from parsed
AppleScript output right before it is handed back to the caller.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any


@dataclass
class EmailMessage:
    id: str
    subject: str
    sender: str = ""
    date: str = ""
    read: bool = False
    flagged: bool = False
    content: str = ""
    recipients: Optional[List[str]] = None
    mailbox: Optional[str] = None
    account: Optional[str] = None
    attachment_count: Optional[int] = None

    @property
    def has_attachments(self) -> Optional[bool]:
        if self.attachment_count is None:
            return None
        return self.attachment_count > 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "subject": self.subject,
            "sender": self.sender,
        }
        if self.recipients is not None:
            data["recipients"] = list(self.recipients)
        data["date"] = self.date
        data["read"] = self.read
        data["flagged"] = self.flagged
        if self.mailbox is not None:
            data["mailbox"] = self.mailbox
        if self.account is not None:
            data["account"] = self.account
        if self.attachment_count is not None:
            data["hasAttachments"] = self.has_attachments
            data["attachmentCount"] = self.attachment_count
        data["content"] = self.content
        return data


@dataclass
class Mailbox:
    name: str
    account: str
    unread_count: Optional[int] = None
    total_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "account": self.account}
        if self.unread_count is not None:
            data["unreadCount"] = self.unread_count
        if self.total_count is not None:
            data["totalCount"] = self.total_count
        return data


@dataclass
class EmailAccount:
    # Mail does not expose a usable address here; email stays empty.
    name: str
    type: str
    email: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "email": self.email, "type": self.type}


@dataclass
class EmailAttachment:
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name}


@dataclass
class DraftEmail:
    """An outgoing message, used both for drafts and immediate sends."""

    subject: str
    to: List[str]
    content: str = ""
    cc: List[str] = field(default_factory=list)
    bcc: List[str] = field(default_factory=list)
    account: Optional[str] = None

    def __post_init__(self):
        if not self.to:
            raise ValueError("At least one recipient required")

    @property
    def recipients(self) -> List[str]:
        return [*self.to, *self.cc, *self.bcc]


@dataclass
class SendEmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.message_id is not None:
            data["messageId"] = self.message_id
        if self.error is not None:
            data["error"] = self.error
        return data
