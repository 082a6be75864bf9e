"""
AppleScript builders for the Apple Mail bridge.

Every read script serializes its results into delimited blocks::

    MESSAGE_START
    ID:12345
    SUBJECT:Hello
    ...
    MESSAGE_END

Caller-supplied values only ever enter a script through ``quote()`` (or
``message_id_literal()``), so a value can never terminate its string literal
or spill onto a new script line.
"""

import re
from contextlib import contextmanager
from typing import Optional, List, Iterator

from apple_mail_mcp.models import DraftEmail

# Block markers shared with the parser
MESSAGE_START = "MESSAGE_START"
MESSAGE_END = "MESSAGE_END"
MAILBOX_START = "MAILBOX_START"
MAILBOX_END = "MAILBOX_END"
ACCOUNT_START = "ACCOUNT_START"
ACCOUNT_END = "ACCOUNT_END"
ATTACHMENT_START = "ATTACHMENT_START"
ATTACHMENT_END = "ATTACHMENT_END"

NOT_FOUND = "NOT_FOUND"
SUCCESS = "SUCCESS"

# Line-break escaping for multi-line field values
ESCAPE_CHAR = "\\"
ESCAPED_NEWLINE = "\\n"

_LINE_BREAKS = re.compile(r"(\r\n|\r|\n|\t)")
_BREAK_CONSTANTS = {
    "\r\n": "return & linefeed",
    "\r": "return",
    "\n": "linefeed",
    "\t": "tab",
}


def quote(value: str) -> str:
    """
    Render a Python string as an AppleScript string expression.

    Backslashes and double quotes are escaped. Line breaks and tabs are
    spliced in through the ``return``/``linefeed``/``tab`` constants so the
    rendered expression always stays on a single script line.

    Args:
        value: Arbitrary text supplied by the caller

    Returns:
        An AppleScript expression evaluating to exactly ``value``
    """
    pieces = []
    for part in _LINE_BREAKS.split(str(value)):
        if not part:
            continue
        if part in _BREAK_CONSTANTS:
            pieces.append(_BREAK_CONSTANTS[part])
        else:
            escaped = part.replace("\\", "\\\\").replace('"', '\\"')
            pieces.append(f'"{escaped}"')

    if not pieces:
        return '""'
    if len(pieces) == 1:
        return pieces[0]
    return "(" + " & ".join(pieces) + ")"


def message_id_literal(message_id: str) -> str:
    """Mail message ids are integers; anything else is quoted and simply never matches."""
    message_id = str(message_id).strip()
    if message_id.isascii() and message_id.isdigit():
        return message_id
    return quote(message_id)


class ScriptBuilder:
    """Line-oriented AppleScript writer with block indentation."""

    def __init__(self, indent: str = "    "):
        self._indent = indent
        self._depth = 0
        self._lines: List[str] = []

    def line(self, text: str = "") -> "ScriptBuilder":
        self._lines.append(f"{self._indent * self._depth}{text}" if text else "")
        return self

    def lines(self, *texts: str) -> "ScriptBuilder":
        for text in texts:
            self.line(text)
        return self

    @contextmanager
    def block(self, opener: str, closer: str) -> Iterator["ScriptBuilder"]:
        self.line(opener)
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            self.line(closer)

    def tell(self, application: str = "Mail"):
        return self.block(f"tell application {quote(application)}", "end tell")

    def emit(self, text: str) -> "ScriptBuilder":
        """Append a literal marker line to the ``output`` variable."""
        return self.line(f"set output to output & {quote(text)} & linefeed")

    def emit_field(self, key: str, expression: str) -> "ScriptBuilder":
        """Append a ``KEY:value`` line built from an AppleScript expression."""
        return self.line(f"set output to output & {quote(key + ':')} & {expression} & linefeed")

    def render(self) -> str:
        return "\n".join(self._lines) + "\n"


def _add_text_handlers(builder: ScriptBuilder) -> None:
    # Collapse line breaks inside free text so one field stays on one output line
    with builder.block("on flattenText(theText)", "end flattenText"):
        builder.lines(
            "set AppleScript's text item delimiters to {return, linefeed}",
            "set textParts to text items of theText",
            "set AppleScript's text item delimiters to \" \"",
            "set flatText to textParts as string",
            "set AppleScript's text item delimiters to \"\"",
            "return flatText",
        )
    builder.line()
    with builder.block("on replaceText(theText, searchString, replacement)", "end replaceText"):
        builder.lines(
            "set AppleScript's text item delimiters to searchString",
            "set textParts to text items of theText",
            "set AppleScript's text item delimiters to replacement",
            "set theText to textParts as string",
            "set AppleScript's text item delimiters to \"\"",
            "return theText",
        )
    builder.line()
    # Keep line breaks as \n tokens (and \ as \\); parser.unescape_text reverses it
    with builder.block("on escapeText(theText)", "end escapeText"):
        builder.lines(
            f"set theText to replaceText(theText, {quote(ESCAPE_CHAR)}, {quote(ESCAPE_CHAR * 2)})",
            f"set theText to replaceText(theText, return & linefeed, {quote(ESCAPED_NEWLINE)})",
            f"set theText to replaceText(theText, return, {quote(ESCAPED_NEWLINE)})",
            f"set theText to replaceText(theText, linefeed, {quote(ESCAPED_NEWLINE)})",
            "return theText",
        )
    builder.line()


def _mailbox_reference(mailbox: str, account: Optional[str] = None) -> str:
    if account:
        return f"mailbox {quote(mailbox)} of account {quote(account)}"
    return f"mailbox {quote(mailbox)}"


def search_collection(mailbox: Optional[str] = None, account: Optional[str] = None) -> str:
    """
    Pick the message collection to search.

    Precedence: mailbox + account, then mailbox alone, then every message of
    the account, then the unified inbox.
    """
    if mailbox and account:
        return f"every message of {_mailbox_reference(mailbox, account)}"
    if mailbox:
        return f"every message of {_mailbox_reference(mailbox)}"
    if account:
        return f"every message of account {quote(account)}"
    return "every message of inbox"


def lookup_collection(message_id: str, mailbox: Optional[str] = None, account: Optional[str] = None) -> str:
    """Same precedence as search, but an unscoped lookup searches every message."""
    id_literal = message_id_literal(message_id)
    if mailbox and account:
        return f"(every message of {_mailbox_reference(mailbox, account)} whose id is {id_literal})"
    if mailbox:
        return f"(every message of {_mailbox_reference(mailbox)} whose id is {id_literal})"
    return f"(every message whose id is {id_literal})"


def search_conditions(
    query: Optional[str] = None,
    sender: Optional[str] = None,
    subject: Optional[str] = None,
    unread_only: bool = False
) -> List[str]:
    conditions = []
    if query:
        conditions.append(
            f"((subject of aMessage contains {quote(query)}) or (content of aMessage contains {quote(query)}))"
        )
    if sender:
        conditions.append(f"(sender of aMessage contains {quote(sender)})")
    if subject:
        conditions.append(f"(subject of aMessage contains {quote(subject)})")
    if unread_only:
        conditions.append("(read status of aMessage is false)")
    return conditions


def build_search_script(
    query: Optional[str] = None,
    sender: Optional[str] = None,
    subject: Optional[str] = None,
    mailbox: Optional[str] = None,
    account: Optional[str] = None,
    unread_only: bool = False,
    limit: int = 50
) -> str:
    """
    Build the search script.

    Args:
        query: Substring matched against subject or content
        sender: Substring matched against the sender
        subject: Substring matched against the subject
        mailbox: Mailbox to search
        account: Account to search
        unread_only: Only keep unread messages
        limit: Stop once this many messages matched

    Returns:
        AppleScript emitting one MESSAGE block per match
    """
    conditions = search_conditions(query, sender, subject, unread_only)

    b = ScriptBuilder()
    _add_text_handlers(b)
    with b.tell():
        b.line("set matchingMessages to {}")
        b.line(f"set allMessages to {search_collection(mailbox, account)}")
        with b.block("repeat with aMessage in allMessages", "end repeat"):
            if conditions:
                with b.block(f"if {' and '.join(conditions)} then", "end if"):
                    b.line("set end of matchingMessages to aMessage")
            else:
                b.line("set end of matchingMessages to aMessage")
            b.line(f"if (count of matchingMessages) >= {int(limit)} then exit repeat")
        b.line()
        b.line('set output to ""')
        with b.block("repeat with aMessage in matchingMessages", "end repeat"):
            b.emit(MESSAGE_START)
            b.emit_field("ID", "(id of aMessage as text)")
            b.emit_field("SUBJECT", "my flattenText(subject of aMessage)")
            b.emit_field("SENDER", "(sender of aMessage)")
            b.emit_field("DATE", "(date received of aMessage as text)")
            b.emit_field("READ", "(read status of aMessage as text)")
            b.emit_field("FLAGGED", "(flagged status of aMessage as text)")
            b.emit_field("CONTENT", "my escapeText(content of aMessage)")
            b.emit(MESSAGE_END)
        b.line("return output")
    return b.render()


def build_get_email_script(message_id: str, mailbox: Optional[str] = None, account: Optional[str] = None) -> str:
    """Build the lookup-by-id script; prints NOT_FOUND when nothing matches."""
    b = ScriptBuilder()
    _add_text_handlers(b)
    with b.tell():
        b.line(f"set msgs to {lookup_collection(message_id, mailbox, account)}")
        with b.block("if (count of msgs) = 0 then", "end if"):
            b.line(f"return {quote(NOT_FOUND)}")
        b.line()
        b.line("set aMessage to item 1 of msgs")
        b.line('set recipientList to ""')
        with b.block("repeat with recip in to recipients of aMessage", "end repeat"):
            b.line('set recipientList to recipientList & (address of recip) & ","')
        b.line()
        b.line('set output to ""')
        b.emit(MESSAGE_START)
        b.emit_field("ID", "(id of aMessage as text)")
        b.emit_field("SUBJECT", "my flattenText(subject of aMessage)")
        b.emit_field("SENDER", "(sender of aMessage)")
        b.emit_field("RECIPIENTS", "recipientList")
        b.emit_field("DATE", "(date received of aMessage as text)")
        b.emit_field("READ", "(read status of aMessage as text)")
        b.emit_field("FLAGGED", "(flagged status of aMessage as text)")
        b.emit_field("MAILBOX", "(name of mailbox of aMessage)")
        b.emit_field("ACCOUNT", "(name of account of mailbox of aMessage)")
        b.emit_field("ATTACHMENT_COUNT", "((count of mail attachments of aMessage) as text)")
        b.emit_field("CONTENT", "my escapeText(content of aMessage)")
        b.emit(MESSAGE_END)
        b.line("return output")
    return b.render()


def build_list_mailboxes_script() -> str:
    b = ScriptBuilder()
    with b.tell():
        b.line('set output to ""')
        with b.block("repeat with anAccount in accounts", "end repeat"):
            b.line("set accountName to name of anAccount")
            with b.block("repeat with aMailbox in mailboxes of anAccount", "end repeat"):
                b.emit(MAILBOX_START)
                b.emit_field("NAME", "(name of aMailbox)")
                b.emit_field("ACCOUNT", "accountName")
                b.emit_field("UNREAD", "((unread count of aMailbox) as text)")
                b.emit_field("TOTAL", "((count of messages of aMailbox) as text)")
                b.emit(MAILBOX_END)
        b.line("return output")
    return b.render()


def build_list_accounts_script() -> str:
    b = ScriptBuilder()
    with b.tell():
        b.line('set output to ""')
        with b.block("repeat with anAccount in accounts", "end repeat"):
            b.emit(ACCOUNT_START)
            b.emit_field("NAME", "(name of anAccount)")
            b.emit_field("TYPE", "(account type of anAccount as text)")
            b.emit(ACCOUNT_END)
        b.line("return output")
    return b.render()


def build_compose_script(draft: DraftEmail, send: bool = False) -> str:
    """
    Build the script that creates an outgoing message and optionally sends it.

    Args:
        draft: Subject, body, recipients and optional sending account
        send: Send the message instead of leaving it as a draft

    Returns:
        AppleScript returning the new message id
    """
    properties = f"{{subject:{quote(draft.subject)}, content:{quote(draft.content)}, visible:false}}"

    b = ScriptBuilder()
    with b.tell():
        b.line(f"set newMessage to make new outgoing message with properties {properties}")
        if draft.account:
            with b.block("try", "end try"):
                b.line(
                    f"set sender of newMessage to (item 1 of email addresses of account {quote(draft.account)})"
                )
        with b.block("tell newMessage", "end tell"):
            for kind, addresses in (("to", draft.to), ("cc", draft.cc), ("bcc", draft.bcc)):
                for address in addresses or []:
                    b.line(
                        f"make new {kind} recipient at end of {kind} recipients "
                        f"with properties {{address:{quote(address)}}}"
                    )
            if send:
                b.line("send")
        b.line("return id of newMessage as text")
    return b.render()


def build_move_script(message_id: str, target_mailbox: str, target_account: Optional[str] = None) -> str:
    b = ScriptBuilder()
    with b.tell():
        b.line(f"set theMessage to first message whose id is {message_id_literal(message_id)}")
        b.line(f"set targetBox to {_mailbox_reference(target_mailbox, target_account)}")
        b.line("set mailbox of theMessage to targetBox")
        b.line(f"return {quote(SUCCESS)}")
    return b.render()


def build_set_read_status_script(message_id: str, read: bool) -> str:
    b = ScriptBuilder()
    with b.tell():
        b.line(f"set theMessage to first message whose id is {message_id_literal(message_id)}")
        b.line(f"set read status of theMessage to {'true' if read else 'false'}")
        b.line(f"return {quote(SUCCESS)}")
    return b.render()


def build_get_attachments_script(message_id: str) -> str:
    b = ScriptBuilder()
    with b.tell():
        b.line(f"set theMessage to first message whose id is {message_id_literal(message_id)}")
        b.line('set output to ""')
        with b.block("repeat with anAttachment in mail attachments of theMessage", "end repeat"):
            b.emit(ATTACHMENT_START)
            b.emit_field("NAME", "(name of anAttachment)")
            b.emit(ATTACHMENT_END)
        b.line("return output")
    return b.render()


def build_is_running_script() -> str:
    return 'tell application "System Events" to (name of processes) contains "Mail"'


def build_activate_script() -> str:
    return 'tell application "Mail" to activate'
