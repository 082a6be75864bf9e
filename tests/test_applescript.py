"""Tests for the AppleScript builders."""

import pytest

from apple_mail_mcp.applescript import (
    ScriptBuilder,
    quote,
    message_id_literal,
    search_collection,
    lookup_collection,
    build_search_script,
    build_get_email_script,
    build_list_mailboxes_script,
    build_list_accounts_script,
    build_compose_script,
    build_move_script,
    build_set_read_status_script,
    build_get_attachments_script,
    build_is_running_script,
    build_activate_script,
)
from apple_mail_mcp.models import DraftEmail


# ── quote ──────────────────────────────────────────────────────────────────────


class TestQuote:
    def test_plain_text(self) -> None:
        assert quote("INBOX") == '"INBOX"'

    def test_empty(self) -> None:
        assert quote("") == '""'

    def test_double_quotes_are_escaped(self) -> None:
        assert quote('say "hi"') == '"say \\"hi\\""'

    def test_backslashes_are_escaped(self) -> None:
        assert quote("C:\\temp") == '"C:\\\\temp"'

    def test_newlines_become_constants(self) -> None:
        assert quote("line one\nline two") == '("line one" & linefeed & "line two")'

    def test_crlf_and_tab(self) -> None:
        assert quote("a\r\nb\tc") == '("a" & return & linefeed & "b" & tab & "c")'

    def test_breakout_attempt_stays_inside_literal(self) -> None:
        rendered = quote('x" & (do shell script "rm -rf ~") & "')
        assert rendered.startswith('"') and rendered.endswith('"')
        assert '\\"' in rendered
        assert "\n" not in rendered


class TestMessageIdLiteral:
    def test_numeric_id_is_bare(self) -> None:
        assert message_id_literal("12345") == "12345"

    def test_surrounding_whitespace_is_ignored(self) -> None:
        assert message_id_literal(" 42 ") == "42"

    def test_non_numeric_id_is_quoted(self) -> None:
        assert message_id_literal("1 or true") == '"1 or true"'


# ── ScriptBuilder ──────────────────────────────────────────────────────────────


class TestScriptBuilder:
    def test_blocks_indent_and_close(self) -> None:
        b = ScriptBuilder(indent="  ")
        with b.tell():
            with b.block("repeat with x in y", "end repeat"):
                b.line("log x")
        assert b.render() == (
            'tell application "Mail"\n'
            "  repeat with x in y\n"
            "    log x\n"
            "  end repeat\n"
            "end tell\n"
        )

    def test_emit_field(self) -> None:
        b = ScriptBuilder()
        b.emit_field("NAME", "(name of aMailbox)")
        assert b.render() == 'set output to output & "NAME:" & (name of aMailbox) & linefeed\n'


# ── collection selection ───────────────────────────────────────────────────────


class TestSearchCollection:
    def test_mailbox_and_account(self) -> None:
        assert search_collection("Receipts", "Work") == 'every message of mailbox "Receipts" of account "Work"'

    def test_mailbox_only(self) -> None:
        assert search_collection("Receipts", None) == 'every message of mailbox "Receipts"'

    def test_account_only(self) -> None:
        assert search_collection(None, "Work") == 'every message of account "Work"'

    def test_default_inbox(self) -> None:
        assert search_collection() == "every message of inbox"

    @pytest.mark.parametrize("mailbox,account", [("", ""), (None, "")])
    def test_empty_strings_mean_not_given(self, mailbox, account) -> None:
        assert search_collection(mailbox, account) == "every message of inbox"


class TestLookupCollection:
    def test_mailbox_and_account(self) -> None:
        assert lookup_collection("7", "INBOX", "Work") == (
            '(every message of mailbox "INBOX" of account "Work" whose id is 7)'
        )

    def test_mailbox_only(self) -> None:
        assert lookup_collection("7", "INBOX") == '(every message of mailbox "INBOX" whose id is 7)'

    def test_account_alone_falls_back_to_global_lookup(self) -> None:
        assert lookup_collection("7", None, "Work") == "(every message whose id is 7)"


# ── operation scripts ──────────────────────────────────────────────────────────


class TestSearchScript:
    def test_without_filters_collects_everything(self) -> None:
        script = build_search_script(limit=10)
        assert "set end of matchingMessages to aMessage" in script
        assert " then\n" not in script.split("repeat with aMessage in allMessages")[1].split("end repeat")[0]
        assert "if (count of matchingMessages) >= 10 then exit repeat" in script

    def test_conditions_are_conjoined(self) -> None:
        script = build_search_script(query="invoice", sender="acme", subject="May", unread_only=True)
        assert (
            'if ((subject of aMessage contains "invoice") or (content of aMessage contains "invoice"))'
            ' and (sender of aMessage contains "acme")'
            ' and (subject of aMessage contains "May")'
            " and (read status of aMessage is false) then"
        ) in script

    def test_emits_message_blocks(self) -> None:
        script = build_search_script()
        for key in ("ID:", "SUBJECT:", "SENDER:", "DATE:", "READ:", "FLAGGED:", "CONTENT:"):
            assert f'"{key}"' in script
        assert '"MESSAGE_START"' in script and '"MESSAGE_END"' in script
        assert script.index("on flattenText") < script.index('tell application "Mail"')

    def test_content_line_breaks_are_escaped(self) -> None:
        script = build_search_script()
        assert '"CONTENT:" & my escapeText(content of aMessage)' in script
        assert '"SUBJECT:" & my flattenText(subject of aMessage)' in script
        assert script.index("on escapeText") < script.index('tell application "Mail"')
        assert 'replaceText(theText, "\\\\", "\\\\\\\\")' in script
        assert 'replaceText(theText, linefeed, "\\\\n")' in script

    def test_caller_values_are_quoted(self) -> None:
        script = build_search_script(sender='evil" & "x')
        assert 'sender of aMessage contains "evil\\" & \\"x"' in script


class TestGetEmailScript:
    def test_not_found_sentinel(self) -> None:
        script = build_get_email_script("42", mailbox="INBOX", account="Work")
        assert 'return "NOT_FOUND"' in script
        assert 'mailbox "INBOX" of account "Work" whose id is 42' in script

    def test_extra_fields(self) -> None:
        script = build_get_email_script("42")
        for key in ("RECIPIENTS:", "MAILBOX:", "ACCOUNT:", "ATTACHMENT_COUNT:"):
            assert f'"{key}"' in script
        assert "repeat with recip in to recipients of aMessage" in script

    def test_content_line_breaks_are_escaped(self) -> None:
        script = build_get_email_script("42")
        assert '"CONTENT:" & my escapeText(content of aMessage)' in script
        assert "on replaceText(theText, searchString, replacement)" in script


class TestListScripts:
    def test_mailboxes(self) -> None:
        script = build_list_mailboxes_script()
        assert "repeat with anAccount in accounts" in script
        assert "repeat with aMailbox in mailboxes of anAccount" in script
        assert '"UNREAD:"' in script and '"TOTAL:"' in script

    def test_accounts(self) -> None:
        script = build_list_accounts_script()
        assert '"ACCOUNT_START"' in script
        assert "(account type of anAccount as text)" in script

    def test_attachments(self) -> None:
        script = build_get_attachments_script("9")
        assert "set theMessage to first message whose id is 9" in script
        assert "repeat with anAttachment in mail attachments of theMessage" in script


class TestComposeScript:
    def test_one_recipient_statement_per_address(self) -> None:
        draft = DraftEmail(
            subject="Plans",
            to=["a@example.com", "b@example.com"],
            cc=["c@example.com"],
            bcc=["d@example.com"],
            content="See you",
        )
        script = build_compose_script(draft)
        assert script.count("make new to recipient") == 2
        assert script.count("make new cc recipient") == 1
        assert script.count("make new bcc recipient") == 1
        assert 'with properties {address:"b@example.com"}' in script
        assert "\n        send\n" not in script
        assert "return id of newMessage as text" in script

    def test_send_directive(self) -> None:
        script = build_compose_script(DraftEmail(subject="s", to=["a@example.com"]), send=True)
        assert "\n        send\n" in script

    def test_multiline_body_stays_on_one_script_line(self) -> None:
        draft = DraftEmail(subject="Hi", to=["a@example.com"], content='Dear "Bob",\nThanks.')
        script = build_compose_script(draft)
        assert 'content:("Dear \\"Bob\\"," & linefeed & "Thanks.")' in script

    def test_account_sets_sender(self) -> None:
        script = build_compose_script(DraftEmail(subject="s", to=["a@example.com"], account="Work"))
        assert 'email addresses of account "Work"' in script

    def test_no_account_no_sender(self) -> None:
        script = build_compose_script(DraftEmail(subject="s", to=["a@example.com"]))
        assert "set sender" not in script


class TestMutationScripts:
    def test_move_with_account(self) -> None:
        script = build_move_script("5", "Archive", "Work")
        assert 'set targetBox to mailbox "Archive" of account "Work"' in script
        assert "set mailbox of theMessage to targetBox" in script

    def test_move_without_account(self) -> None:
        assert 'set targetBox to mailbox "Archive"\n' in build_move_script("5", "Archive")

    @pytest.mark.parametrize("read,literal", [(True, "true"), (False, "false")])
    def test_set_read_status(self, read, literal) -> None:
        script = build_set_read_status_script("5", read)
        assert f"set read status of theMessage to {literal}" in script


class TestGuardScripts:
    def test_single_line(self) -> None:
        assert "\n" not in build_is_running_script()
        assert "\n" not in build_activate_script()
