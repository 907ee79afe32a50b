"""
SIDEKICK — Boomerang Sidekick in the terminal

Full-screen Textual TUI over the n8n chat webhook.
Conversations persist locally; replies land in the conversation that asked,
even if you have switched away in the meantime.

Commands:
  /new              Start a new conversation
  /list [query]     List (and search) conversations
  /open <n|id>      Switch to a conversation
  /delete [n|id]    Delete a conversation (current by default)
  /pin [n]          Pin or unpin a conversation
  /archive [n]      Archive or unarchive a conversation
  /archived         List archived conversations
  /select <n...>    Toggle conversations in the selection
  /selected         Show the selection
  /bulk-delete      Delete the selected conversations
  /bulk-archive     Archive the selected conversations
  /find <text>      Search messages in this conversation
  /edit <#> <text>  Replace the text of message #
  /rm <#>           Delete message #
  /copy <#>         Copy message # to the clipboard
  /export [path]    Save this conversation as a text transcript
  /suggest [n]      Show suggested questions / use question n
  /dark             Toggle dark mode
  /lang <en|nl>     Switch language
  /status           Show session info
  /clear            Clear the chat display
  /help             Show available commands
  /exit, /quit      Exit

Shortcuts:
  Ctrl+K   New chat        Ctrl+O   Conversations
  Ctrl+D   Dark mode       Esc      Leave selection
  Ctrl+C   Quit
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import httpx
import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Center, Horizontal, ScrollableContainer, Vertical
from textual.screen import ModalScreen, Screen
from textual.widget import Widget
from textual.widgets import Button, Footer, Header, Input, Static

# -- Suppress console logs BEFORE any other sidekick imports -----
from sidekick.log import suppress_console_logs

suppress_console_logs()

from sidekick.chat.gateway import ChatGateway
from sidekick.chat.manager import ConversationManager, ordered_conversations
from sidekick.chat.models import Conversation, Message, Toast
from sidekick.chat.titles import TitleGenerator, truncate_title
from sidekick.chat.toasts import ToastBoard
from sidekick.config import Config
from sidekick.formatting import export_filename, format_message_time, format_relative, format_transcript
from sidekick.i18n import DEFAULT_LANGUAGE, Translator
from sidekick.language import LocaleResolver, detect_country
from sidekick.log import setup_logging
from sidekick.storage.store import ConversationStore

log = setup_logging("sidekick.cli", log_file="cli.log")
cli = typer.Typer(no_args_is_help=False, add_completion=False)

# -- Constants ---------------------------------------------------
VERSION = "1.0.0"
APP_NAME = "SIDEKICK"
APP_TAGLINE = "Boomerang training · meetings · the Collective"

LOGO_TEXT = """
███████╗██╗██████╗ ███████╗██╗  ██╗██╗ ██████╗██╗  ██╗
██╔════╝██║██╔══██╗██╔════╝██║ ██╔╝██║██╔════╝██║ ██╔╝
███████╗██║██║  ██║█████╗  █████╔╝ ██║██║     █████╔╝
╚════██║██║██║  ██║██╔══╝  ██╔═██╗ ██║██║     ██╔═██╗
███████║██║██████╔╝███████╗██║  ██╗██║╚██████╗██║  ██╗
╚══════╝╚═╝╚═════╝ ╚══════╝╚═╝  ╚═╝╚═╝ ╚═════╝╚═╝  ╚═╝
"""

TOAST_SEVERITY = {"success": "information", "info": "information", "error": "error"}


# ================================================================
#  MESSAGE WIDGETS
# ================================================================


class UserMessage(Widget):
    """User message with blue accent bar."""

    DEFAULT_CLASSES = "user-msg"

    def __init__(self, msg: Message, num: int, label: str, when: str) -> None:
        super().__init__()
        self._msg = msg
        self._num = num
        self._label = label
        self._when = when

    def compose(self) -> ComposeResult:
        meta = f"  ·  {self._when}" if self._when else ""
        yield Static(f"  {self._label}  ·  #{self._num}{meta}", classes="user-msg-header")
        yield Static(self._msg.content, classes="user-msg-body", markup=False)


class AssistantMessage(Widget):
    """Assistant reply with green accent bar and markdown rendering."""

    DEFAULT_CLASSES = "assistant-msg"

    def __init__(self, msg: Message, num: int, label: str, when: str) -> None:
        super().__init__()
        self._msg = msg
        self._num = num
        self._label = label
        self._when = when

    def compose(self) -> ComposeResult:
        meta = f"  ·  {self._when}" if self._when else ""
        yield Static(f"  {self._label}  ·  #{self._num}{meta}", classes="assistant-msg-header")
        if self._msg.content.strip():
            yield Static(Markdown(self._msg.content), classes="assistant-msg-body")
        else:
            yield Static("[dim]No text content[/]", classes="assistant-msg-body")


class ThinkingIndicator(Static):
    """Shown while the active conversation waits for a reply."""

    DEFAULT_CLASSES = "thinking"

    def __init__(self, text: str) -> None:
        super().__init__(f"●  {text}")


# ================================================================
#  SPLASH & CONFIRM SCREENS
# ================================================================


class SplashScreen(Screen):
    """Logo splash. Auto-transitions after 2s or on any key."""

    def compose(self) -> ComposeResult:
        with Center():
            with Vertical(id="splash-container"):
                yield Static(LOGO_TEXT, id="splash-logo")
                yield Static(f"───  {APP_TAGLINE}  ───", id="splash-tagline")
                yield Static(f"v{VERSION} · n8n webhook chat", id="splash-version")
                yield Static("press any key to continue", id="splash-hint")

    def on_mount(self) -> None:
        self.set_timer(2.0, self._go_to_chat)

    def on_key(self, _event: object) -> None:
        self._go_to_chat()

    def _go_to_chat(self) -> None:
        if self.app.screen is self:
            self.app.switch_screen("chat")


class ConfirmScreen(ModalScreen[bool]):
    """Yes/No question; dismisses with the answer."""

    BINDINGS = [Binding("escape", "answer(False)", "Cancel")]

    def __init__(self, question: str) -> None:
        super().__init__()
        self._question = question

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-dialog"):
            yield Static(self._question, id="confirm-question")
            with Horizontal(id="confirm-buttons"):
                yield Button("Yes", variant="error", id="confirm-yes")
                yield Button("No", variant="primary", id="confirm-no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "confirm-yes")

    def action_answer(self, answer: bool) -> None:
        self.dismiss(answer)


# ================================================================
#  CHAT SCREEN
# ================================================================


class ChatScreen(Screen):
    """Main chat interface: messages, input and keybindings."""

    BINDINGS = [
        Binding("ctrl+k", "new_chat", "New Chat", key_display="^K"),
        Binding("ctrl+o", "list_conversations", "Chats", key_display="^O"),
        Binding("ctrl+d", "toggle_dark", "Dark", key_display="^D"),
        Binding("escape", "exit_selection", "Unselect", show=False),
        Binding("ctrl+c", "quit_app", "Quit", key_display="^C", priority=True),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.session_start: datetime = datetime.now()
        self._listing: list[str] = []
        self._selected: set[str] = set()
        self._ready: bool = False

    @property
    def manager(self) -> ConversationManager:
        return self.app.manager  # type: ignore[attr-defined]

    @property
    def t(self) -> Translator:
        return self.manager.translate

    # -- Layout --------------------------------------------------

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Static("", id="status-bar")
        with Vertical(id="chat-container"):
            with ScrollableContainer(id="chat-log"):
                yield Static("●  Loading conversations …", classes="system-msg")
        yield Input(id="chat-input")
        yield Footer()

    def on_mount(self) -> None:
        self.app.title = APP_NAME
        self.app.sub_title = APP_TAGLINE
        self.query_one("#chat-container", Vertical).border_title = f" ↺  {APP_NAME} "
        self.app.chat_screen = self  # type: ignore[attr-defined]
        self._startup()

    @property
    def chat_log(self) -> ScrollableContainer:
        """Cached access to the chat log container."""
        return self.query_one("#chat-log", ScrollableContainer)

    # -- Startup (async worker) ----------------------------------

    @work(exclusive=True, name="startup")
    async def _startup(self) -> None:
        """Resolve the language, restore conversations, then pull remote history."""
        app: SidekickApp = self.app  # type: ignore[assignment]
        try:
            language = await app.resolver.resolve()
            self.manager.translate.language = language
            self.manager.load()
            self._ready = True
            self.refresh_view()
            self.query_one("#chat-input", Input).focus()
        except Exception as exc:
            log.error(f"Startup failed: {exc}", exc_info=True)
            self._mount_system(f"[#f85149]✗[/]  {exc}", "system-error")
            return

        self._mount_system(f"●  {self.t('loading_conversation')}", "system-msg")
        try:
            await self.manager.hydrate()
        except Exception as exc:
            log.error(f"Session hydration failed: {exc}", exc_info=True)
        self.refresh_view()

    # -- Rendering -----------------------------------------------

    def refresh_view(self) -> None:
        """Rebuild the chat log for the active conversation."""
        if not self._ready:
            return
        self.query_one("#chat-input", Input).placeholder = self.t("type_your_message")
        chat_log = self.chat_log
        chat_log.remove_children()

        active = self.manager.active
        if active is None:
            return

        widgets: list[Widget] = []
        for num, msg in enumerate(active.messages, 1):
            when = format_message_time(msg.timestamp, self.t) if msg.timestamp else ""
            if msg.role == "user":
                widgets.append(UserMessage(msg, num, self.t("you"), when))
            else:
                widgets.append(AssistantMessage(msg, num, self.t("assistant_name"), when))

        if active.has_only_seed:
            widgets.append(Static(self._suggestions_text(), classes="welcome-card"))
        if self.manager.is_loading:
            widgets.append(ThinkingIndicator(self.t("thinking")))

        if widgets:
            chat_log.mount(*widgets)
        chat_log.scroll_end(animate=False)
        self._refresh_status()

    # -- Input Handling ------------------------------------------

    def on_input_submitted(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        event.input.value = ""
        if not text:
            return
        if text.startswith("/"):
            parts = text.split(maxsplit=1)
            cmd = parts[0].lower()
            args = parts[1] if len(parts) > 1 else ""
            self._dispatch_command(cmd, args)
        else:
            self._send_user_message(text)

    # -- Send Message --------------------------------------------

    def _send_user_message(self, text: str) -> None:
        active = self.manager.active
        if not self._ready or active is None:
            self._mount_system("[#d29922]⚠[/]  Still loading — please wait …", "system-error")
            return
        if self.manager.is_pending(active.id):
            self._mount_system("[#d29922]⚠[/]  Please wait for the current response …", "system-error")
            return
        self._do_send(active.id, active.session_id, text)

    @work(exclusive=False, group="send")
    async def _do_send(self, conversation_id: str, session_id: str, text: str) -> None:
        try:
            await self.manager.send(conversation_id, session_id, text)
        except Exception as exc:
            log.error(f"Send failed: {exc}", exc_info=True)
            self._mount_system(f"[#f85149]✗[/]  {exc}", "system-error")

    # -- Command Dispatch ----------------------------------------

    def _dispatch_command(self, cmd: str, args: str) -> None:
        commands: dict[str, Callable[[], None]] = {
            "/exit": lambda: self.action_quit_app(),
            "/quit": lambda: self.action_quit_app(),
            "/q": lambda: self.action_quit_app(),
            "/help": lambda: self._show_help(),
            "/clear": lambda: self.action_clear_chat(),
            "/new": lambda: self.action_new_chat(),
            "/list": lambda: self._show_conversations(args),
            "/archived": lambda: self._show_archived(),
            "/open": lambda: self._open(args),
            "/delete": lambda: self._delete(args),
            "/pin": lambda: self._pin(args),
            "/archive": lambda: self._archive(args),
            "/select": lambda: self._select(args),
            "/selected": lambda: self._show_selection(),
            "/bulk-delete": lambda: self._bulk_delete(),
            "/bulk-archive": lambda: self._bulk_archive(),
            "/find": lambda: self._find(args),
            "/edit": lambda: self._edit(args),
            "/rm": lambda: self._remove_message(args),
            "/copy": lambda: self._copy(args),
            "/export": lambda: self._export(args),
            "/suggest": lambda: self._suggest(args),
            "/dark": lambda: self.action_toggle_dark(),
            "/lang": lambda: self._set_language(args),
            "/status": lambda: self._show_status(),
        }
        handler = commands.get(cmd)
        if not self._ready and cmd not in ("/exit", "/quit", "/q", "/help"):
            self._mount_system("[#d29922]⚠[/]  Still loading — please wait …", "system-error")
            return
        if handler:
            handler()
        else:
            self._mount_system(f"[#f85149]✗[/]  Unknown command: {cmd} — type /help", "system-error")

    # -- /help ---------------------------------------------------

    def _show_help(self) -> None:
        lines = [
            f"[bold #58a6ff]─── {APP_NAME} Commands ───[/]\n",
            "  [bold #3fb950]/new[/]              Start a new conversation",
            "  [bold #3fb950]/list [query][/]      List or search conversations",
            "  [bold #3fb950]/open <n|id>[/]      Switch to a conversation",
            "  [bold #3fb950]/delete [n|id][/]    Delete a conversation",
            "  [bold #3fb950]/pin [n][/]          Pin / unpin",
            "  [bold #3fb950]/archive [n][/]      Archive / unarchive",
            "  [bold #3fb950]/archived[/]         List archived conversations",
            "  [bold #3fb950]/select <n...>[/]    Toggle selection",
            "  [bold #3fb950]/bulk-delete[/]      Delete selected",
            "  [bold #3fb950]/bulk-archive[/]     Archive selected",
            "  [bold #3fb950]/find <text>[/]      Search this conversation",
            "  [bold #3fb950]/edit <#> <text>[/]  Edit message #",
            "  [bold #3fb950]/rm <#>[/]           Delete message #",
            "  [bold #3fb950]/copy <#>[/]         Copy message #",
            "  [bold #3fb950]/export [path][/]    Save a text transcript",
            "  [bold #3fb950]/suggest [n][/]      Suggested questions",
            "  [bold #3fb950]/dark[/]             Toggle dark mode",
            "  [bold #3fb950]/lang <en|nl>[/]     Switch language",
            "  [bold #3fb950]/status[/]           Session details",
            "  [bold #3fb950]/clear[/]            Clear the display",
            "  [bold #3fb950]/exit[/]             Quit",
            "",
            "[bold #58a6ff]─── Keyboard Shortcuts ───[/]\n",
            "  [bold #6e7681]Ctrl+K[/]  New chat       [bold #6e7681]Ctrl+O[/]  Conversations",
            "  [bold #6e7681]Ctrl+D[/]  Dark mode      [bold #6e7681]Esc[/]     Leave selection",
            "  [bold #6e7681]Ctrl+C[/]  Quit",
            "",
            f"[dim italic]  Tip: All logs saved to {Config.LOG_DIR}[/]",
        ]
        self._mount_system("\n".join(lines), "system-info-block")

    # -- Conversations -------------------------------------------

    def action_list_conversations(self) -> None:
        self._show_conversations("")

    def _show_conversations(self, query: str) -> None:
        conversations = self.manager.visible_conversations(query)
        self._listing = [c.id for c in conversations]
        if not conversations:
            key = "no_conversations_found" if query.strip() else "no_conversations_yet"
            self._mount_system(f"[#8b949e]{self.t(key)}[/]", "system-msg")
            return

        lines = [f"[bold #58a6ff]─── {self.t('conversations')} ({len(conversations)}) ───[/]\n"]
        lines.extend(self._conversation_line(i, c) for i, c in enumerate(conversations, 1))
        lines.append("\n[#6e7681]  /open <n> to switch · /select <n...> to pick several[/]")
        self._mount_system("\n".join(lines), "system-info-block")

    def _show_archived(self) -> None:
        conversations = self.manager.archived_conversations()
        self._listing = [c.id for c in conversations]
        if not conversations:
            self._mount_system(f"[#8b949e]{self.t('no_conversations_found')}[/]", "system-msg")
            return
        lines = [f"[bold #bc8cff]─── {self.t('archived_conversations')} ({len(conversations)}) ───[/]\n"]
        lines.extend(self._conversation_line(i, c) for i, c in enumerate(conversations, 1))
        self._mount_system("\n".join(lines), "system-info-block")

    def _conversation_line(self, num: int, conv: Conversation) -> str:
        marks = ""
        if conv.id == self.manager.active_id:
            marks += "[#3fb950]▶[/] "
        if conv.pinned:
            marks += "\U0001f4cc "
        if self.manager.is_pending(conv.id):
            marks += "[#d29922]…[/] "
        if conv.id in self._selected:
            marks += "[#bc8cff]✓[/] "
        age = format_relative(conv.timestamp, self.t)
        return f"  [#6e7681]{num:>2}.[/] {marks}{truncate_title(conv.title)}  [#6e7681]{age}[/]"

    def _resolve_conversation(self, ref: str) -> str | None:
        """A list number from the last /list, or a conversation id."""
        ref = ref.strip()
        if not ref:
            return self.manager.active_id
        if ref.isdigit():
            index = int(ref) - 1
            if 0 <= index < len(self._listing):
                return self._listing[index]
            self._mount_system(f"[#f85149]✗[/]  No conversation #{ref} — run /list first", "system-error")
            return None
        if self.manager.get(ref) is not None:
            return ref
        self._mount_system(f"[#f85149]✗[/]  Unknown conversation: {ref}", "system-error")
        return None

    def _open(self, ref: str) -> None:
        if not ref.strip():
            self._mount_system("[#f85149]✗[/]  Usage: /open <n|id>", "system-error")
            return
        conversation_id = self._resolve_conversation(ref)
        if conversation_id and self.manager.select(conversation_id):
            self.refresh_view()

    def action_new_chat(self) -> None:
        self.manager.new_conversation()
        self.refresh_view()

    def _delete(self, ref: str) -> None:
        conversation_id = self._resolve_conversation(ref)
        if conversation_id is None:
            return

        def confirmed(answer: bool | None) -> None:
            if answer:
                self.manager.delete(conversation_id)
                self._selected.discard(conversation_id)
                self.refresh_view()

        self.app.push_screen(ConfirmScreen(self.t("delete_conversation_confirm")), confirmed)

    def _pin(self, ref: str) -> None:
        conversation_id = self._resolve_conversation(ref)
        if conversation_id is not None:
            self.manager.toggle_pin(conversation_id)

    def _archive(self, ref: str) -> None:
        conversation_id = self._resolve_conversation(ref)
        if conversation_id is not None:
            self.manager.toggle_archive(conversation_id)
            self.refresh_view()

    # -- Selection mode ------------------------------------------

    def _select(self, args: str) -> None:
        refs = args.split()
        if not refs:
            self._mount_system("[#f85149]✗[/]  Usage: /select <n...>  (numbers from /list)", "system-error")
            return
        if refs == ["all"]:
            ids = [c.id for c in self.manager.visible_conversations()]
            self._selected = set() if self._selected == set(ids) else set(ids)
        else:
            for ref in refs:
                conversation_id = self._resolve_conversation(ref)
                if conversation_id is None:
                    continue
                self._selected ^= {conversation_id}
        self._show_selection()

    def _show_selection(self) -> None:
        count = len(self._selected)
        self._mount_system(f"[#bc8cff]{self.t('conversations_selected', count=count)}[/]", "system-msg")
        self._refresh_status()

    def action_exit_selection(self) -> None:
        if self._selected:
            self._selected.clear()
            self._show_selection()

    def _bulk_delete(self) -> None:
        if not self._selected:
            self.manager.toasts.push(self.t("no_conversations_selected"), "info")
            return
        ids = set(self._selected)

        def confirmed(answer: bool | None) -> None:
            if answer:
                self.manager.bulk_delete(ids)
                self._selected.clear()
                self.refresh_view()

        self.app.push_screen(ConfirmScreen(self.t("delete_bulk_confirm", count=len(ids))), confirmed)

    def _bulk_archive(self) -> None:
        self.manager.bulk_archive(self._selected)
        self._selected.clear()
        self.refresh_view()

    # -- Messages ------------------------------------------------

    def _message_at(self, ref: str) -> Message | None:
        messages = self.manager.messages
        if ref.isdigit() and 1 <= int(ref) <= len(messages):
            return messages[int(ref) - 1]
        self._mount_system(f"[#f85149]✗[/]  No message #{ref}", "system-error")
        return None

    def _find(self, query: str) -> None:
        if not query.strip():
            self._mount_system("[#f85149]✗[/]  Usage: /find <text>", "system-error")
            return
        messages = self.manager.messages
        found = self.manager.search_messages(query)
        if not found:
            self._mount_system(f"[#8b949e]{self.t('no_messages_found')}[/]", "system-msg")
            return
        lines = [f"[bold #58a6ff]─── “{query}” ({len(found)}) ───[/]\n"]
        for msg in found:
            num = messages.index(msg) + 1
            role = self.t("you") if msg.role == "user" else self.t("assistant_name")
            snippet = msg.content.replace("\n", " ")
            snippet = snippet if len(snippet) <= 80 else snippet[:77] + "…"
            lines.append(f"  [#6e7681]#{num:<3}[/] [bold]{role}[/]  {snippet}")
        self._mount_system("\n".join(lines), "system-info-block")

    def _edit(self, args: str) -> None:
        parts = args.split(maxsplit=1)
        if len(parts) < 2:
            self._mount_system("[#f85149]✗[/]  Usage: /edit <#> <new text>", "system-error")
            return
        msg = self._message_at(parts[0])
        if msg is not None and msg.id is not None:
            self.manager.edit_message(msg.id, parts[1])
            self.refresh_view()

    def _remove_message(self, ref: str) -> None:
        msg = self._message_at(ref.strip())
        if msg is None or msg.id is None:
            return

        def confirmed(answer: bool | None) -> None:
            if answer:
                self.manager.delete_message(msg.id)  # type: ignore[arg-type]
                self.refresh_view()

        self.app.push_screen(ConfirmScreen(self.t("delete_message_confirm")), confirmed)

    def _copy(self, ref: str) -> None:
        msg = self._message_at(ref.strip())
        if msg is None:
            return
        try:
            self.app.copy_to_clipboard(msg.content)
        except Exception as exc:
            log.error(f"Copy failed: {exc}")
            self.manager.toasts.push(self.t("failed_to_copy"), "error")
            return
        self.manager.toasts.push(self.t("copied_to_clipboard"), "success")

    def _export(self, target: str) -> None:
        result = self.manager.export()
        if result is None:
            return
        filename, text = result
        path = Path(target.strip()).expanduser() if target.strip() else Path.cwd() / filename
        if path.is_dir():
            path = path / filename
        try:
            path.write_text(text, encoding="utf-8")
        except OSError as exc:
            log.error(f"Export failed: {exc}")
            self._mount_system(f"[#f85149]✗[/]  Could not write {path}: {exc}", "system-error")
            return
        self._mount_system(f"[#3fb950]✓[/]  Saved transcript to [#58a6ff]{path}[/]", "system-success")

    # -- Suggestions ---------------------------------------------

    def _suggestions_text(self) -> str:
        lines = [f"[bold #e6edf3]{self.t('suggested_questions')}[/]"]
        for i, question in enumerate(self.t.suggested_questions(), 1):
            lines.append(f"  [#58a6ff]/suggest {i}[/]  [#8b949e]│[/] {question}")
        return "\n".join(lines)

    def _suggest(self, ref: str) -> None:
        questions = self.t.suggested_questions()
        ref = ref.strip()
        if ref.isdigit() and 1 <= int(ref) <= len(questions):
            chat_input = self.query_one("#chat-input", Input)
            chat_input.value = questions[int(ref) - 1]
            chat_input.focus()
            return
        self._mount_system(self._suggestions_text(), "system-info-block")

    # -- Settings ------------------------------------------------

    def action_toggle_dark(self) -> None:
        settings = self.manager.set_dark_mode(not self.manager.settings.dark_mode)
        self.app.apply_theme()  # type: ignore[attr-defined]
        self.manager.toasts.push(self.t("dark_mode_on" if settings.dark_mode else "dark_mode_off"), "success")

    def _set_language(self, lang: str) -> None:
        if not self.manager.set_language(lang.strip().lower()):
            self._mount_system("[#f85149]✗[/]  Usage: /lang <en|nl>", "system-error")
            return
        self.refresh_view()
        self.manager.toasts.push(self.t("language_changed"), "success")

    # -- /status -------------------------------------------------

    def _show_status(self) -> None:
        app: SidekickApp = self.app  # type: ignore[assignment]
        elapsed = datetime.now() - self.session_start
        elapsed_str = f"{int(elapsed.total_seconds() // 60)}m {int(elapsed.total_seconds() % 60)}s"
        active = self.manager.active
        lines = [
            f"[bold #58a6ff]─── {APP_NAME} Status ───[/]\n",
            f"  Conversation [#58a6ff]{active.id if active else '—'}[/]",
            f"  Session      [#58a6ff]{active.session_id if active else '—'}[/]",
            f"  Messages     {len(active.messages) if active else 0}",
            f"  Saved chats  {len(self.manager.conversations)}",
            f"  Waiting      {len(self.manager.pending)}",
            f"  Language     {self.t.language} [#6e7681]({app.resolver.state.value})[/]",
            f"  Dark mode    {'on' if self.manager.settings.dark_mode else 'off'}",
            f"  Session time {elapsed_str}",
            f"  Webhook      [#6e7681]{Config.WEBHOOK_URL}[/]",
            f"  Data         [#6e7681]{self.manager.store.root}[/]",
            f"  Logs         [#6e7681]{Config.LOG_DIR}[/]",
        ]
        self._mount_system("\n".join(lines), "system-info-block")

    # -- /clear --------------------------------------------------

    def action_clear_chat(self) -> None:
        chat_log = self.chat_log
        chat_log.remove_children()
        chat_log.mount(Static("[#8b949e]Chat cleared.[/]", classes="system-msg"))

    # -- Quit (Ctrl+C) -------------------------------------------

    def action_quit_app(self) -> None:
        self._do_quit()

    @work(exclusive=True, name="quit")
    async def _do_quit(self) -> None:
        app: SidekickApp = self.app  # type: ignore[assignment]
        try:
            self.manager.cancel_background()
            await app.http.aclose()
        except Exception as exc:
            log.error(f"HTTP client close error: {exc}")
        finally:
            app.exit()

    # -- Helpers -------------------------------------------------

    def _mount_system(self, text: str, css_class: str = "system-msg") -> None:
        """Mount a system message into the chat log."""
        chat_log = self.chat_log
        chat_log.mount(Static(text, classes=css_class))
        chat_log.scroll_end(animate=False)

    def _build_status_text(self) -> str:
        """Build the single-line status bar string."""
        active = self.manager.active
        if active is None:
            return "[#6e7681]loading…[/]"
        title = f"[#58a6ff]{truncate_title(active.title)}[/]"
        state = "[#d29922]●[/] waiting" if self.manager.is_loading else "[#3fb950]●[/] ready"
        parts = [state, title, f"msgs: {len(active.messages)}", self.t.language]
        others = len(self.manager.pending - {active.id})
        if others:
            parts.append(f"[#d29922]{others} other chat(s) waiting[/]")
        if self._selected:
            parts.append(f"[#bc8cff]{self.t('conversations_selected', count=len(self._selected))}[/]")
        return "  │  ".join(parts)

    def _refresh_status(self) -> None:
        """Update the status bar widget."""
        self.query_one("#status-bar", Static).update(self._build_status_text())


# ================================================================
#  APP
# ================================================================


class SidekickApp(App):
    """SIDEKICK — Full-screen TUI for the Boomerang Sidekick webhook."""

    TITLE = APP_NAME
    SUB_TITLE = APP_TAGLINE
    CSS_PATH = "sidekick.tcss"

    SCREENS = {"chat": ChatScreen}

    def __init__(self, store: ConversationStore | None = None,
                 http: httpx.AsyncClient | None = None) -> None:
        super().__init__()
        self.store = store or ConversationStore()
        self.http = http or httpx.AsyncClient(follow_redirects=True)
        self.chat_screen: ChatScreen | None = None

        translator = Translator(self.store.load_language() or DEFAULT_LANGUAGE)
        self.toasts = ToastBoard(listener=self._show_toast)
        self.manager = ConversationManager(
            self.store,
            ChatGateway(self.http),
            TitleGenerator(self.http, translate=translator),
            translate=translator,
            toasts=self.toasts,
            on_change=self._on_state_change,
        )
        self.resolver = LocaleResolver(self.store, lambda: detect_country(self.http))

    def on_mount(self) -> None:
        self.apply_theme()
        self.push_screen(SplashScreen())

    def apply_theme(self) -> None:
        self.theme = "textual-dark" if self.manager.settings.dark_mode else "textual-light"

    def _show_toast(self, toast: Toast) -> None:
        self.notify(toast.message, severity=TOAST_SEVERITY[toast.type], timeout=self.toasts.ttl)

    def _on_state_change(self) -> None:
        if self.chat_screen is not None and self.chat_screen.is_mounted:
            self.chat_screen.refresh_view()


# ================================================================
#  ENTRY POINTS
# ================================================================


def _translator(store: ConversationStore) -> Translator:
    return Translator(store.load_language() or DEFAULT_LANGUAGE)


@cli.command()
def chat() -> None:
    """Start an interactive SIDEKICK session."""
    SidekickApp().run()


@cli.command("list")
def list_conversations(
    query: str = typer.Option("", "--query", "-q", help="Only conversations whose title or messages match"),
    archived: bool = typer.Option(False, "--archived", help="Show archived conversations instead"),
) -> None:
    """List saved conversations."""
    store = ConversationStore()
    t = _translator(store)
    conversations = [
        c for c in ordered_conversations(store.load_conversations())
        if c.archived == archived and c.matches(query)
    ]
    console = Console()
    if not conversations:
        console.print(t("no_conversations_found" if query or archived else "no_conversations_yet"))
        return

    active_id = store.load_active_id()
    table = Table(title=t("archived_conversations" if archived else "conversations"))
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Msgs", justify="right")
    table.add_column("Updated", style="dim")
    for conv in conversations:
        marks = ("▶ " if conv.id == active_id else "") + ("\U0001f4cc " if conv.pinned else "")
        table.add_row(conv.id, marks + truncate_title(conv.title), str(len(conv.messages)),
                      format_relative(conv.timestamp, t))
    console.print(table)


@cli.command()
def export(
    conversation_id: str = typer.Argument(..., help="Conversation id (see `list`)"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="File or directory to write"),
) -> None:
    """Write a plain-text transcript of a conversation."""
    store = ConversationStore()
    conv = store.get_conversation(conversation_id)
    if conv is None:
        typer.echo(f"Unknown conversation: {conversation_id}", err=True)
        raise typer.Exit(code=1)

    filename = export_filename(conv.title)
    path = out or Path.cwd() / filename
    if path.is_dir():
        path = path / filename
    try:
        path.write_text(format_transcript(conv, _translator(store)), encoding="utf-8")
    except OSError as exc:
        log.error(f"Export of {conv.id} to {path} failed: {exc}")
        typer.echo(f"Could not write {path}: {exc}", err=True)
        raise typer.Exit(code=1)
    log.info(f"Exported {conv.id} to {path}")
    typer.echo(str(path))


@cli.command()
def delete(
    conversation_ids: list[str] = typer.Argument(..., help="Conversation ids to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete conversations."""
    store = ConversationStore()
    t = _translator(store)
    ids = set(conversation_ids)
    if not yes:
        typer.confirm(t("delete_bulk_confirm", count=len(ids)), abort=True)

    stored = store.load_conversations()
    remaining = [c for c in stored if c.id not in ids]
    store.save_conversations(remaining)
    if store.load_active_id() in ids:
        store.save_active_id(None)

    removed = len(stored) - len(remaining)
    log.info(f"Deleted {removed} conversations from the command line")
    typer.echo(t("conversations_deleted", count=removed))


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
