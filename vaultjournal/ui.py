# -*- coding: utf-8 -*-
"""Textual UI for vaultjournal.

This file contains ONLY the UI: screens, modals, and the App wrapper. All
state changes go through :class:`vaultjournal.orchestrator.SyncOrchestrator`,
which the app owns as ``self.app.orchestrator``.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import date as Date, timedelta
from typing import Optional

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, VerticalScroll
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, Checkbox, Footer, Header, Input, Static, TextArea

from .config import load_config
from .db import LocalStore
from .errors import ConfigurationError, DecryptionError, JournalError
from .insights import compute_insights, history_by_month, month_label
from .orchestrator import SyncOrchestrator

CSS = """
Screen {
    align: center middle;
}
#modal-card {
    width: 90;
    height: auto;
    max-height: 100%;
    border: round $accent;
    padding: 1 2;
}
.title {
    text-style: bold;
    content-align: center middle;
    width: 100%;
}
.hint {
    color: $text-muted;
}
#content {
    height: 12;
}
Horizontal {
    height: auto;
}
"""


def _status_line(orch: SyncOrchestrator) -> str:
    status = orch.status
    parts = [status.state.value.upper()]
    if orch.identity is not None and not orch.identity.has_remote:
        parts.append("local only")
    elif status.offline:
        parts.append("OFFLINE")
    if status.syncing:
        parts.append("syncing...")
    elif status.queued:
        parts.append(f"{status.queued} queued")
    if status.message:
        parts.append(status.message)
    return " | ".join(parts)


# ---------------------------------------------------------------------------
# Modals
# ---------------------------------------------------------------------------

class ConfirmResetModal(ModalScreen[None]):
    """Confirm wiping the vault from this device (and optionally the server)."""

    def compose(self) -> ComposeResult:
        yield Container(
            Static("RESET VAULT?", classes="title"),
            Static("Local entries and the vault config are deleted from this device.", classes="hint"),
            Checkbox("Also delete the encrypted copy on the sync server", id="delete_remote"),
            Horizontal(Button("Reset", id="yes", variant="error"), Button("Cancel", id="no")),
            id="modal-card",
        )

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if (event.button.id or "") != "yes":
            self.app.pop_screen()
            return
        delete_remote = self.query_one("#delete_remote", Checkbox).value
        try:
            await self.app.orchestrator.reset_vault(delete_remote=delete_remote)
        except JournalError as exc:
            self.app.notify(str(exc), severity="error")
            return
        orch = self.app.orchestrator
        if orch.message:
            self.app.notify(orch.message, severity="warning")
        self.app.notify("Vault reset.")
        await self.app.show_start_screen()


class SyncSettingsModal(ModalScreen[None]):
    """Change the sync server or rotate the API key of this vault."""

    def compose(self) -> ComposeResult:
        identity = self.app.orchestrator.identity
        yield Container(
            Static("SYNC SETTINGS", classes="title"),
            Static(f"Vault: {identity.vault_id if identity else '?'}", classes="hint"),
            Static("Sync server (empty = local only)", classes="hint"),
            Input(value=(identity.endpoint or "") if identity else "", id="endpoint"),
            Input(placeholder="new API key", password=True, id="api_key"),
            Horizontal(Button("Save", id="save", variant="primary"), Button("Cancel", id="cancel")),
            id="modal-card",
        )

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if (event.button.id or "") != "save":
            self.app.pop_screen()
            return
        endpoint = self.query_one("#endpoint", Input).value
        orch = self.app.orchestrator
        # blank keeps the current key
        api_key = self.query_one("#api_key", Input).value.strip() or orch.identity.api_key
        try:
            await orch.update_credential(api_key, endpoint=endpoint)
        except JournalError as exc:
            self.app.notify(str(exc), severity="error")
            return
        self.app.notify("Sync settings saved.")
        self.app.pop_screen()


class InsightsModal(ModalScreen[None]):
    """Totals, mood spread, top tags and energy counts."""

    BINDINGS = [Binding("escape", "app.pop_screen", "Close")]

    def compose(self) -> ComposeResult:
        stats = compute_insights(self.app.orchestrator.document)
        lines = [
            f"Entries: {stats.total_entries}",
            f"First: {stats.first_date or 'N/A'}    Last: {stats.last_date or 'N/A'}",
            f"Average mood: {stats.average_mood if stats.average_mood is not None else 'N/A'}",
            "",
        ]
        for scale, count in stats.mood_distribution.items():
            bar = "#" * int(stats.mood_percentage(scale) / 5)
            lines.append(f"{scale:>2} {bar:<20} {count}")
        lines.append("")
        if stats.top_tags:
            lines.append("Tags: " + ", ".join(f"{tag} ({n})" for tag, n in stats.top_tags))
        else:
            lines.append("No tags yet")
        lines.append(f"Entries with energy drained: {stats.energy_drained_count}")
        lines.append(f"Entries with energy gained: {stats.energy_gained_count}")
        yield Container(
            Static("INSIGHTS", classes="title"),
            Static("\n".join(lines), markup=False),
            Button("Close", id="close"),
            id="modal-card",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.app.pop_screen()


class HistoryModal(ModalScreen[Optional[str]]):
    """Entries grouped by month; picking one returns its date."""

    BINDINGS = [Binding("escape", "close", "Close")]

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="modal-card"):
            yield Static("HISTORY", classes="title")
            history = history_by_month(self.app.orchestrator.document)
            if not history:
                yield Static("No entries yet", classes="hint")
            for month, entries in history:
                yield Static(month_label(month), classes="title")
                for entry in entries:
                    label = f"{entry.date}  {entry.title}" if entry.title else entry.date
                    yield Button(label, id=f"day-{entry.date}")
            yield Button("Close", id="close")

    def action_close(self) -> None:
        self.dismiss(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        self.dismiss(bid[len("day-"):] if bid.startswith("day-") else None)


# ---------------------------------------------------------------------------
# Screens
# ---------------------------------------------------------------------------

class SetupScreen(Screen):
    """First run: create a new vault or attach an existing one."""

    BINDINGS = [Binding("escape", "app.quit", "Quit")]

    def compose(self) -> ComposeResult:
        endpoint = str(load_config().get("endpoint", ""))
        yield Header()
        yield Container(
            Static("VAULT SETUP", classes="title"),
            Static("Sync server (leave empty for a local-only journal)", classes="hint"),
            Input(value=endpoint, placeholder="https://sync.example.com", id="endpoint"),
            Input(placeholder="API key", password=True, id="api_key"),
            Button("Create New Vault", id="create", variant="primary"),
            Static("Connect an existing vault", classes="hint"),
            Input(placeholder="vault id", id="vault_id"),
            Input(placeholder="password", password=True, id="password"),
            Horizontal(Button("Connect", id="connect"), Button("Exit", id="exit")),
            id="modal-card",
        )
        yield Footer()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        orch = self.app.orchestrator
        endpoint = self.query_one("#endpoint", Input).value.strip() or None
        api_key = self.query_one("#api_key", Input).value.strip() or None
        if bid == "create":
            try:
                identity = await orch.create_vault(endpoint=endpoint, api_key=api_key)
            except JournalError as exc:
                self.app.notify(str(exc), severity="error")
                return
            self.app.notify(f"Vault created: {identity.vault_id}")
            await self.app.switch_screen(UnlockScreen(first_time=True))
        elif bid == "connect":
            vault_id = self.query_one("#vault_id", Input).value.strip()
            password = self.query_one("#password", Input).value
            if not vault_id or not password:
                self.app.notify("Vault id and password required")
                return
            try:
                await orch.setup_existing_vault(vault_id, password, endpoint=endpoint, api_key=api_key)
            except DecryptionError:
                self.app.notify("Failed to decrypt data. Wrong password?", severity="error")
                return
            except ConfigurationError as exc:
                self.app.notify(f"Configuration error: {exc}", severity="error")
                return
            except JournalError as exc:
                self.app.notify(str(exc), severity="error")
                return
            await self.app.switch_screen(JournalScreen())
        elif bid == "exit":
            await self.app.action_quit()


class UnlockScreen(Screen):
    """Password prompt. Downloads and merges remote data before unlocking."""

    BINDINGS = [Binding("escape", "app.quit", "Quit")]

    def __init__(self, first_time: bool = False) -> None:
        super().__init__()
        self.first_time = first_time

    def compose(self) -> ComposeResult:
        identity = self.app.orchestrator.identity
        hint = "Choose a password for this vault." if self.first_time else "Enter your vault password."
        yield Header()
        yield Container(
            Static("UNLOCK", classes="title"),
            Static(f"Vault: {identity.vault_id if identity else '?'}", classes="hint"),
            Static(hint, classes="hint"),
            Input(placeholder="password", password=True, id="password"),
            Horizontal(
                Button("Unlock", id="unlock", variant="primary"),
                Button("Reset Vault", id="reset"),
                Button("Exit", id="exit"),
            ),
            id="modal-card",
        )
        yield Footer()

    async def on_input_submitted(self, message: Input.Submitted) -> None:
        await self._unlock()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "unlock":
            await self._unlock()
        elif bid == "reset":
            await self.app.push_screen(ConfirmResetModal())
        elif bid == "exit":
            await self.app.action_quit()

    async def _unlock(self) -> None:
        field = self.query_one("#password", Input)
        if not field.value:
            self.app.notify("Password required")
            return
        try:
            await self.app.orchestrator.unlock(field.value)
        except DecryptionError:
            field.value = ""
            self.app.notify("Failed to decrypt data. Wrong password?", severity="error")
            return
        except JournalError as exc:
            self.app.notify(str(exc), severity="error")
            return
        await self.app.switch_screen(JournalScreen())


class JournalScreen(Screen):
    """One entry per day: navigate dates, edit, save."""

    BINDINGS = [
        Binding("ctrl+s", "save", "Save"),
        Binding("ctrl+left", "prev_day", "Prev day"),
        Binding("ctrl+right", "next_day", "Next day"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.current = Date.today()

    def compose(self) -> ComposeResult:
        yield Header()
        with Container(id="modal-card"):
            with Horizontal():
                yield Button("<", id="prev")
                yield Button("Today", id="today")
                yield Button(">", id="next")
                self.date_label = Static("", classes="title")
                yield self.date_label
            self.title_in = Input(placeholder="title", id="title")
            yield self.title_in
            self.content_in = TextArea(id="content")
            yield self.content_in
            self.tags_in = Input(placeholder="tags, comma separated", id="tags")
            yield self.tags_in
            self.mood_in = Input(placeholder="mood 1-10", id="mood")
            yield self.mood_in
            self.drained_in = Input(placeholder="what drained my energy", id="drained")
            yield self.drained_in
            self.gained_in = Input(placeholder="what gave me energy", id="gained")
            yield self.gained_in
            with Horizontal():
                yield Button("Save", id="save", variant="primary")
                yield Button("Sync Now", id="sync")
                yield Button("Delete", id="delete")
                yield Button("Lock", id="lock")
                yield Button("Reset Vault", id="reset")
            with Horizontal():
                yield Button("History", id="history")
                yield Button("Insights", id="insights")
                yield Button("Sync Settings", id="settings")
            self.status_label = Static("", classes="hint")
            yield self.status_label
        yield Footer()

    def on_mount(self) -> None:
        self.load_entry()
        self.set_interval(1.0, self.refresh_status)

    def refresh_status(self) -> None:
        self.status_label.update(_status_line(self.app.orchestrator))

    def load_entry(self) -> None:
        entry = self.app.orchestrator.entry_for(self.current.isoformat())
        self.date_label.update(self.current.strftime("%A, %d %B %Y"))
        self.title_in.value = entry.title
        self.content_in.text = entry.content
        self.tags_in.value = ", ".join(entry.tags)
        self.mood_in.value = str(entry.mood)
        self.drained_in.value = entry.energy_drained
        self.gained_in.value = entry.energy_gained
        self.refresh_status()

    async def action_save(self) -> None:
        orch = self.app.orchestrator
        # edit a copy so a rejected save leaves the open document untouched
        entry = replace(orch.entry_for(self.current.isoformat()))
        try:
            mood = int(self.mood_in.value.strip())
        except ValueError:
            self.app.notify("Mood must be a number from 1 to 10")
            return
        entry.title = self.title_in.value.strip()
        entry.content = self.content_in.text
        entry.tags = [t.strip() for t in self.tags_in.value.split(",") if t.strip()]
        entry.mood = mood
        entry.energy_drained = self.drained_in.value
        entry.energy_gained = self.gained_in.value
        try:
            await orch.save_entry(entry)
        except JournalError as exc:
            self.app.notify(str(exc), severity="error")
            return
        self.app.notify("Entry saved")
        self.refresh_status()

    def action_prev_day(self) -> None:
        self.current -= timedelta(days=1)
        self.load_entry()

    def action_next_day(self) -> None:
        self.current += timedelta(days=1)
        self.load_entry()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        orch = self.app.orchestrator
        if bid == "prev":
            self.action_prev_day()
        elif bid == "next":
            self.action_next_day()
        elif bid == "today":
            self.current = Date.today()
            self.load_entry()
        elif bid == "save":
            await self.action_save()
        elif bid == "sync":
            try:
                await orch.sync_now()
            except DecryptionError:
                self.app.notify("Failed to decrypt data. Wrong password?", severity="error")
                return
            except JournalError as exc:
                self.app.notify(str(exc), severity="error")
                return
            self.load_entry()
            self.app.notify(orch.message or "Synced")
        elif bid == "delete":
            if await orch.delete_entry(self.current.isoformat()):
                self.app.notify("Entry deleted")
            self.load_entry()
        elif bid == "lock":
            await orch.lock()
            await self.app.switch_screen(UnlockScreen())
        elif bid == "reset":
            await self.app.push_screen(ConfirmResetModal())
        elif bid == "history":
            await self.app.push_screen(HistoryModal(), self.jump_to)
        elif bid == "insights":
            await self.app.push_screen(InsightsModal())
        elif bid == "settings":
            await self.app.push_screen(SyncSettingsModal())

    def jump_to(self, day: Optional[str]) -> None:
        if day:
            self.current = Date.fromisoformat(day)
            self.load_entry()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

class VaultJournalApp(App):
    """Textual App wrapper. Owns the orchestrator and picks the first screen."""

    TITLE = "VAULT//JOURNAL"
    CSS = CSS

    def __init__(self, db_path: Optional[str] = None) -> None:
        super().__init__()
        self.cfg = load_config()
        self.orchestrator = SyncOrchestrator.from_config(self.cfg, LocalStore(db_path))

    async def on_mount(self) -> None:
        await self.orchestrator.load()
        await self.show_start_screen()

    async def show_start_screen(self) -> None:
        # drop whatever is stacked above the default screen
        while len(self.screen_stack) > 1:
            self.pop_screen()
        if self.orchestrator.identity is None:
            await self.push_screen(SetupScreen())
        else:
            await self.push_screen(UnlockScreen())

    async def on_app_blur(self, event: events.AppBlur) -> None:
        await self.orchestrator.flush()

    async def action_quit(self) -> None:
        await self.orchestrator.aclose()
        self.exit()
