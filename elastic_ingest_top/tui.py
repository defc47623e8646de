"""
Terminal UI.

Everything here reads ``DashboardState.view()`` snapshots and sends commands
back to the state; nothing in this module computes rates, filters or sorts.
"""

import functools
import logging
from datetime import datetime
from typing import Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import DataTable, Input, Sparkline, Static
from textual.worker import Worker

from elastic_ingest_top import colormaps
from elastic_ingest_top.formatting import format_bytes, format_duration, format_number, sparkline
from elastic_ingest_top.models import Health, IndexDetails, IndexRecord
from elastic_ingest_top.poller import DetailSource, Poller
from elastic_ingest_top.sorting import SortKey, SortOrder
from elastic_ingest_top.state import DashboardState, DashboardView, DetailsView

logger = logging.getLogger(__name__)

TICK_SECONDS = 0.1
SPINNER_FRAMES = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"
DETAIL_PAGE = 10

COLUMNS = [
    ("Index Name", SortKey.NAME),
    ("Docs Count", SortKey.DOC_COUNT),
    ("Rate (/s)", SortKey.RATE),
    ("Size", SortKey.SIZE),
    ("Health", SortKey.HEALTH),
]
HEALTH_STYLES = {Health.GREEN: "green", Health.YELLOW: "yellow", Health.RED: "red"}

HELP_TEXT = """\
[b]Navigation[/b]
  ↑/k ↓/j        move selection
  PgUp/PgDn      page up / down
  g/Home G/End   first / last row
  Enter          index details

[b]Sorting[/b]
  ←/h →/l        previous / next sort column
  r              reverse sort order

[b]Filtering[/b]
  /              edit filter (Enter/Esc to leave, Ctrl+U to clear)
  x              exclude selected index
  X              clear exclusions
  .              show/hide system indices

  Filter examples:
    name contains "logs" and rate_per_sec > 10
    matches(.name, "^metrics-") || health != "green"
    not startswith(name, ".") and doc_count >= 1000

[b]View[/b]
  space          pause / resume polling
  + / -          poll faster / slower
  1 2 3          toggle chart, health, index table
  c / C          next / previous colormap
  ?              this help
  q / Esc        quit
"""


def health_text(health: Health) -> Text:
    return Text(health.value, style=HEALTH_STYLES[health])


# --------------------------------------------------------------------------- #
# Popups                                                                      #
# --------------------------------------------------------------------------- #
def render_details(view: DetailsView) -> Text:
    text = Text()
    if view.loading:
        text.append(f"Loading details for {view.index_name}...", style="dim")
        return text
    if view.error:
        text.append(view.error, style="red")
        return text
    details: Optional[IndexDetails] = view.details
    if details is None:
        return text

    def row(label: str, value: object) -> None:
        text.append(f"{label:<22}", style="bold")
        text.append(f"{value if value not in (None, '') else '-'}\n")

    text.append(f"{details.name}\n\n", style="bold cyan")
    row("Health", details.health)
    row("Status", details.status)
    row("UUID", details.uuid)
    row("Provided name", details.provided_name)
    row("Created", details.creation_date)
    row("Documents", format_number(details.doc_count))
    row("Rate", f"{format_number(details.rate_per_sec)} /s")
    row("Size", format_bytes(details.size_bytes))
    row("Shards", f"{details.primary_shards} primary, {details.replica_shards} replica")
    row("Segments", details.total_segments)
    row("Frozen", "yes" if details.is_frozen else "no")
    row("Partial (snapshot)", "yes" if details.is_partial else "no")
    row("ILM policy", details.ilm_policy)
    row("ILM phase", details.ilm_phase)
    row("Templates", ", ".join(details.templates))

    if details.data_stream:
        stream = details.data_stream
        text.append("\nData stream\n", style="bold cyan")
        row("Name", stream.name)
        row("Timestamp field", stream.timestamp_field)
        row("Generation", stream.generation)
        row(
            "Backing index",
            f"{stream.backing_index_position} of {stream.total_backing_indices}"
            + (" (write index)" if stream.is_write_index else ""),
        )
        row("Template", stream.template)
        row("Retention", stream.data_retention)

    text.append("\nShard allocation\n", style="bold cyan")
    for shard in sorted(details.shard_allocation, key=lambda s: (s.shard_id, not s.primary)):
        kind = "p" if shard.primary else "r"
        docs = format_number(shard.docs) if shard.docs is not None else "-"
        text.append(f"  {shard.shard_id:>3} {kind}  {shard.state:<12} {shard.node:<24} {docs:>8} {shard.size or '-'}\n")
    return text


class DetailsScreen(ModalScreen):
    BINDINGS = [
        Binding("escape,enter,q", "close", "Close"),
        Binding("up,k", "scroll_by(-1)", show=False),
        Binding("down,j", "scroll_by(1)", show=False),
        Binding("pageup", f"scroll_by(-{DETAIL_PAGE})", show=False),
        Binding("pagedown", f"scroll_by({DETAIL_PAGE})", show=False),
    ]

    def __init__(self, state: DashboardState):
        super().__init__()
        self.state = state
        self._last: Optional[DetailsView] = None

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="details-body"):
            yield Static(id="details-text")

    def on_mount(self) -> None:
        self.query_one("#details-body").border_title = " Index Details "
        self.refresh_details()
        self.set_interval(TICK_SECONDS, self.refresh_details)

    def refresh_details(self) -> None:
        details = self.state.view().details
        if details == self._last:
            return
        self.query_one("#details-text", Static).update(render_details(details))
        self.query_one("#details-body", VerticalScroll).scroll_to(y=details.scroll, animate=False)
        self._last = details

    def action_scroll_by(self, delta: int) -> None:
        self.state.scroll_detail(delta)
        self.refresh_details()

    def action_close(self) -> None:
        self.state.close_detail()
        self.dismiss()


class HelpScreen(ModalScreen):
    BINDINGS = [Binding("escape,enter,q,question_mark", "close", "Close")]

    def compose(self) -> ComposeResult:
        with VerticalScroll(id="help-body"):
            yield Static(HELP_TEXT)

    def on_mount(self) -> None:
        self.query_one("#help-body").border_title = " Help "

    def action_close(self) -> None:
        self.dismiss()


class FilterInput(Input):
    """Filter editor; Esc leaves filter mode and Ctrl+U clears the expression."""

    BINDINGS = [
        Binding("escape", "app.leave_filter", "Done", show=False),
        Binding("ctrl+u", "app.clear_filter", "Clear", show=False),
    ]


# --------------------------------------------------------------------------- #
# Main app                                                                    #
# --------------------------------------------------------------------------- #
class IngestTopApp(App):
    CSS = """
    #header { height: 3; border: round $primary-darken-2; padding: 0 1; }
    #top { height: 9; }
    #rate-chart { width: 70%; border: round $primary-darken-2; padding: 0 1; }
    #health { width: 30%; border: round $primary-darken-2; padding: 0 1; }
    #indices { height: 1fr; border: round $primary-darken-2; }
    #indices.paused { border: round $warning; }
    #filter { display: none; }
    #filter.editing { display: block; }
    #filter.invalid { border: tall $error; }
    #footer { height: 1; color: $text-muted; }
    DetailsScreen, HelpScreen { align: center middle; }
    #details-body, #help-body { width: 80%; height: 80%; border: round $accent; background: $surface; padding: 0 1; }
    """

    BINDINGS = [
        Binding("q,escape", "quit", "Quit"),
        Binding("question_mark", "help", "Help"),
        Binding("space", "toggle_pause", "Pause"),
        Binding("slash", "enter_filter", "Filter"),
        Binding("ctrl+u", "clear_filter", "Clear filter", show=False),
        Binding("enter", "details", "Details"),
        Binding("x", "exclude", "Exclude"),
        Binding("X", "clear_exclusions", "Clear exclusions", show=False),
        Binding("right,l", "next_column", "Next column", show=False),
        Binding("left,h", "prev_column", "Prev column", show=False),
        Binding("r", "reverse_sort", "Reverse", show=False),
        Binding("plus,equals_sign", "refresh_interval(-1)", "Faster", show=False),
        Binding("minus,underscore", "refresh_interval(1)", "Slower", show=False),
        Binding("1", "toggle_panel('rate-chart')", show=False),
        Binding("2", "toggle_panel('health')", show=False),
        Binding("3", "toggle_panel('indices')", show=False),
        Binding("full_stop", "toggle_system", "System indices", show=False),
        Binding("c", "colormap(1)", show=False),
        Binding("C", "colormap(-1)", show=False),
        Binding("up,k", "move(-1)", show=False),
        Binding("down,j", "move(1)", show=False),
        Binding("pageup,ctrl+b", "page(-1)", show=False),
        Binding("pagedown,ctrl+f", "page(1)", show=False),
        Binding("home,g", "first", show=False),
        Binding("end,G", "last", show=False),
    ]

    def __init__(
        self,
        state: DashboardState,
        poller: Poller,
        details_source: DetailSource,
        url: str,
        colormap: str = "warm",
    ):
        super().__init__()
        self.state = state
        self.poller = poller
        self.details_source = details_source
        self.url = url
        self.colormap = colormap
        self._spinner = 0
        self._table_key = None

    def compose(self) -> ComposeResult:
        yield Static(id="header")
        with Horizontal(id="top"):
            yield Sparkline([], summary_function=max, id="rate-chart")
            yield Static(id="health")
        yield DataTable(id="indices", cursor_type="row")
        yield FilterInput(placeholder='filter, e.g. name contains "logs" and rate_per_sec > 0', id="filter")
        yield Static(id="footer")

    def on_mount(self) -> None:
        # app-level queries only see the active screen, which may be a popup
        self._header_bar = self.query_one("#header", Static)
        self._chart = self.query_one("#rate-chart", Sparkline)
        self._health_panel = self.query_one("#health", Static)
        self._table = self.query_one("#indices", DataTable)
        self._filter_input = self.query_one("#filter", FilterInput)
        self._footer_bar = self.query_one("#footer", Static)
        self._panels = {"rate-chart": self._chart, "health": self._health_panel, "indices": self._table}

        self._table.can_focus = False
        self._health_panel.border_title = " Cluster Health "
        self._tick()
        self.set_interval(TICK_SECONDS, self._tick)

    # ------------------------------------------------------------------ #
    # Polling                                                            #
    # ------------------------------------------------------------------ #
    def _tick(self) -> None:
        self.start_poll()
        self._spinner = (self._spinner + 1) % len(SPINNER_FRAMES)
        self.render_view(self.state.view())

    def start_poll(self) -> Optional[Worker]:
        ticket = self.poller.start()
        if ticket is None:
            return None
        return self.run_worker(
            functools.partial(self.poller.run, ticket),
            name="poll",
            group="poll",
            exclusive=True,
            thread=True,
        )

    def start_detail_fetch(self, ticket: int, record: IndexRecord) -> Worker:
        return self.run_worker(
            functools.partial(self.poller.run_detail, self.details_source, ticket, record),
            name=f"details:{record.name}",
            group="details",
            exclusive=True,
            thread=True,
        )

    def action_quit(self) -> None:
        self.state.abandon_poll()
        self.workers.cancel_all()
        self.exit()

    # ------------------------------------------------------------------ #
    # Rendering                                                          #
    # ------------------------------------------------------------------ #
    def render_view(self, view: DashboardView) -> None:
        self._header_bar.update(self._header_text(view))
        self._render_chart(view)
        self._health_panel.update(self._health_text(view))
        self._render_table(view)
        self._footer_bar.update(self._footer_text(view))

    def _header_text(self, view: DashboardView) -> Text:
        now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        text = Text()
        text.append(" elastic-ingest-top ", style="bold cyan")
        text.append(" | ")
        if not view.status.ok:
            if view.status.is_auth_failure:
                text.append(" AUTH ", style="bold white on red")
                text.append(" ")
            text.append(f"Error: {view.status.message}", style="red")
            text.append(" | ")
        else:
            text.append(self.url, style="green")
            text.append(" | Cluster Rate: ")
            text.append(f"{format_number(view.total_rate_per_sec)} /s", style="bold yellow")
            text.append(" | ")
        text.append(now)
        return text

    def _render_chart(self, view: DashboardView) -> None:
        chart = self._chart
        history = list(view.aggregate_history)
        chart.data = history
        current = history[-1] if history else 0.0
        peak = max(history) if history else 0.0
        chart.border_title = (
            f" Cluster Indexing Rate (current: {format_number(current)} /s, max: {format_number(peak)} /s) "
        )

    def _health_text(self, view: DashboardView) -> Text:
        health = view.cluster_health
        style = {"green": "green", "yellow": "yellow", "red": "red"}.get(health.status, "grey50")
        text = Text()
        text.append(f"{health.cluster_name or '-'}\n", style="bold")
        text.append("♥ ", style=style)
        text.append(f"{health.status.upper():<8}", style=f"bold {style}")
        text.append(f" nodes {health.number_of_nodes} ({health.number_of_data_nodes} data)\n")
        text.append(f"shards {health.active_shards} active, {health.active_primary_shards} primary\n")
        text.append(f"relocating {health.relocating_shards}  initializing {health.initializing_shards}\n")
        unassigned_style = "red" if health.unassigned_shards else ""
        text.append(f"unassigned {health.unassigned_shards}", style=unassigned_style)
        text.append(f"  active {health.active_shards_percent:.1f}%\n")
        text.append(f"pending tasks {health.number_of_pending_tasks}")
        return text

    def _render_table(self, view: DashboardView) -> None:
        table = self._table
        table.set_class(view.paused, "paused")
        table.border_title = self._table_title(view)

        key = (view.rows, view.selected, view.sort_key, view.sort_order, self.colormap)
        if key == self._table_key:
            return
        self._table_key = key

        table.clear(columns=True)
        for label, sort_key in COLUMNS:
            if sort_key is view.sort_key:
                arrow = " ▲" if view.sort_order is SortOrder.ASCENDING else " ▼"
                table.add_column(Text(label + arrow, style="bold yellow"), key=sort_key.value)
            else:
                table.add_column(Text(label, style="bold"), key=sort_key.value)
        table.add_column(Text("Trend", style="bold"), key="trend")

        for row in view.rows:
            style = colormaps.color_at(self.colormap, row.gradient).hex
            table.add_row(
                Text(row.name, style=style),
                Text(format_number(row.doc_count), style=style, justify="right"),
                Text(format_number(row.rate_per_sec), style=style, justify="right"),
                Text(format_bytes(row.size_bytes), style=style, justify="right"),
                health_text(row.health),
                Text(sparkline(row.history), style=style),
                key=row.name,
            )

        table.show_cursor = view.selected is not None
        if view.selected is not None:
            table.move_cursor(row=view.selected, animate=False)

    def _table_title(self, view: DashboardView) -> str:
        spinner = SPINNER_FRAMES[self._spinner] if view.loading else "✓"
        title = f" Indices {spinner} ({format_duration(view.fetch_duration)})"
        if view.filter_editing or view.filter_text:
            marker = "" if view.filter_valid else " [invalid]"
            title += f" | Filter: {view.filter_text}{marker} ({len(view.rows)}/{view.total_indices})"
        if view.excluded:
            title += f" | {len(view.excluded)} excluded"
        if view.paused:
            title += " | ⏸ PAUSED"
        return title + " "

    def _footer_text(self, view: DashboardView) -> Text:
        text = Text()
        if view.filter_editing and view.filter_error:
            text.append(f"filter: {view.filter_error}", style="red")
            if view.filter_active:
                text.append(f" | still using: {view.filter_active}", style="dim")
            return text
        text.append(
            f" refresh {view.refresh_interval}s | sort {view.sort_key.value} {view.sort_order.value}"
            f" | colormap {self.colormap}"
            f" | system indices {'shown' if view.show_system_indices else 'hidden'}"
            " | ? help  q quit"
        )
        return text

    # ------------------------------------------------------------------ #
    # Commands                                                           #
    # ------------------------------------------------------------------ #
    def _update_view(self) -> None:
        self.render_view(self.state.view())

    def action_help(self) -> None:
        self.push_screen(HelpScreen())

    def action_toggle_pause(self) -> None:
        self.state.toggle_pause()
        self._update_view()

    def action_enter_filter(self) -> None:
        self.state.enter_filter()
        filter_input = self._filter_input
        filter_input.value = self.state.filter.text
        filter_input.add_class("editing")
        filter_input.focus()
        self._update_view()

    def _leave_filter(self) -> None:
        filter_input = self._filter_input
        filter_input.remove_class("editing")
        self.set_focus(None)
        self._update_view()

    def on_input_changed(self, event: Input.Changed) -> None:
        compiled = self.state.edit_filter(event.value)
        event.input.set_class(not compiled, "invalid")
        self._update_view()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.state.exit_filter()
        self._leave_filter()

    def action_leave_filter(self) -> None:
        self.state.exit_filter()
        self._leave_filter()

    def action_clear_filter(self) -> None:
        self.state.clear_filter()
        filter_input = self._filter_input
        with filter_input.prevent(Input.Changed):
            filter_input.value = ""
        filter_input.remove_class("invalid")
        self._leave_filter()

    def action_details(self) -> None:
        request = self.state.request_detail()
        if request is None:
            return
        self.start_detail_fetch(*request)
        self.push_screen(DetailsScreen(self.state))

    def action_exclude(self) -> None:
        self.state.toggle_exclude_selected()
        self._update_view()

    def action_clear_exclusions(self) -> None:
        self.state.clear_exclusions()
        self._update_view()

    def action_next_column(self) -> None:
        self.state.next_sort_key()
        self._update_view()

    def action_prev_column(self) -> None:
        self.state.prev_sort_key()
        self._update_view()

    def on_data_table_header_selected(self, event: DataTable.HeaderSelected) -> None:
        if event.column_key.value == "trend":
            return
        self.state.set_sort_key(SortKey(event.column_key.value))
        self._update_view()

    def action_reverse_sort(self) -> None:
        self.state.reverse_sort()
        self._update_view()

    def action_refresh_interval(self, delta: int) -> None:
        self.state.adjust_refresh_interval(delta)
        self._update_view()

    def action_toggle_panel(self, widget_id: str) -> None:
        widget = self._panels[widget_id]
        widget.display = not widget.display

    def action_toggle_system(self) -> None:
        self.state.toggle_system_indices()
        self._update_view()

    def action_colormap(self, step: int) -> None:
        if step > 0:
            self.colormap = colormaps.next_colormap(self.colormap)
        else:
            self.colormap = colormaps.prev_colormap(self.colormap)
        self._update_view()

    def action_move(self, delta: int) -> None:
        self.state.move_selection(delta)
        self._update_view()

    def action_page(self, direction: int) -> None:
        if direction > 0:
            self.state.select_page_down()
        else:
            self.state.select_page_up()
        self._update_view()

    def action_first(self) -> None:
        self.state.select_first()
        self._update_view()

    def action_last(self) -> None:
        self.state.select_last()
        self._update_view()
