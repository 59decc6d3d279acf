"""Rich renderables for the conversation: prompt bubbles and answers."""

import logging

from rich.columns import Columns
from rich.console import Console, Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from tonestream.models import Query, Status, Variant

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_STATUS_STYLE = {
    Status.PENDING: "dim",
    Status.STREAMING: "cyan",
    Status.COMPLETED: "green",
    Status.ERROR: "red",
    Status.CANCELLED: "yellow",
}


def _markdown(text: str) -> RenderableType:
    """Markdown when it parses, plain text otherwise."""
    try:
        return Markdown(text)
    except Exception:
        logger.debug("Markdown render failed, falling back to plain text", exc_info=True)
        return Text(text)


def _status_label(status: Status) -> str:
    return f"[{_STATUS_STYLE[status]}]{status.value}[/]"


def _answer_panel(text: str | None, title: str, subtitle: str | None = None) -> Panel:
    body: RenderableType = _markdown(text) if text else Text("...", style="dim")
    return Panel(body, title=title, subtitle=subtitle, border_style="dim")


def render_query(
    query: Query,
    index: int,
    tones: tuple[str, str] = ("professional", "casual"),
) -> RenderableType:
    """Render one turn: the prompt bubble followed by its answer(s)."""
    prompt = Panel(Text(query.prompt), title=f"[bold]You[/bold] #{index}", border_style="blue")
    subtitle = _status_label(query.status)

    if query.status is Status.ERROR:
        answer: RenderableType = Panel(Text(query.display_text, style="red"), title="Error", border_style="red")
    elif query.selected_variant is not None:
        title = f"[bold]{query.selected_variant.value}[/bold] · {query.selected_tone} (selected)"
        answer = _answer_panel(query.selected_response, title, subtitle)
    elif query.is_dual:
        if query.dual_ready:
            answer = Columns(
                [
                    _answer_panel(query.text_for(v), f"[bold]{v.value}[/bold] · {tone}", subtitle)
                    for v, tone in zip(Variant, tones)
                ],
                equal=True,
                expand=True,
            )
        else:
            answer = Panel(Text("Generating both answers...", style="dim"), subtitle=subtitle, border_style="dim")
    else:
        answer = _answer_panel(query.response, "[bold]Answer[/bold]", subtitle)

    return Group(prompt, answer)


def render_conversation(
    queries: tuple[Query, ...],
    tones: tuple[str, str] = ("professional", "casual"),
) -> RenderableType:
    return Group(*(render_query(q, i, tones) for i, q in enumerate(queries)))


def print_query(query: Query, index: int, tones: tuple[str, str] = ("professional", "casual")) -> None:
    console.print(render_query(query, index, tones))
