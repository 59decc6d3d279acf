"""Click CLI: config loading, backend health check, live streaming chat."""

import asyncio
import logging
import sys

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from tonestream.backends.http import HttpStreamBackend
from tonestream.coordinator import ConversationCoordinator, StreamingSettings
from tonestream.healthcheck import run_health_checks
from tonestream.models import Query, Status, Variant
from tonestream.output import print_query, render_query

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_QUIT_COMMANDS = {"/quit", "/exit"}
_SKIP = "skip"


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=Console(stderr=True))],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _resolve_dual(config: AppConfig, single_flag: bool) -> bool:
    """--single overrides the configured default."""
    if single_flag:
        return False
    return config.streaming.dual_default


def _parse_choice(raw: str) -> Variant | None:
    """Map a prompt answer to a variant; None means keep both."""
    value = raw.strip().upper()
    if value in (v.value for v in Variant):
        return Variant(value)
    return None


def _apply_overrides(config: AppConfig, url: str | None, timeout: float | None) -> None:
    if url:
        config.backend.base_url = url
        config.overrides.append("--url")
    if timeout is not None:
        config.backend.timeout_sec = timeout
        config.overrides.append("--timeout")


async def _check_backend(backend: HttpStreamBackend, tones: list[str]) -> bool:
    """Run health checks and print results. Returns False if the user declines to continue."""
    console.print(f"\n[bold]Checking backend[/bold] {backend.url} ...")
    results = await run_health_checks(backend, tones)

    failed: list[str] = []
    for tone in sorted(results):
        ok, err = results[tone]
        if ok:
            console.print(f"  [green]OK  [/green] {tone}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {tone}: {short_err}")
            failed.append(tone)

    console.print()
    if not failed:
        return True
    return click.confirm("Backend check failed. Continue anyway?", default=False)


async def _ask(
    coordinator: ConversationCoordinator,
    question: str,
    dual: bool,
    tones: tuple[str, str],
    select: bool,
) -> Query | None:
    """Submit one question, render it live until its streams end, then offer selection."""
    index = coordinator.submit(question, dual=dual)
    if index is None:
        return None

    with Live(render_query(coordinator.queries[index], index, tones), console=console, refresh_per_second=12) as live:
        unsubscribe = coordinator.subscribe(lambda qs: live.update(render_query(qs[index], index, tones)))
        try:
            await coordinator.wait(index)
        finally:
            unsubscribe()
            if coordinator.cancel(index):
                console.print("[yellow]Cancelled.[/yellow]")

    query = coordinator.queries[index]
    if select and query.is_dual and query.status is Status.COMPLETED:
        raw = click.prompt(
            "Keep which answer?",
            type=click.Choice([Variant.A.value, Variant.B.value, _SKIP], case_sensitive=False),
            default=_SKIP,
        )
        choice = _parse_choice(raw)
        if choice is not None:
            coordinator.select(index, choice)
            query = coordinator.queries[index]
            print_query(query, index, tones)
    return query


async def _chat_loop(
    coordinator: ConversationCoordinator,
    dual: bool,
    tones: tuple[str, str],
    select: bool,
) -> None:
    console.print("[dim]Type a question. /reset clears the conversation, /quit exits.[/dim]")
    while True:
        try:
            text = console.input("[bold blue]>[/bold blue] ").strip()
        except EOFError:
            break
        if text in _QUIT_COMMANDS:
            break
        if text == "/reset":
            coordinator.reset()
            console.print("[dim]Conversation cleared.[/dim]")
            continue
        if not text:
            continue
        await _ask(coordinator, text, dual, tones, select)


async def _run(
    config: AppConfig,
    question: str | None,
    dual: bool,
    select: bool,
    health_check: bool,
) -> Status | None:
    tones = (config.tones.a, config.tones.b)
    backend = HttpStreamBackend(config.backend)
    coordinator = ConversationCoordinator(backend, StreamingSettings.from_config(config))
    try:
        if health_check:
            probe_tones = list(tones) if dual else [tones[0]]
            if not await _check_backend(backend, probe_tones):
                return None
        if question:
            query = await _ask(coordinator, question, dual, tones, select)
            return query.status if query else None
        await _chat_loop(coordinator, dual, tones, select)
        return None
    finally:
        await coordinator.aclose()
        await backend.aclose()


@click.command()
@click.argument("question", required=False)
@click.option("--single", "single_flag", is_flag=True, help="Stream one answer instead of two tones")
@click.option("--url", default=None, help="Backend base URL (default: from config or TONESTREAM_API_URL)")
@click.option("--timeout", type=float, default=None, help="Per-stream timeout in seconds")
@click.option("--no-select", is_flag=True, default=False, help="Do not ask which dual answer to keep")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip the backend connectivity check at startup")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    question: str | None,
    single_flag: bool,
    url: str | None,
    timeout: float | None,
    no_select: bool,
    skip_health_check: bool,
    verbose: bool,
) -> None:
    """tonestream -- streaming chat client with side-by-side tone answers.

    \b
    Examples:
      tonestream "Explain event loops"
      tonestream "Explain event loops" --single
      tonestream --url http://localhost:3000
      tonestream            (interactive)
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    _apply_overrides(config, url, timeout)
    dual = _resolve_dual(config, single_flag)

    try:
        status = asyncio.run(
            _run(
                config=config,
                question=question,
                dual=dual,
                select=not no_select,
                health_check=not skip_health_check,
            )
        )
    except KeyboardInterrupt:
        sys.exit(130)

    if status is Status.ERROR:
        sys.exit(1)


if __name__ == "__main__":
    main()
