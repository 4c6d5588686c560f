# wordindex/interface/cli.py

from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.prompt import Prompt
from rich import box

from wordindex.domain.models import IndexingReport, IndexStats, SearchResponse, SearchStatus


console = Console()

SENTENCE_PREVIEW_CHARS = 60


def display_welcome_banner() -> None:
    console.print(Panel.fit(
        "[bold cyan]📖 Page Word Index[/bold cyan]\n"
        "[dim]Row clustering + field-weighted BM25 over every word of a PDF[/dim]",
        box=box.DOUBLE,
        border_style="cyan",
    ))


def display_indexing_report(report: IndexingReport) -> None:
    if report.cancelled:
        console.print(f"\n[yellow]⚠[/yellow] Run [bold]{report.run_id}[/bold] cancelled, store left unchanged.\n")
        return

    console.print(
        f"\n[green]✓[/green] Indexed [bold]{report.word_count}[/bold] words "
        f"from [bold]{report.page_count}[/bold] pages of '{report.document}' "
        f"[dim](run {report.run_id})[/dim]"
    )
    for page, reason in sorted(report.failed_pages.items()):
        console.print(f"  [red]✗[/red] page {page} skipped: {reason}")
    for diag in report.over_merged_rows:
        console.print(
            f"  [yellow]⚠[/yellow] page {diag.page} row {diag.row} looks over-merged "
            f"({diag.fragment_count} fragments)"
        )
    console.print()


def display_index_up_to_date(stats: IndexStats) -> None:
    console.print(
        f"\n[green]✓[/green] Index is up to date, "
        f"[bold]{stats.total_words}[/bold] words ready for search.\n"
    )


def display_stats(stats: IndexStats) -> None:
    table = Table(box=box.SIMPLE, show_header=False)
    table.add_row("Total words", str(stats.total_words))
    table.add_row("Unique words", str(stats.unique_words))
    table.add_row("Pages", _format_pages(stats.pages))
    if stats.fingerprint:
        table.add_row("SHA-256", stats.fingerprint[:16] + "…")
    console.print(table)


def prompt_for_query() -> str:
    return Prompt.ask("\n[bold yellow]🔎 Search word[/bold yellow]", default="")


def display_results(response: SearchResponse, page: Optional[int] = None) -> None:
    if response.status is SearchStatus.EMPTY_QUERY:
        console.print("[dim]Type a word to search.[/dim]")
        return
    if response.status is SearchStatus.INDEX_NOT_BUILT:
        display_error("Search index not built yet. Index a document first.")
        return

    scope = f" on page {page}" if page is not None else ""
    if not response.results:
        console.print(f"\n[dim]No words match[/dim] [italic]\"{response.query}\"[/italic]{scope}.\n")
        return

    table = Table(
        title=f"Results for \"{response.query}\"{scope}",
        box=box.ROUNDED,
        header_style="bold",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("Word", style="bold white")
    table.add_column("Page", justify="right")
    table.add_column("Row", justify="right")
    table.add_column("Index", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Sentence", style="dim")

    top_score = response.results[0].score or 1.0
    for rank, result in enumerate(response.results, start=1):
        color = _score_to_color(result.score / top_score)
        word = result.word
        table.add_row(
            str(rank),
            word.text,
            str(word.page),
            str(word.row),
            str(word.index_in_row),
            f"[{color}]{result.score:.4f}[/{color}]",
            _preview(word.sentence),
        )
    console.print(table)


def display_error(message: str) -> None:
    console.print(f"\n[bold red]✗ Error:[/bold red] {message}\n")


def ask_continue() -> bool:
    answer = Prompt.ask(
        "\n[dim]Search again?[/dim]",
        choices=["y", "n"],
        default="y",
    )
    return answer.lower() == "y"


def _preview(sentence: str) -> str:
    if len(sentence) <= SENTENCE_PREVIEW_CHARS:
        return sentence
    return "…" + sentence[-SENTENCE_PREVIEW_CHARS:]


def _format_pages(pages: List[int]) -> str:
    if not pages:
        return "-"
    if len(pages) > 10:
        return f"{pages[0]}–{pages[-1]} ({len(pages)} pages)"
    return ", ".join(str(p) for p in pages)


def _score_to_color(relative_score: float) -> str:
    if relative_score >= 0.75:
        return "green"
    elif relative_score >= 0.50:
        return "yellow"
    else:
        return "red"
