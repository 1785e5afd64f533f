"""
stylecoach CLI - check text against a personal style guide.

Commands:
    stylecoach resolve "text"        Find the rules that apply and evaluate them
    stylecoach index                 Show the category index
    stylecoach rules                 List rules
    stylecoach categories            List categories
    stylecoach eval <cases.json>     Run resolution eval cases
"""

import asyncio
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import Settings
from .evaluation import (
    EvalRunner,
    compute_stats,
    load_cases,
    summary_lines,
    write_log,
    write_results_snapshot,
)
from .llm.client import LLMError
from .resolution.pipeline import ResolutionPipeline
from .security.validators import ValidationError
from .style_guide.models import FOLLOWS, VIOLATES
from .style_guide.store import StyleGuideError, load_category_registry, load_style_guide

app = typer.Typer(help="Check prose against a personal style guide")
console = Console()

ASSESSMENT_STYLES = {FOLLOWS: "green", VIOLATES: "red"}


class _State:
    settings: Settings = Settings()


state = _State()


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}", soft_wrap=True)
    raise typer.Exit(1)


def _load_documents():
    try:
        store = load_style_guide(state.settings.style_guide_path)
        registry = load_category_registry(state.settings.category_registry_path)
    except StyleGuideError as e:
        _fail(str(e))
    return store, registry


@app.callback()
def main(
    guide: Path = typer.Option(None, help="Style guide JSON (default: $STYLECOACH_STYLE_GUIDE)"),
    registry: Path = typer.Option(None, help="Category registry JSON"),
    provider: str = typer.Option(None, help="anthropic | openai | google | local"),
    model: str = typer.Option(None, help="Model id for the provider"),
    url: str = typer.Option(None, "--url", help="Local OpenAI-compatible server URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline stages"),
):
    """Load settings from the environment, then apply command-line overrides."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        state.settings = Settings.from_env().with_overrides(
            style_guide_path=guide,
            category_registry_path=registry,
            provider=provider,
            model=model,
            local_url=url,
        )
    except ValidationError as e:
        _fail(str(e))


# =============================================================================
# RESOLVE
# =============================================================================


@app.command()
def resolve(
    text: str = typer.Argument(..., help="Text to check"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
):
    """Find the rules that apply to TEXT and evaluate them."""
    store, registry = _load_documents()
    if not len(registry):
        _fail(f"No categories in {state.settings.category_registry_path}")

    def on_stage(stage: str, data: list) -> None:
        if not as_json:
            console.print(f"[dim]{stage}: {len(data)}[/dim]")

    async def run():
        llm = state.settings.create_llm_client()
        try:
            pipeline = ResolutionPipeline(llm_client=llm, store=store, registry=registry)
            return await pipeline.resolve(text, on_stage_complete=on_stage)
        finally:
            await llm.aclose()

    try:
        result = asyncio.run(run())
    except (LLMError, ValidationError) as e:
        _fail(str(e))

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    if not result.evaluations:
        console.print("\n[yellow]No rules apply to this text.[/yellow]")
        return

    principles = {rule.id: rule.principle for rule in result.triaged_rules}
    table = Table(title=f"Matched: {', '.join(result.matched_categories)}")
    table.add_column("Rule", style="bold")
    table.add_column("Assessment")
    table.add_column("Principle")
    table.add_column("Note")
    for ev in result.evaluations:
        style = ASSESSMENT_STYLES.get(ev.assessment, "yellow")
        table.add_row(
            ev.rule_id,
            f"[{style}]{ev.assessment}[/{style}]",
            escape(principles.get(ev.rule_id, "")),
            escape(ev.note),
        )
    console.print(table)


# =============================================================================
# INSPECT
# =============================================================================


@app.command()
def index():
    """Show which rules each category reaches."""
    store, _ = _load_documents()
    table = Table(title="Category Index")
    table.add_column("Category", style="bold")
    table.add_column("Rules")
    for category, rule_ids in store.category_index().items():
        table.add_row(category, ", ".join(rule_ids))
    console.print(table)

    untagged = [rule.id for rule in store.rules if not rule.categories]
    if untagged:
        console.print(
            f"\n[yellow]{len(untagged)} untagged rule(s) can never be resolved:[/yellow] "
            f"{', '.join(untagged)}"
        )


@app.command()
def rules():
    """List the rules in the style guide."""
    store, _ = _load_documents()
    table = Table(title=f"Rules ({len(store)})")
    table.add_column("Id", style="bold")
    table.add_column("Principle")
    table.add_column("Categories")
    for rule in store.rules:
        table.add_row(rule.id, escape(rule.principle), ", ".join(rule.categories))
    console.print(table)


@app.command()
def categories():
    """List the categories in the registry."""
    _, registry = _load_documents()
    table = Table(title=f"Categories ({len(registry)})")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    for name, category in registry.items():
        table.add_row(name, escape(category.description))
    console.print(table)


# =============================================================================
# EVAL
# =============================================================================


@app.command(name="eval")
def run_eval(
    cases_path: Path = typer.Argument(..., help="Eval cases JSON"),
    case: str = typer.Option(None, "--case", help="Run a single case by id"),
    log: Path = typer.Option(Path("resolution-eval.log"), help="Log file path"),
    results: Path = typer.Option(
        Path("resolution-eval-results.json"), help="Results snapshot path"
    ),
    show_details: bool = typer.Option(False, "--details", help="Print per-case details"),
):
    """Run eval cases through the pipeline; exit 1 if any case fails."""
    store, registry = _load_documents()
    try:
        cases = load_cases(cases_path)
    except StyleGuideError as e:
        _fail(str(e))

    if case:
        cases = [c for c in cases if c.id == case]
        if not cases:
            _fail(f'No test case with id "{case}"')

    label = state.settings.provider or "auto"
    console.print(f"\nResolution Pipeline Eval -- {len(cases)} cases, provider: {label}\n")

    def on_case(outcome) -> None:
        status = "[green]PASS[/green]" if outcome.passed else "[red]FAIL[/red]"
        console.print(f"{status}  {outcome.case.id}: {escape(outcome.case.description)}")
        if not outcome.passed:
            for failure in outcome.grade.failures:
                console.print(f"       {escape(failure)}", soft_wrap=True)
        if show_details:
            r = outcome.result
            console.print(f"       Categories: {', '.join(r.matched_categories) or '(none)'}")
            console.print(
                f"       Candidates: {len(r.candidate_rules)}, Triaged: {len(r.triaged_rules)}"
            )
            for ev in r.evaluations:
                console.print(f"       {ev.rule_id}: {ev.assessment} -- {escape(ev.note)}")
            console.print(f"       Elapsed: {outcome.elapsed_ms:.0f}ms\n")

    async def run():
        llm = state.settings.create_llm_client()
        try:
            runner = EvalRunner(llm_client=llm, store=store, registry=registry)
            return await runner.run(cases, on_case_complete=on_case)
        finally:
            await llm.aclose()

    outcomes = asyncio.run(run())
    stats = compute_stats(outcomes)

    console.print()
    for line in summary_lines(stats):
        console.print(line)

    write_log(outcomes, stats, log, label=label)
    write_results_snapshot(outcomes, stats, results, label=label)
    console.print(f"\nLog written to: {log}")
    console.print(f"Results snapshot written to: {results}")

    if stats.passed < stats.total_cases:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
