"""Command-line interface for tariffnav."""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import click

from tariffnav.classification.duty import resolve_duty
from tariffnav.classification.engine import build_engine
from tariffnav.classification.models import ClassificationResult
from tariffnav.config import load_settings
from tariffnav.errors import ClassificationFailure, TariffNavError
from tariffnav.hts.codes import format_code, normalize_code
from tariffnav.hts.store import InMemoryHierarchyStore, read_jsonl

_DATA_OPTION = click.option(
    "--data",
    "data_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="HTS JSONL file to load instead of the configured hierarchy.",
)


def _parse_answers(pairs: Tuple[str, ...]) -> Dict[str, str]:
    answers: Dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key.strip() or not value.strip():
            raise click.BadParameter(f"expected attribute=value, got {pair!r}", param_hint="--answer")
        answers[key.strip()] = value.strip()
    return answers


def _engine(data_path: Optional[Path]):
    settings = load_settings()
    if data_path is not None:
        settings = dataclasses.replace(settings, hts_data_path=data_path, database_url=None)
    return build_engine(settings)


def _echo_result(result: ClassificationResult) -> None:
    if result.needs_input:
        click.echo(result.message or "More information is needed.")
        for question in result.questions:
            click.echo(f"  ? {question.question} [{question.attribute}, {question.impact} impact]")
            for option in question.options:
                impact = f" -> {option.hts_impact}" if option.hts_impact else ""
                click.echo(f"      {option.value}: {option.label}{impact}")
        return

    click.echo(f"{result.hts_code_formatted}  {result.description}")
    if result.hierarchy is not None:
        click.echo(f"  {result.hierarchy.breadcrumb}")
    if result.duty is not None:
        inherited = f" (from {format_code(result.duty.inherited_from)})" if result.duty.inherited_from else ""
        click.echo(f"  Duty: {result.duty.base_rate}{inherited}")
    if result.duty_range is not None:
        click.echo(f"  Duty range across candidates: {result.duty_range.formatted}")
    click.echo(f"  Confidence: {result.confidence:.2f} ({result.confidence_label})")
    click.echo(f"  Route: {result.route_applied}")
    for alt in result.alternatives:
        click.echo(f"  alt {alt.hts_code_formatted}  {alt.description}  [{alt.match_score:g}]")
    for question in result.questions:
        click.echo(f"  ? {question.question} [{question.attribute}]")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output.")
def cli(verbose: bool) -> None:
    """tariffnav command suite."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


@cli.command()
@click.argument("description")
@click.option("--material", default=None, help="Material the product is made of.")
@click.option("--use", "use_context", default=None, help="Use context: household, commercial, industrial.")
@click.option("--product-type", default=None, help="Product type, when the description is ambiguous.")
@click.option(
    "--answer",
    "answers",
    multiple=True,
    help="Answer to an earlier question as attribute=value. Repeat for several answers.",
)
@_DATA_OPTION
@click.option("--json", "as_json", is_flag=True, help="Emit the full result as JSON.")
def classify(
    description: str,
    material: Optional[str],
    use_context: Optional[str],
    product_type: Optional[str],
    answers: Tuple[str, ...],
    data_path: Optional[Path],
    as_json: bool,
) -> None:
    """Classify DESCRIPTION into an HTS code."""

    hints = {"material": material, "use": use_context, "product_type": product_type}
    hints = {key: value for key, value in hints.items() if value}
    try:
        result = _engine(data_path).classify(description, hints=hints, answers=_parse_answers(answers))
    except ClassificationFailure as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        click.echo(json.dumps(result.model_dump(by_alias=True, exclude_none=True), indent=2))
    else:
        _echo_result(result)


@cli.command()
@click.argument("code")
@_DATA_OPTION
def duty(code: str, data_path: Optional[Path]) -> None:
    """Show the effective general duty for CODE."""

    engine = _engine(data_path)
    node = engine.store.get_node(normalize_code(code))
    if node is None:
        raise click.ClickException(f"Unknown HTS code {code}")
    resolved = resolve_duty(engine.store, node.code)
    line = f"{node.formatted}  {resolved.rate}"
    if resolved.inherited_from:
        line += f" (inherited from {format_code(resolved.inherited_from)})"
    click.echo(line)


@cli.command("import-db")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--database-url",
    default=None,
    help="SQLAlchemy URL; defaults to TARIFFNAV_DATABASE_URL.",
)
def import_db(path: Path, database_url: Optional[str]) -> None:
    """Load an HTS JSONL file into the database."""

    from tariffnav.db.session import init_db, make_engine, make_session_factory
    from tariffnav.hts.sql_store import import_records

    url = database_url or load_settings().database_url
    if not url:
        raise click.ClickException("No database URL given (--database-url or TARIFFNAV_DATABASE_URL)")
    try:
        records = read_jsonl(path)
        engine = make_engine(url)
        init_db(engine)
        count = import_records(make_session_factory(engine), records)
    except TariffNavError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"Imported {count} codes from {path.name}")


@cli.command()
@_DATA_OPTION
def check(data_path: Optional[Path]) -> None:
    """Validate an HTS JSONL file and print a per-chapter summary."""

    path = data_path or load_settings().hts_data_path
    try:
        store = InMemoryHierarchyStore.load_jsonl(path)
    except TariffNavError as exc:
        raise click.ClickException(str(exc)) from exc
    for chapter in store.chapters():
        count = sum(1 for node in store.iter_nodes() if node.chapter == chapter.code)
        click.echo(f"{chapter.code}  {count:4d}  {chapter.description}")
    click.echo(f"{len(store)} codes, version {store.version}")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Run the HTTP API with uvicorn."""

    import uvicorn

    uvicorn.run("tariffnav.api.app:app", host=host, port=port)


if __name__ == "__main__":
    cli()
