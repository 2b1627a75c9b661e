"""CLI for trying out read-only expression evaluation."""

from __future__ import annotations

import logging
from typing import List, Optional

import typer

from debugger_core.config import load_config, load_context
from debugger_core.schemas import EvaluatorConfig
from evaluator.breakpoint import BreakpointEvaluator
from sandbox import classifier

app = typer.Typer(help="Read-only breakpoint expression evaluator")

_state: dict[str, object] = {}


@app.callback()
def main(
    config_path: Optional[str] = typer.Option(None, "--config", help="Evaluator YAML config"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    try:
        config = load_config(config_path) if config_path else EvaluatorConfig()
    except (FileNotFoundError, ValueError) as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    _state["config"] = config


def _context(context_path: Optional[str]) -> dict[str, object]:
    if not context_path:
        return {}
    try:
        return load_context(context_path)
    except (FileNotFoundError, ValueError) as e:
        typer.secho(f"❌ {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)


def _evaluator() -> BreakpointEvaluator:
    config = _state.get("config")
    if not isinstance(config, EvaluatorConfig):
        config = EvaluatorConfig()
    return BreakpointEvaluator(config)


@app.command("eval")
def eval_command(
    expressions: List[str] = typer.Argument(..., help="Expressions to evaluate"),
    context_path: Optional[str] = typer.Option(None, "--context", help="YAML mapping of variables"),
) -> None:
    """Evaluate expressions and print one variable per line."""
    variables = _evaluator().eval_expressions(_context(context_path), expressions)
    for variable in variables:
        color = typer.colors.RED if variable.is_error else None
        typer.secho(f"{variable.name} = {variable.value}  ({variable.type or 'error'})", fg=color)


@app.command()
def condition(
    expression: str = typer.Argument(..., help="Condition expression"),
    context_path: Optional[str] = typer.Option(None, "--context", help="YAML mapping of variables"),
) -> None:
    """Evaluate a breakpoint condition; exit code 0 if it holds, 1 otherwise."""
    result = _evaluator().eval_condition(_context(context_path), expression)
    typer.echo("true" if result else "false")
    if not result:
        raise typer.Exit(1)


@app.command()
def log(
    message_format: str = typer.Argument(..., help="Message with $0, $1, ... placeholders"),
    expressions: Optional[List[str]] = typer.Argument(None, help="Expressions for the placeholders"),
    context_path: Optional[str] = typer.Option(None, "--context", help="YAML mapping of variables"),
) -> None:
    """Render a log message template."""
    message = _evaluator().format_log_message(
        _context(context_path),
        message_format,
        expressions or [],
    )
    typer.echo(message)


@app.command()
def check(
    expression: str = typer.Argument(..., help="Expression to classify"),
) -> None:
    """Classify an expression without running it."""
    verdict = classifier.check_expression(expression)
    if isinstance(verdict, classifier.Rejected):
        typer.secho(f"❌ Rejected: {verdict.error.message}", fg=typer.colors.RED)
        raise typer.Exit(1)
    typer.secho("✅ Allowed", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
