"""
Typer CLI for the adaptive quiz engine.

Commands:
    quiz init-db           - Initialize database tables
    quiz import-questions  - Load a question pool from a JSON file
    quiz record-progress   - Record a learner's lesson progress on a topic
    quiz take              - Take an adaptive quiz in the terminal
    quiz progress          - Show aggregate progress on a quiz
    quiz weak-topics       - Show a learner's weakness scores
    quiz sessions          - List a learner's open sessions
    quiz cleanup           - Remove stale sessions

Usage:
    quiz --help
    quiz import-questions pools/science_plants.json
    quiz take --user 1 --year 4 --subject science --topic Plants
    quiz --database-url sqlite:///./dev.db progress --user 1 --year 4 --subject science --topic Plants
"""

from __future__ import annotations

import sys
import time
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from config import get_settings
from src.db.database import create_db_engine, create_session_factory, init_db
from src.db.repositories import SqlProgressRepository, SqlQuestionBank
from src.quiz.engine import AdaptiveQuizEngine, create_quiz_engine
from src.quiz.errors import QuizEngineError, StateConflictError, ValidationError
from src.quiz.models import HistoricalProgress
from src.quiz.question_file import load_quiz_file
from src.quiz.session import MAX_TIME_SPENT_SECONDS
from src.quiz.session_store import SqlSessionStore

app = typer.Typer(
    name="quiz",
    help="Adaptive quiz engine CLI",
    no_args_is_help=True,
)
console = Console()

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "warning": "bold yellow",
    "dim": "dim",
    "difficulty": {
        "easy": "green",
        "medium": "yellow",
        "hard": "red",
    },
}


# ========================================
# Context Builder (Dependency Injection)
# ========================================


class CLIContext:
    """
    Dependency container for CLI commands.

    The database engine and quiz engine are created on first use.
    """

    def __init__(self, database_url: str | None = None):
        self.settings = get_settings()
        self.database_url = database_url or self.settings.database_url
        self._db_engine = None
        self._session_factory = None
        self._quiz_engine = None

    @property
    def db_engine(self):
        if self._db_engine is None:
            self._db_engine = create_db_engine(self.database_url)
        return self._db_engine

    @property
    def session_factory(self):
        if self._session_factory is None:
            self._session_factory = create_session_factory(self.db_engine)
        return self._session_factory

    @property
    def quiz_engine(self) -> AdaptiveQuizEngine:
        if self._quiz_engine is None:
            self._quiz_engine = create_quiz_engine(self.settings, self.session_factory)
        return self._quiz_engine


@app.callback()
def main_callback(
    ctx: typer.Context,
    database_url: str | None = typer.Option(
        None, "--database-url", help="Override the configured database URL"
    ),
) -> None:
    ctx.obj = CLIContext(database_url)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(code=1)


# ========================================
# DATABASE COMMANDS
# ========================================


@app.command("init-db")
def init_db_command(ctx: typer.Context) -> None:
    """
    Initialize database tables from SQLAlchemy models.

    Safe to run multiple times (idempotent).
    """
    init_db(ctx.obj.db_engine)
    rprint("[green]✓[/green] Database initialized!")


@app.command("import-questions")
def import_questions(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Question pool JSON file"),
    replace: bool = typer.Option(False, "--replace", help="Drop the quiz's existing questions first"),
) -> None:
    """Load a question pool from a JSON file."""
    try:
        quiz_file = load_quiz_file(path)
        init_db(ctx.obj.db_engine)
        count = SqlQuestionBank(ctx.obj.session_factory).import_questions(
            quiz_file.year,
            quiz_file.subject,
            quiz_file.topic,
            [q.to_record() for q in quiz_file.questions],
            title=quiz_file.title,
            replace=replace,
        )
    except QuizEngineError as e:
        _fail(e)

    rprint(
        f"[green]✓[/green] Imported {count} questions into "
        f"{quiz_file.year}-{quiz_file.subject}-{quiz_file.topic}"
    )


@app.command("record-progress")
def record_progress(
    ctx: typer.Context,
    user: int = typer.Option(..., "--user", "-u", help="Learner id"),
    year: int = typer.Option(..., "--year", "-y"),
    subject: str = typer.Option(..., "--subject", "-s"),
    topic: str = typer.Option(..., "--topic", "-t"),
    topic_progress: float = typer.Option(..., "--progress", min=0, max=100, help="Lesson progress 0-100"),
    passed: bool = typer.Option(False, "--passed", help="Topic quiz already passed"),
) -> None:
    """Record a learner's lesson progress; used to seed the initial ability."""
    try:
        SqlProgressRepository(ctx.obj.session_factory).save_topic_progress(
            user,
            HistoricalProgress(
                year=year,
                subject=subject,
                topic=topic,
                topic_progress=topic_progress,
                quiz_passed=passed,
            ),
        )
    except QuizEngineError as e:
        _fail(e)
    rprint(f"[green]✓[/green] Progress recorded for user {user} on {topic}")


# ========================================
# QUIZ COMMANDS
# ========================================


def _render_question(question: dict) -> None:
    difficulty = question["difficulty"]
    style = STYLES["difficulty"].get(difficulty, "white")
    progress = question["progress"]

    lines = [f"[bold]{escape(question['text'])}[/bold]", ""]
    for option in question["options"]:
        lines.append(f"  [cyan]{option['id']}[/cyan]) {escape(option['text'])}")
    if question["is_multi_answer"]:
        lines.append("")
        lines.append("[dim]Select all that apply (comma-separated)[/dim]")

    subtitle = f"[{style}]{difficulty}[/{style}] | {escape(question['topic'])}"
    if question["is_remedial"]:
        subtitle += " | [magenta]review[/magenta]"

    console.print(
        Panel(
            "\n".join(lines),
            title=f"Question {progress['current']}/{progress['total']}",
            subtitle=subtitle,
            border_style="blue",
        )
    )


def _ask_answer(engine: AdaptiveQuizEngine, session_id: str) -> str:
    """Prompt until the learner types an answer; 'h' requests a hint."""
    while True:
        raw = Prompt.ask("Answer [dim](h for hint)[/dim]")
        if raw.strip().lower() != "h":
            return raw
        try:
            hint = engine.request_hint(session_id)
        except StateConflictError as e:
            console.print(f"[{STYLES['warning']}]{escape(str(e))}[/{STYLES['warning']}]")
            continue
        console.print(
            f"[{STYLES['info']}]Hint:[/{STYLES['info']}] {hint['hint']} "
            f"[dim](-{hint['penalty']:g} points, {hint['hints_remaining']} left)[/dim]"
        )


def _render_results(results: dict) -> None:
    table = Table(title="Quiz Results")
    table.add_column("#", justify="right")
    table.add_column("Question")
    table.add_column("Difficulty")
    table.add_column("Result")
    table.add_column("Points", justify="right")

    for i, score in enumerate(results["question_scores"], 1):
        result = "[green]✓[/green]" if score["is_correct"] else "[red]✗[/red]"
        if score["is_remedial"]:
            result += " [magenta](review)[/magenta]"
        table.add_row(str(i), score["question"], score["difficulty"], result, f"{score['points']:g}")

    console.print(table)

    status = "[bold green]PASSED[/bold green]" if results["quiz_passed"] else "[bold red]NOT PASSED[/bold red]"
    summary = [
        f"Score: [bold]{results['score']}%[/bold] "
        f"({results['current_topic_score']}/{results['current_topic_questions']}) {status}",
        f"Points: {results['total_score']:g}",
        f"Time: {results['time_spent']:.0f}s",
        f"Ability: {results['ability_estimate']:.2f}",
    ]
    if results["remedial_questions_answered"]:
        summary.append(
            f"Review questions: {results['remedial_score']}/{results['remedial_questions_answered']}"
        )
    console.print(Panel("\n".join(summary), title="Summary", border_style="green"))


@app.command("take")
def take(
    ctx: typer.Context,
    user: int = typer.Option(..., "--user", "-u", help="Learner id"),
    year: int = typer.Option(..., "--year", "-y"),
    subject: str = typer.Option(..., "--subject", "-s"),
    topic: str = typer.Option(..., "--topic", "-t"),
    max_questions: int | None = typer.Option(None, "--max-questions", "-n", help="Question budget"),
    restart: bool = typer.Option(False, "--restart", help="Re-attempt a quiz already taken"),
) -> None:
    """Take an adaptive quiz in the terminal."""
    engine = ctx.obj.quiz_engine
    try:
        started = (engine.restart if restart else engine.start)(user, year, subject, topic, max_questions)
        session_id = started["session_id"]
        console.print(
            f"[{STYLES['info']}]Starting quiz:[/{STYLES['info']}] {topic} "
            f"({started['total_questions']} questions)"
        )

        while True:
            question = engine.next_question(session_id)
            if question.get("completed"):
                break

            _render_question(question)
            shown_at = time.monotonic()
            raw = _ask_answer(engine, session_id)
            elapsed = min(time.monotonic() - shown_at, MAX_TIME_SPENT_SECONDS)

            ids = [part.strip() for part in raw.split(",") if part.strip()]
            answer = ids if question["is_multi_answer"] else (ids[0] if ids else "")
            try:
                outcome = engine.submit_answer(session_id, question["id"], answer, elapsed)
            except ValidationError as e:
                console.print(f"[{STYLES['warning']}]{escape(str(e))}[/{STYLES['warning']}]")
                continue

            style = STYLES["correct"] if outcome["is_correct"] else STYLES["incorrect"]
            console.print(f"[{style}]{outcome['feedback']}[/{style}] [dim](+{outcome['total_points']:g})[/dim]")

        _render_results(engine.get_results(session_id))
    except QuizEngineError as e:
        _fail(e)


@app.command("progress")
def progress(
    ctx: typer.Context,
    user: int = typer.Option(..., "--user", "-u", help="Learner id"),
    year: int = typer.Option(..., "--year", "-y"),
    subject: str = typer.Option(..., "--subject", "-s"),
    topic: str = typer.Option(..., "--topic", "-t"),
) -> None:
    """Show aggregate progress on a quiz and its attempt history."""
    engine = ctx.obj.quiz_engine
    try:
        summary = engine.get_quiz_progress(user, year, subject, topic)
        quiz_id = engine.question_bank.find_quiz_id(year, subject, topic)
        attempts = (
            SqlProgressRepository(ctx.obj.session_factory).list_attempts(user, quiz_id)
            if quiz_id is not None
            else []
        )
    except QuizEngineError as e:
        _fail(e)

    status = "[green]passed[/green]" if summary["passed"] else "[yellow]not passed[/yellow]"
    console.print(
        Panel(
            f"Status: {status}\n"
            f"Last score: {summary['last_score']}%\n"
            f"Best score: {summary['best_score']}%\n"
            f"Attempts: {summary['total_attempts']}",
            title=f"{topic}",
            border_style="cyan",
        )
    )

    if attempts:
        table = Table(title="Attempts")
        table.add_column("#", justify="right")
        table.add_column("Score", justify="right")
        table.add_column("Answered", justify="right")
        table.add_column("Ability", justify="right")
        table.add_column("Passed")
        table.add_column("When")
        for attempt in attempts:
            table.add_row(
                str(attempt.attempt_number),
                f"{attempt.score}%",
                f"{attempt.questions_answered}/{attempt.total_questions}",
                f"{attempt.ability_estimate:.2f}",
                "✓" if attempt.passed else "",
                attempt.created_at.strftime("%Y-%m-%d %H:%M") if attempt.created_at else "",
            )
        console.print(table)


@app.command("weak-topics")
def weak_topics(
    ctx: typer.Context,
    user: int = typer.Option(..., "--user", "-u", help="Learner id"),
    year: int = typer.Option(..., "--year", "-y"),
    subject: str = typer.Option(..., "--subject", "-s"),
) -> None:
    """Show a learner's weakness scores, weakest first."""
    try:
        records = ctx.obj.quiz_engine.weakness_report(user, year, subject)
    except QuizEngineError as e:
        _fail(e)

    if not records:
        console.print("[dim]No weakness data yet[/dim]")
        return

    table = Table(title=f"Weak topics: {subject} (year {year})")
    table.add_column("Topic")
    table.add_column("Weakness", justify="right")
    table.add_column("Trend")
    table.add_column("Answers", justify="right")
    for record in records:
        style = "red" if record.weakness_score > 0.3 else "green"
        table.add_row(
            record.topic,
            f"[{style}]{record.weakness_score:.2f}[/{style}]",
            record.improvement_trend.value,
            str(record.remediation_attempts),
        )
    console.print(table)


@app.command("sessions")
def sessions(
    ctx: typer.Context,
    user: int | None = typer.Option(None, "--user", "-u", help="Learner id"),
    include_completed: bool = typer.Option(False, "--all", help="Include completed sessions"),
) -> None:
    """List stored quiz sessions, newest first."""
    try:
        session_ids = SqlSessionStore(ctx.obj.session_factory).list_sessions(user, include_completed)
    except QuizEngineError as e:
        _fail(e)

    if not session_ids:
        console.print("[dim]No sessions[/dim]")
        return
    for session_id in session_ids:
        console.print(session_id)


@app.command("cleanup")
def cleanup(ctx: typer.Context) -> None:
    """Remove completed (and optionally abandoned) sessions past retention."""
    try:
        removed = ctx.obj.quiz_engine.cleanup_sessions()
    except QuizEngineError as e:
        _fail(e)
    rprint(f"[green]✓[/green] Removed {removed} sessions")


# ========================================
# Entry Point
# ========================================


def configure_logging() -> None:
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(settings.log_file, level="DEBUG", rotation=settings.log_rotation)


def main() -> None:
    """CLI entry point."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
