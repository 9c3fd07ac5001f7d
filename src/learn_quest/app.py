"""Interactive CLI application."""
import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from learn_quest.catalog import load_catalog
from learn_quest.config import settings
from learn_quest.dashboard import (
    build_progress_list, calculate_grade, format_time, suggest_quizzes, total_xp,
)
from learn_quest.db import ProgressStore, init_db
from learn_quest.errors import QuizNotFoundError
from learn_quest.player import PoolSession, now_ms, open_session
from learn_quest.review import build_wrong_pool, due_for_review

console = Console()
logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")


class SessionExitRequested(Exception):
    """Raised when the user leaves a running quiz."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list) -> int:
    return int(session_prompt(prompt, choices=choices + list(EXIT_WORDS)))


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def show_welcome(username: str):
    console.print(Panel(
        f"[bold]Learn Quest[/bold]\n[dim]Signed in as {username}[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("play", "Start or continue a quiz"),
        ("review", "Review questions that are due"),
        ("pool", "Practice the wrong questions pool"),
        ("dashboard", "Progress, XP and mastery"),
        ("suggest", "Quizzes you haven't started"),
        ("delete", "Delete progress for a quiz"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def ask_question(number: int, total: int, question) -> int:
    console.print(f"[bold]Q{number}/{total}.[/bold] {question.question}\n")
    for i, answer in enumerate(question.answers):
        console.print(f"  [cyan]{i + 1})[/cyan] {answer.content}")
    choices = [str(i + 1) for i in range(len(question.answers))]
    return session_int_prompt("\nYour answer", choices=choices) - 1


def show_feedback(correct: bool, question) -> None:
    if correct:
        console.print("[green]Correct![/green]\n")
    else:
        right = question.answers[question.correct_answer_index].content
        console.print(f"[red]Incorrect.[/red] Answer: [green]{right}[/green]\n")


def run_quiz_session(session) -> dict:
    """Play rounds until the user stops; returns the final statistics."""
    console.print(f"\n[bold]{session.quiz.title}[/bold] — {len(session.round)} questions\n")
    while True:
        total = len(session.round)
        while not session.finished:
            _, question = session.current_question()
            answer = ask_question(session.position + 1, total, question)
            show_feedback(session.submit(answer), question)
        stats = session.statistics()
        grade = calculate_grade(stats["percentage"])
        console.print(
            f"[bold]Score: {stats['correct_count']}/{stats['total_answered']} "
            f"({stats['percentage']}%)[/bold]  [{grade['color']}]{grade['grade']} {grade['label']}[/{grade['color']}]"
        )
        if session.last_xp is not None:
            console.print(
                f"XP: [bold]{session.last_xp.total_xp}[/bold] ({session.last_xp_delta:+d})"
            )
        if not session.wrong_in_round():
            return stats
        again = Prompt.ask("Repeat wrong questions?", choices=["y", "n"], default="y")
        if again != "y":
            return stats
        session.repeat_wrong()


def run_pool_session(session: PoolSession) -> list:
    total = len(session.pool)
    try:
        while not session.finished:
            pooled = session.current_question()
            answer = ask_question(session.position + 1, total, pooled.question)
            show_feedback(session.submit(answer), pooled.question)
    finally:
        written = session.flush()
    stats = session.statistics()
    console.print(
        f"[bold]Pool score: {stats['correct_count']}/{stats['total_answered']}[/bold] "
        f"— updated {len(written)} quizzes"
    )
    return written


def pick_quiz(catalog, quiz_ids=None):
    quizzes = [q for q in catalog.all_quizzes() if quiz_ids is None or q.id in quiz_ids]
    if not quizzes:
        return None
    for i, quiz in enumerate(quizzes, 1):
        console.print(f"  [cyan]{i}[/cyan]) {quiz.title}")
    choice = int(Prompt.ask("Select quiz", choices=[str(i) for i in range(1, len(quizzes) + 1)]))
    return quizzes[choice - 1]


def cmd_play(catalog, store, username):
    quiz = pick_quiz(catalog)
    if quiz is None:
        console.print("[yellow]No quizzes available![/yellow]")
        return
    existing = store.read(username, quiz.id)
    mode = "fresh"
    if existing is not None and not existing.completed:
        mode = Prompt.ask("Start mode", choices=["continue", "fresh"], default="continue")
    session = open_session(catalog, store, username, quiz.id, mode=mode)
    run_quiz_session(session)


def cmd_review(catalog, store, username):
    progress = store.read_all(username)
    due = due_for_review(progress, now_ms())
    quiz_ids = {quiz_id for quiz_id, _ in due if catalog.find_quiz(quiz_id)}
    if not quiz_ids:
        console.print("[green]Nothing is due for review.[/green]")
        return
    console.print(f"[bold]{len(due)} questions due[/bold]")
    quiz = pick_quiz(catalog, quiz_ids)
    run_quiz_session(open_session(catalog, store, username, quiz.id, mode="review"))


def cmd_pool(catalog, store, username):
    progress = store.read_all(username)
    pool = build_wrong_pool(progress, catalog)
    if not pool.questions:
        console.print("[green]No open mistakes. Nice work![/green]")
        return
    console.print(Panel(f"You have [bold]{len(pool)}[/bold] open mistakes.", title=pool.title))
    run_pool_session(PoolSession(pool, username, store, progress))


def cmd_dashboard(catalog, store, username):
    progress = store.read_all(username)
    entries = build_progress_list(progress, catalog, now_ms())
    console.print(Panel(
        f"Total XP: [bold]{total_xp(progress.values())}[/bold]",
        title="Your Progress", border_style="blue",
    ))
    if not entries:
        console.print("[dim]No progress yet. Start a quiz with 'play'.[/dim]")
        return
    table = Table(title="Quizzes")
    table.add_column("#", style="dim")
    table.add_column("Quiz", style="cyan")
    table.add_column("Done", justify="right")
    table.add_column("New / Learning / Mastered", justify="center")
    table.add_column("Due", justify="right")
    table.add_column("Time", justify="right")
    table.add_column("XP", justify="right")
    resumable = {}
    for i, entry in enumerate(entries, 1):
        p = entry.progress
        if entry.can_resume:
            resumable[str(i)] = entry
            title = entry.title
        else:
            title = f"[dim]{entry.title} (deleted)[/dim]"
        done = "[green]✓[/green]" if p.completed else f"{entry.completion_percentage}%"
        due = str(entry.stats.due_for_review) if entry.can_resume else ""
        table.add_row(
            str(i) if entry.can_resume else "",
            title,
            done,
            f"{entry.stats.new} / {entry.stats.learning} / {entry.stats.mastered}",
            due,
            format_time(p.completed_time) if p.completed_time is not None else "",
            str(p.xp or 0),
        )
    console.print(table)
    if not resumable:
        return
    choice = Prompt.ask("Resume a quiz (number), or Enter to go back", default="")
    entry = resumable.get(choice.strip())
    if entry is not None:
        mode = "fresh" if entry.progress.completed else "continue"
        run_quiz_session(open_session(catalog, store, username, entry.progress.quiz_id, mode=mode))


def cmd_suggest(catalog, store, username):
    progress = store.read_all(username)
    suggestions = suggest_quizzes(
        catalog.all_quizzes(), progress, store.dismissed_quizzes(username),
        limit=settings.suggestion_limit, min_questions=settings.min_suggestion_questions,
    )
    if not suggestions:
        console.print("[yellow]No new quizzes found![/yellow]")
        return
    for i, quiz in enumerate(suggestions, 1):
        console.print(f"  [cyan]{i}[/cyan]) {quiz.title} ({len(quiz.questions)} questions)")
    choice = Prompt.ask("Play a quiz, dismiss one (d<number>), or Enter to go back", default="")
    if choice.startswith("d") and choice[1:].isdigit() and 1 <= int(choice[1:]) <= len(suggestions):
        store.dismiss_quiz(username, suggestions[int(choice[1:]) - 1].id)
        console.print("[dim]Dismissed.[/dim]")
    elif choice.isdigit() and 1 <= int(choice) <= len(suggestions):
        run_quiz_session(open_session(catalog, store, username, suggestions[int(choice) - 1].id))


def cmd_delete(catalog, store, username):
    progress = store.read_all(username)
    if not progress:
        console.print("[dim]No progress to delete.[/dim]")
        return
    entries = build_progress_list(progress, catalog, now_ms())
    for i, entry in enumerate(entries, 1):
        console.print(f"  [cyan]{i}[/cyan]) {entry.title}" + ("" if entry.can_resume else " [dim](deleted)[/dim]"))
    choice = int(Prompt.ask("Delete progress for", choices=[str(i) for i in range(1, len(entries) + 1)]))
    store.delete(username, entries[choice - 1].progress.quiz_id)
    console.print("[green]Progress deleted.[/green]")


COMMANDS = {
    "play": cmd_play,
    "review": cmd_review,
    "pool": cmd_pool,
    "dashboard": cmd_dashboard,
    "suggest": cmd_suggest,
    "delete": cmd_delete,
}


def main():
    configure_logging(settings.log_level)
    init_db(str(settings.db_path))
    store = ProgressStore(settings.db_path, guest_username=settings.guest_username)
    catalog = load_catalog(settings.catalog_path)
    username = settings.username
    if store.is_guest(username):
        console.print("[dim]Playing as guest — progress will not be saved.[/dim]")

    show_welcome(username)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="play").strip().lower()
        if choice in ("quit", "exit", "q"):
            console.print("[dim]See you next time![/dim]")
            break
        command = COMMANDS.get(choice)
        if command is None:
            console.print("[red]Unknown command. Try again.[/red]")
            continue
        try:
            command(catalog, store, username)
        except SessionExitRequested:
            console.print("[dim]Back to menu. Your progress so far is saved.[/dim]")
        except QuizNotFoundError as e:
            console.print(f"[yellow]{e}[/yellow]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except Exception as e:
            logger.exception("Command %s failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
