"""Interactive CLI application."""
import logging
import threading
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from course_tutor.auth import AuthStatus, RegisterStatus, seed_admin
from course_tutor.config import Settings, config_path_from_env, load_settings
from course_tutor.controller import CourseController
from course_tutor.course import ensure_course_file, load_course
from course_tutor.db import init_db
from course_tutor.errors import TutorError
from course_tutor.importer import html_to_text
from course_tutor.session import SubmitResult
from course_tutor.stats import format_percentage
from course_tutor.stores import ProgressStore, ResultStore, UserStore
from course_tutor.timed_test import format_remaining, remaining_color

console = Console()

logger = logging.getLogger(__name__)

EXIT_WORDS = ("q", "menu")

AUTH_MESSAGES = {
    AuthStatus.INVALID_CREDENTIALS: "Wrong login or password.",
    AuthStatus.USER_NOT_FOUND: "No such user. Register first.",
    AuthStatus.STORAGE_ERROR: "The database is unavailable. Try again or continue as guest.",
}

REGISTER_MESSAGES = {
    RegisterStatus.SUCCESS: "[green]Registered! You can log in now.[/green]",
    RegisterStatus.USER_EXISTS: "[red]That login is already taken.[/red]",
    RegisterStatus.INVALID_INPUT: (
        "[red]Login must be 3-20 letters, digits or underscores; "
        "password at least 4 characters; full name required.[/red]"
    ),
    RegisterStatus.STORAGE_ERROR: "[red]The database is unavailable.[/red]",
}


class SessionExitRequested(Exception):
    """Raised when the user types 'q' or 'menu' inside a drill or test."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str]) -> int:
    answer = session_prompt(prompt, choices=choices + list(EXIT_WORDS), show_choices=False)
    return int(answer)


def configure_logging(settings: Settings) -> None:
    root = logging.getLogger()
    root.setLevel(settings.log_level)
    console_handler = RichHandler(console=console, show_path=False)
    console_handler.setLevel(logging.WARNING)
    root.addHandler(console_handler)
    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(settings.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"))
        root.addHandler(file_handler)


def show_warnings(controller: CourseController) -> None:
    for warning in controller.drain_warnings():
        console.print(f"[yellow]{warning}[/yellow]")


def show_welcome():
    console.print(Panel(
        "[bold]Course Tutor[/bold]\n[dim]Theory, drills and timed tests[/dim]",
        title="Welcome", border_style="blue",
    ))


def render_topic(topic, index: int, total: int) -> None:
    body = html_to_text(topic.content) if topic.content else "[dim]No theory for this topic yet.[/dim]"
    console.print(Panel(body, title=f"Topic {index + 1}/{total}: {topic.title}", border_style="cyan"))


def render_question(question, number: int, total: int) -> list[str]:
    console.print(f"\n[bold]Q{number}/{total}.[/bold] {question.text}\n")
    for i, variant in enumerate(question.variants, 1):
        console.print(f"  [cyan]{i})[/cyan] {variant}")
    return [str(i) for i in range(1, len(question.variants) + 1)]


def run_drill(controller: CourseController) -> None:
    """Answer the open topic's questions until it is finished or the user quits."""
    topic = controller.current_topic()
    total = len(topic.questions)
    console.print(f"\n[bold]Drill[/bold] — {controller.engine.max_errors} mistakes restart the topic. 'q' to leave.")
    while True:
        question = controller.current_question()
        if question is None:
            return
        choices = render_question(question, controller.engine.current_question_index + 1, total)
        answer = session_int_prompt("\nYour answer", choices=choices)
        result = controller.answer(answer - 1)
        if result is SubmitResult.CORRECT:
            console.print("[green]Correct![/green]")
        elif result is SubmitResult.WRONG:
            console.print(f"[red]Incorrect.[/red] Mistakes left: {controller.engine.errors_left}")
        elif result is SubmitResult.FAIL_RELEARN:
            console.print("[red]Too many mistakes. Re-read the theory; the topic starts over.[/red]")
            render_topic(topic, controller.engine.current_topic_index, len(controller.course))
        elif result is SubmitResult.TOPIC_FINISHED:
            console.print("[green]Topic complete! Move on to the next one.[/green]")
        elif result is SubmitResult.COURSE_FINISHED:
            console.print("[bold green]Congratulations, you have finished the whole course![/bold green]")
        show_warnings(controller)
        if result.is_finished:
            return


def announce_timeout(controller: CourseController) -> None:
    """Deadline timer callback: end the test while the learner is still thinking."""
    if controller.test is None or not controller.test.is_running:
        return
    controller.expire_test()
    console.print("\n[red]Time is up![/red] Enter any answer to see your result.")


def start_deadline_timer(controller: CourseController) -> threading.Timer:
    timer = threading.Timer(controller.test.remaining_seconds(), announce_timeout, args=(controller,))
    timer.daemon = True
    timer.start()
    return timer


def run_timed_test(controller: CourseController) -> None:
    question = controller.start_test()
    test = controller.test
    total = test.max_score
    console.print(f"\n[bold]Test[/bold] — {total} questions, {test.time_limit_minutes} minutes.")
    timer = start_deadline_timer(controller)
    try:
        while question is not None:
            left = test.remaining_seconds()
            console.print(f"[{remaining_color(left)}]Time left: {format_remaining(left)}[/{remaining_color(left)}]")
            choices = render_question(question, test.current_question_index + 1, total)
            answer = session_int_prompt("\nYour answer", choices=choices)
            question = controller.answer_test(answer - 1)
    except SessionExitRequested:
        console.print("[dim]Test ended early.[/dim]")
    finally:
        timer.cancel()
    outcome = controller.finish_test()
    if outcome.timed_out:
        console.print("[red]Time is up![/red]")
    console.print(Panel(
        f"Correct answers: [bold]{outcome.score}[/bold] of {outcome.max_score}\n"
        f"Score: {format_percentage(outcome.percentage())} — [bold]{outcome.grade()}[/bold]",
        title="Test result", border_style="green",
    ))
    show_warnings(controller)


def cmd_topic(controller: CourseController, index: int) -> None:
    topic = controller.open_topic(index)
    show_warnings(controller)
    while True:
        render_topic(topic, index, len(controller.course))
        choices = ["back"]
        if topic.has_questions:
            choices = ["drill", "test", "back"]
        choice = Prompt.ask("Action", choices=choices, default="back")
        if choice == "back":
            return
        try:
            if choice == "drill":
                run_drill(controller)
            elif choice == "test":
                run_timed_test(controller)
        except SessionExitRequested:
            console.print("[dim]Back to the topic.[/dim]")
        if controller.current_question() is None:
            topic = controller.restart_topic()


def cmd_topics(controller: CourseController) -> None:
    last = controller.last_topic()
    show_warnings(controller)
    table = Table(title="Topics")
    table.add_column("#", justify="right")
    table.add_column("Title")
    table.add_column("Questions", justify="right")
    for i, topic in enumerate(controller.course.topics):
        marker = " [cyan]← last studied[/cyan]" if i == last else ""
        table.add_row(str(i + 1), topic.title + marker, str(len(topic.questions)))
    console.print(table)
    choices = [str(i) for i in range(1, len(controller.course) + 1)]
    if not choices:
        console.print("[yellow]The course has no topics.[/yellow]")
        return
    default = str(last + 1) if last is not None else "1"
    selected = Prompt.ask("Topic", choices=choices, default=default)
    cmd_topic(controller, int(selected) - 1)


def format_profile(user, summary: dict) -> str:
    """Profile panel body; statistics read '—' until the first test."""
    if summary["total_tests"] == 0:
        average = best = last = "—"
    else:
        average = format_percentage(summary["average_percentage"])
        best = format_percentage(summary["best_percentage"])
        if summary["best_grade"]:
            best += f" ({summary['best_grade']})"
        last = summary["last_test_date"].strftime("%Y-%m-%d %H:%M")
    return (
        f"{user.full_name} ([cyan]{user.login}[/cyan], {user.role})\n"
        f"Tests: [bold]{summary['total_tests']}[/bold]  |  "
        f"Average: [bold]{average}[/bold]  |  "
        f"Best: [bold]{best}[/bold]  |  "
        f"Last test: [bold]{last}[/bold]"
    )


def cmd_profile(controller: CourseController) -> None:
    user = controller.current_user
    if not user.is_valid():
        console.print("[yellow]Guests have no saved history.[/yellow]")
        return
    summary = controller.profile_summary()
    console.print(Panel(format_profile(user, summary), title="Profile", border_style="blue"))
    table = Table(title="Test history")
    table.add_column("Date")
    table.add_column("Score", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Percent", justify="right")
    for r in controller.history():
        table.add_row(r.test_date.strftime("%Y-%m-%d %H:%M"), str(r.score), str(r.max_score),
                      format_percentage(r.percentage()))
    console.print(table)
    show_warnings(controller)


def cmd_admin_stats(controller: CourseController) -> None:
    name = Prompt.ask("Filter by student name (blank for all)", default="")
    table = Table(title="Student results")
    table.add_column("Student", style="cyan")
    table.add_column("Date")
    table.add_column("Score", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Percent", justify="right")
    for r in controller.all_results(name):
        table.add_row(r.full_name, r.test_date.strftime("%Y-%m-%d %H:%M"), str(r.score),
                      str(r.max_score), format_percentage(r.percentage()))
    console.print(table)
    show_warnings(controller)


def cmd_admin_edit(controller: CourseController, course_path: str) -> None:
    for i, topic in enumerate(controller.course.topics, 1):
        console.print(f"  [cyan]{i}[/cyan]) {topic.title}")
    choices = [str(i) for i in range(1, len(controller.course) + 1)]
    if not choices:
        console.print("[yellow]The course has no topics.[/yellow]")
        return
    index = int(Prompt.ask("Topic to edit", choices=choices)) - 1
    console.print(Panel(controller.course.topics[index].content or "[dim](empty)[/dim]",
                        title="Current content", border_style="dim"))
    mode = Prompt.ask("Replace content from", choices=["file", "text", "cancel"], default="file")
    if mode == "cancel":
        return
    if mode == "file":
        file_path = Prompt.ask("File path")
        if not Path(file_path).exists():
            console.print(f"[red]File not found: {file_path}[/red]")
            return
        controller.import_topic_content(index, file_path)
    else:
        controller.update_topic_content(index, Prompt.ask("New content (HTML or plain text)"))
    if controller.save_course(course_path):
        console.print(f"[green]Course saved to {course_path}[/green]")
    show_warnings(controller)


def login_flow(controller: CourseController) -> bool:
    """Run the login menu until someone logs in; False means quit."""
    while True:
        choice = Prompt.ask("\n[bold]login / register / guest / quit[/bold]",
                            choices=["login", "register", "guest", "quit"], default="login")
        if choice == "quit":
            return False
        if choice == "guest":
            controller.login_as_guest()
            console.print("[dim]Guest session: progress and results are not saved.[/dim]")
            return True
        login = Prompt.ask("Login")
        password = Prompt.ask("Password", password=True)
        if choice == "register":
            full_name = Prompt.ask("Full name")
            console.print(REGISTER_MESSAGES[controller.register(login, password, full_name)])
            continue
        outcome = controller.login(login, password)
        if outcome.ok:
            console.print(f"[green]Welcome, {outcome.user.full_name or outcome.user.login}![/green]")
            return True
        console.print(f"[red]{AUTH_MESSAGES[outcome.status]}[/red]")


def user_menu(controller: CourseController, settings: Settings) -> None:
    admin = controller.current_user.is_admin()
    commands = ["topics", "edit", "stats", "logout"] if admin else ["topics", "profile", "logout"]
    while controller.is_authenticated:
        choice = Prompt.ask("\n[bold]>[/bold]", choices=commands, default="topics")
        try:
            if choice == "topics":
                cmd_topics(controller)
            elif choice == "profile":
                cmd_profile(controller)
            elif choice == "edit":
                cmd_admin_edit(controller, settings.course_path)
            elif choice == "stats":
                cmd_admin_stats(controller)
            elif choice == "logout":
                controller.logout()
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'logout' to leave.[/dim]")
        except TutorError as e:
            console.print(f"[red]Error: {e}[/red]")


def build_controller(settings: Settings) -> CourseController:
    init_db(settings.db_path)
    users = UserStore(settings.db_path)
    seed_admin(users)
    ensure_course_file(settings.course_path)
    course = load_course(settings.course_path)
    return CourseController(
        course,
        users,
        ProgressStore(settings.db_path),
        ResultStore(settings.db_path),
        time_limit_minutes=settings.time_limit_minutes,
        max_errors=settings.max_errors,
    )


def main():
    try:
        settings = load_settings(config_path_from_env())
    except TutorError as e:
        console.print(f"[red]Cannot start: {e}[/red]")
        raise SystemExit(1)
    configure_logging(settings)
    logger.info("Starting course tutor")
    try:
        controller = build_controller(settings)
    except TutorError as e:
        console.print(f"[red]Cannot start: {e}[/red]")
        raise SystemExit(1)

    show_welcome()
    while login_flow(controller):
        user_menu(controller, settings)
    console.print("[dim]Goodbye![/dim]")
    logger.info("Course tutor stopped")


if __name__ == "__main__":
    main()
