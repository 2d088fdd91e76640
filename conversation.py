# conversation.py
"""
Manages the interactive conversation loop: command dispatch, chat turns, and knowledge commands.
"""

import logging
from typing import Callable

from errors import LLMAppError, handle_error
from session import Session
import config

logger = logging.getLogger(__name__)

QUIT_COMMAND = "/quit"
ADD_PREFIX = "/add "
INDEX_PREFIX = "/index "
SEARCH_PREFIX = "/search "

COMMANDS_HELP = [
    "  /add <text>      - Add knowledge to vector DB",
    "  /index <dir>     - Chunk and add every text file under <dir>",
    "  /search <query>  - Show the most similar stored documents",
    "  /count           - Number of stored documents",
    "  /clear           - Remove all stored documents",
    "  /help            - Show this list",
    "  /quit            - Exit",
]


def show_commands(write: Callable[[str], None] = print):
    write("\nCommands:")
    for line in COMMANDS_HELP:
        write(line)


def print_banner(session: Session, write: Callable[[str], None] = print):
    write("Local LLM Ready!")
    write(f"Model: {session.settings.llm.model}")
    show_commands(write)
    write("\nType your message:")


def format_search_results(results) -> str:
    if not results:
        return "No matching documents."
    lines = []
    for i, result in enumerate(results, 1):
        doc = result.document
        source = doc.metadata.get("source", "unknown")
        preview = doc.content if len(doc.content) <= 120 else doc.content[:117] + "..."
        lines.append(f"[{i}] {doc.id} ({source}) - Score: {result.score:.3f}\n    {preview}")
    return "\n".join(lines)


def _report_error(error: LLMAppError, operation: str, write: Callable[[str], None], prefix: str = "Error"):
    handle_error(error, {"operation": operation})
    write(f"{prefix}: {error.message}")


def _report_cancelled(operation: str, write: Callable[[str], None], prefix: str = "Error"):
    logger.info(f"{operation} interrupted by user")
    write(f"\n{prefix}: cancelled")


def start_conversation(
    session: Session,
    read_line: Callable[[str], str] = input,
    write: Callable[[str], None] = print
) -> int:
    """
    Read commands until /quit or end of input.

    Returns:
        Number of commands dispatched (blank lines are not counted)
    """
    dispatched = 0

    while True:
        try:
            line = read_line("\n> ")
        except EOFError:
            logger.info("End of input, leaving conversation loop")
            break

        command = line.strip()
        if not command:
            continue

        if command == QUIT_COMMAND:
            write("Goodbye!")
            break

        dispatched += 1

        if command.startswith(ADD_PREFIX):
            content = command[len(ADD_PREFIX):]
            try:
                session.ingest(content, config.USER_INPUT_SOURCE)
            except LLMAppError as e:
                _report_error(e, "add", write, prefix="Error adding knowledge")
            except KeyboardInterrupt:
                _report_cancelled("add", write, prefix="Error adding knowledge")
            else:
                write("Added to knowledge base")
            continue

        if command.startswith(INDEX_PREFIX):
            dir_path = command[len(INDEX_PREFIX):].strip()
            try:
                report = session.index_directory(dir_path, show_progress=True)
            except LLMAppError as e:
                _report_error(e, "index", write)
            except KeyboardInterrupt:
                _report_cancelled("index", write)
            else:
                write(f"Indexed {report.chunks_added} chunks from {report.files_indexed} files")
            continue

        if command.startswith(SEARCH_PREFIX):
            query = command[len(SEARCH_PREFIX):].strip()
            try:
                results = session.search(query)
            except LLMAppError as e:
                _report_error(e, "search", write)
            except KeyboardInterrupt:
                _report_cancelled("search", write)
            else:
                write(format_search_results(results))
            continue

        if command == "/count":
            write(f"{session.count()} documents in knowledge base")
            continue

        if command == "/clear":
            session.clear()
            write("Knowledge base cleared")
            continue

        if command == "/help":
            show_commands(write)
            continue

        try:
            response = session.converse(command)
        except LLMAppError as e:
            _report_error(e, "chat", write)
            continue

        write(f"\n{response}")

    return dispatched
