# =============================================================================
# finddocs/cli/main.py -- Command-line interface
# =============================================================================
#
# Subcommands:
#
#   file          -- Convert and store a single document
#   directory     -- Preview and batch-ingest every supported file in a tree
#   ask           -- Answer one question from the stored documents
#   chat          -- Interactive question loop (type /new for a new conversation)
#   list          -- List stored documents
#   remove        -- Remove a document (its file may then be ingested again)
#   stats         -- Library size statistics
#   conversations -- List conversations, or switch the current one
#   clear         -- Delete all documents, hashes and conversations
#
# Usage examples:
#   python -m finddocs.cli file ./reports/q3.pdf
#   python -m finddocs.cli directory ./reports --dry-run
#   python -m finddocs.cli ask "What was the Q3 revenue?"
#   python -m finddocs.cli clear --yes
# =============================================================================

"""Command-line interface for FindDocs.

Usage::

    python -m finddocs.cli file /path/to/report.pdf
    python -m finddocs.cli directory /path/to/reports
    python -m finddocs.cli ask "What does the report say about revenue?"
    python -m finddocs.cli chat
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from finddocs.config.loader import feature_enabled, load_config
from finddocs.config.settings import Settings
from finddocs.main import open_app
from finddocs.models.conversion import ConversionProgress
from finddocs.models.document import SourceFile
from finddocs.models.ingestion import BatchProgress, IngestStatus
from finddocs.services.qa_service import GENERATION_FAILED_MESSAGE, NEW_CONVERSATION_COMMAND
from finddocs.utils.concurrency import CancellationToken
from finddocs.utils.errors import (
    ConfigurationError,
    ConversationNotFoundError,
    FindDocsError,
    GenerationError,
    RetrievalError,
    StorageReadError,
    StorageWriteError,
)
from finddocs.utils.logging import configure_logging, log_context

_EXIT_COMMANDS = frozenset({"/quit", "/exit"})


def format_duration(milliseconds: float) -> str:
    """Render a remaining-time estimate for humans."""
    if milliseconds < 1000:
        return "Less than 1 second"
    seconds = round(milliseconds / 1000)
    if seconds < 60:
        return f"{seconds} seconds"
    return f"{round(seconds / 60)} minutes"


def _print_progress(operation_id: str, progress: BatchProgress) -> None:
    line = progress.message or f"{progress.filename} ({progress.index}/{progress.total})"
    conversion: ConversionProgress | None = progress.conversion
    if conversion is not None and conversion.estimated_remaining_ms:
        line += f" -- about {format_duration(conversion.estimated_remaining_ms)} left"
    print(f"  {line}")


@contextmanager
def _cancel_on_interrupt(token: CancellationToken) -> Iterator[None]:
    """Cancel *token* on Ctrl-C so a batch stops after the current file."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "Cancelled by user")
    except (NotImplementedError, RuntimeError):
        # No loop signal support here (Windows, non-main thread); Ctrl-C aborts.
        yield
        return
    try:
        yield
    finally:
        loop.remove_signal_handler(signal.SIGINT)


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_file(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest a single file."""
    path = Path(args.path)
    if not path.is_file():
        print(f"Error: not a file: {path}", file=sys.stderr)
        return 1

    source = SourceFile.from_path(path)
    ingestion = components["ingestion"]
    tracker = components["tracker"]
    operation_id = f"file:{source.name}"
    tracker.register_listener(operation_id, _print_progress)

    token = CancellationToken()
    print(f"Processing {source.name}...")
    try:
        with _cancel_on_interrupt(token):
            outcome = await ingestion.ingest_one(source, cancel_token=token, operation_id=operation_id)
    except FindDocsError as exc:
        print(f"Failed to process {source.name}. {exc.message}", file=sys.stderr)
        return 1
    finally:
        tracker.forget(operation_id)

    print(outcome.message)
    return 1 if outcome.status == IngestStatus.FAILED else 0


async def _handle_directory(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Preview a directory, then ingest its new supported files in sequence."""
    config = components["config"]
    if not feature_enabled(config, "directory_upload"):
        print("Directory upload is disabled in config/config.yaml.", file=sys.stderr)
        return 1

    ingestion = components["ingestion"]
    try:
        scan = ingestion.scan_directory(args.path)
    except NotADirectoryError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not scan.supported:
        print("No supported files found in directory")
        return 0
    print(scan.describe())
    if scan.unsupported:
        print(f"  ({len(scan.unsupported)} unsupported files will be ignored)")

    if args.dry_run:
        for source in scan.new:
            print(f"  new:       {source.relative_path or source.name}")
        for source in scan.duplicates:
            print(f"  processed: {source.relative_path or source.name}")
        return 0

    if not scan.new:
        print("All files in directory have already been processed!")
        return 0
    if not feature_enabled(config, "batch_processing"):
        print("Batch processing is disabled in config/config.yaml.", file=sys.stderr)
        return 1

    print(
        f"Starting batch processing: {len(scan.new)} new files, "
        f"{len(scan.duplicates)} skipped (already processed)"
    )
    tracker = components["tracker"]
    operation_id = f"directory:{scan.directory}"
    tracker.register_listener(operation_id, _print_progress)

    token = CancellationToken()
    try:
        with _cancel_on_interrupt(token):
            report = await ingestion.ingest_batch(
                [*scan.supported, *scan.unsupported],
                cancel_token=token,
                operation_id=operation_id,
            )
    finally:
        tracker.forget(operation_id)

    print()
    print(report.summary)
    for error in report.errors:
        print(f"  {error}")
    return 1 if report.failed and not report.processed else 0


async def _handle_ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Answer a single question."""
    qa = components["qa"]
    try:
        if args.new:
            await qa.start_new_conversation()
        elif args.conversation:
            await qa.select_conversation(args.conversation)
        answer = await qa.ask(args.question)
    except (ValueError, RetrievalError, ConversationNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except GenerationError:
        print(GENERATION_FAILED_MESSAGE, file=sys.stderr)
        return 1

    print(answer.answer)
    if answer.sources and args.sources:
        print("\nSources:")
        for source in answer.sources:
            print(f"  {source.filename}  (relevance {source.relevance_score:.2f})")
            print(f"    {source.preview(150)}")
    return 0


async def _handle_chat(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Interactive question loop."""
    qa = components["qa"]
    state = components["state"]
    conversation = state.conversations.current()
    title = conversation.title if conversation else "Conversation"
    print(f"Current: {title}")
    print(f"Type {NEW_CONVERSATION_COMMAND} for a new conversation, /quit to leave.")

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            print()
            return 0
        text = line.strip()
        if not text:
            continue
        if text in _EXIT_COMMANDS:
            return 0
        if text == NEW_CONVERSATION_COMMAND:
            conversation = await qa.start_new_conversation()
            print(f"Current: {conversation.title}")
            continue

        try:
            answer = await qa.ask(text)
        except RetrievalError as exc:
            print(exc.message)
            continue
        except GenerationError:
            print(GENERATION_FAILED_MESSAGE)
            continue
        print(answer.answer)
        print()


async def _handle_list(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """List stored documents."""
    documents = components["state"].documents
    if not documents:
        print("No documents stored.")
        return 0
    for record in documents:
        created = record.created_at.strftime("%Y-%m-%d %H:%M")
        print(f"{record.id}  {created}  {len(record.content):>9} chars  {record.source_path or record.filename}")
    return 0


async def _handle_remove(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Remove a document by id."""
    try:
        record = await components["ingestion"].remove_document(args.document_id)
    except StorageWriteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if record is None:
        print(f"No document with id {args.document_id}", file=sys.stderr)
        return 1
    print(f"Removed {record.filename}")
    return 0


async def _handle_stats(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Display library statistics."""
    stats = components["state"].stats()
    print("Library Statistics")
    print("=" * 40)
    print(f"  Documents:        {stats.total_docs}")
    print(f"  Total characters: {stats.total_chars}")
    print(f"  Average chars:    {stats.avg_chars}")
    print(f"  Storage used:     {stats.storage_used_mb}MB")
    try:
        usage = await components["state"].storage_usage()
    except StorageReadError as exc:
        print(f"  Tier usage:       unavailable ({exc.message})")
        return 0
    print(f"  Primary tier:     {usage['primary']} chars")
    print(f"  Overflow tier:    {usage['overflow']} chars")
    return 0


async def _handle_conversations(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """List conversations or switch the current one."""
    if args.select:
        try:
            conversation = await components["qa"].select_conversation(args.select)
        except ConversationNotFoundError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
        print(f"Current: {conversation.title}")
        return 0

    conversations = components["state"].conversations
    for conversation in conversations.conversations:
        marker = "*" if conversation.id == conversations.current_id else " "
        print(f"{marker} {conversation.id}  {conversation.title}  ({len(conversation.messages)} messages)")
    return 0


async def _handle_clear(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Delete all stored state.  Requires confirmation unless --yes is passed."""
    state = components["state"]
    if not args.yes:
        confirm = input(
            f"  Delete {len(state.documents)} documents and all conversations? [y/N] "
        ).strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0
    try:
        await state.clear()
    except StorageWriteError as exc:
        print(f"Error clearing storage: {exc}", file=sys.stderr)
        return 1
    print("Storage cleared successfully")
    return 0


_HANDLERS = {
    "file": _handle_file,
    "directory": _handle_directory,
    "ask": _handle_ask,
    "chat": _handle_chat,
    "list": _handle_list,
    "remove": _handle_remove,
    "stats": _handle_stats,
    "conversations": _handle_conversations,
    "clear": _handle_clear,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the FindDocs CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m finddocs.cli",
        description="Ingest documents and ask questions about them.",
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL (e.g. DEBUG)")
    parser.add_argument("--config", default="config/config.yaml", help="Path to config YAML")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- file --
    file_parser = subparsers.add_parser("file", help="Ingest a single document")
    file_parser.add_argument("path", help="Path to a pdf, txt, docx, png, jpg or jpeg file")

    # -- directory --
    dir_parser = subparsers.add_parser("directory", help="Ingest every supported file in a directory")
    dir_parser.add_argument("path", help="Directory path")
    dir_parser.add_argument(
        "--dry-run",
        action="store_true",
        dest="dry_run",
        help="Only show which files are new and which are already processed",
    )

    # -- ask --
    ask_parser = subparsers.add_parser("ask", help="Ask a question about stored documents")
    ask_parser.add_argument("question", help="The question")
    ask_parser.add_argument("--new", action="store_true", help="Start a new conversation first")
    ask_parser.add_argument("--conversation", default=None, help="Conversation id to continue")
    ask_parser.add_argument("--sources", action="store_true", help="Print the matched documents")

    # -- chat --
    subparsers.add_parser("chat", help="Interactive question loop")

    # -- list --
    subparsers.add_parser("list", help="List stored documents")

    # -- remove --
    remove_parser = subparsers.add_parser("remove", help="Remove a stored document")
    remove_parser.add_argument("document_id", help="Document id (see 'list')")

    # -- stats --
    subparsers.add_parser("stats", help="Show library statistics")

    # -- conversations --
    conv_parser = subparsers.add_parser("conversations", help="List or select conversations")
    conv_parser.add_argument("--select", default=None, help="Make this conversation current")

    # -- clear --
    clear_parser = subparsers.add_parser("clear", help="Delete all documents and conversations")
    clear_parser.add_argument("--yes", "-y", action="store_true", help="Skip confirmation prompt")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def run_command(
    args: argparse.Namespace,
    app_settings: Settings,
    config: dict[str, Any],
    **overrides: Any,
) -> int:
    """Open the application and dispatch *args* to its handler."""
    handler = _HANDLERS[args.command]
    with log_context(command=args.command):
        async with open_app(app_settings, config, **overrides) as components:
            return await handler(args, components)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse arguments, configure logging, dispatch."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(
        log_level=args.log_level or app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )
    try:
        config = load_config(args.config, settings=app_settings)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)

    exit_code = asyncio.run(run_command(args, app_settings, config))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
