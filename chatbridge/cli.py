#!/usr/bin/env python3
"""
Main CLI application for chatbridge.
"""

import argparse
import logging
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

from .application.chat_service import ChatService
from .domain.errors import ChatBridgeError
from .domain.models.conversation import BackendKind
from .infrastructure.config.settings import reload_settings
from .infrastructure.storage import JsonFileTranscriptStore
from .presentation.cli import ChatCLI
from .utils import setup_logging, validate_api_key


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chatbridge",
        description="Chat with OpenAI or Anthropic models through one session interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                              # Interactive mode (CHAT_BACKEND)
  %(prog)s --backend anthropic --message "Hello"        # Single message
  %(prog)s --message "Tell me a story" --stream         # Streaming mode
  %(prog)s --session-id demo --max-turns 20             # Persisted session (CHAT_STORE_DIR)
        """
    )

    parser.add_argument('--backend',
                       choices=[k.value for k in BackendKind],
                       help='Completion backend (default: CHAT_BACKEND or openai)')
    parser.add_argument('--model',
                       help='Model identifier (default: OPENAI_MODEL / ANTHROPIC_MODEL)')
    parser.add_argument('--system',
                       help='System instruction (default: CHAT_SYSTEM_PROMPT)')
    parser.add_argument('--message',
                       help='Single message mode (non-interactive)')
    parser.add_argument('--stream',
                       action='store_true',
                       help='Stream responses as they arrive')
    parser.add_argument('--max-turns',
                       type=int,
                       help='Keep at most N turns in the transcript')
    parser.add_argument('--max-tokens',
                       type=_positive_int,
                       help='Response length cap (Anthropic requires one; default ANTHROPIC_MAX_TOKENS)')
    parser.add_argument('--session-id',
                       help='Session id; resumed from CHAT_STORE_DIR when a transcript exists')
    parser.add_argument('--quiet',
                       action='store_true',
                       help='Reduce CLI output (suppress helper prints)')
    parser.add_argument('--log-level',
                       choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                       help='Set logging level (default: LOG_LEVEL or INFO)')
    parser.add_argument('--version',
                       action='version',
                       version='%(prog)s 0.1.0')
    return parser


def main(argv=None) -> int:
    """Main entry point for the chatbridge CLI."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        settings = reload_settings()
    except ValidationError as e:
        print(f"Error: invalid configuration\n{e}", file=sys.stderr)
        return 1

    setup_logging(args.log_level or settings.log_level, settings.log_format)
    logger = logging.getLogger(__name__)

    if args.max_tokens is not None:
        settings.anthropic.max_tokens = args.max_tokens
        settings.openai.max_tokens = args.max_tokens

    kind = BackendKind.parse(args.backend) if args.backend else settings.session.backend_kind
    if not validate_api_key(settings.api_key_for(kind)):
        missing = ', '.join(settings.validate_required_settings(kind)) or 'API key'
        print(f"Error: a valid {missing} is required for the {kind.value} backend", file=sys.stderr)
        return 1

    store = JsonFileTranscriptStore(settings.session.store_dir) if settings.session.store_dir else None
    service = ChatService(settings=settings, store=store, logger=logger)

    try:
        session_kwargs = dict(
            backend=kind, model=args.model, system_prompt=args.system, max_turns=args.max_turns
        )
        if store is not None and args.session_id and args.session_id in store.list_ids():
            session = service.load_session(args.session_id, **session_kwargs)
        else:
            session = service.create_session(session_id=args.session_id, **session_kwargs)

        cli = ChatCLI(service, session.session_id, quiet=args.quiet, logger=logger)
        if args.message:
            reply = cli.single_message(args.message, stream=args.stream)
            return 0 if reply is not None else 1
        cli.interactive_mode(stream=True)
        return 0
    except ChatBridgeError as e:
        logger.error(f"Fatal error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
