"""
CLI presentation layer - Clean interface for command-line interactions.
Coordinates with the chat service to provide a terminal chat.
"""

from __future__ import annotations
import logging
from typing import Optional

from ..application.chat_service import ChatService
from ..domain.errors import BackendError, InvalidState
from ..utils import truncate_text


class ChatCLI:
    """CLI interface for one chat session."""

    def __init__(
        self,
        chat_service: ChatService,
        session_id: str,
        quiet: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        self._chat_service = chat_service
        self._session_id = session_id
        self._quiet = quiet
        self._logger = logger or logging.getLogger(__name__)

    def interactive_mode(self, stream: bool = True) -> None:
        """Run interactive chat mode."""
        if not self._quiet:
            self._print_welcome()

        while True:
            try:
                user_input = input("You: ").strip()

                if not user_input:
                    continue

                if user_input.lower() in ('quit', 'exit'):
                    break

                if self._handle_cli_commands(user_input):
                    continue

                self._process_chat_message(user_input, stream=stream)

            except KeyboardInterrupt:
                if not self._quiet:
                    print("\n\nUse 'quit' or 'exit' to leave the chat")
                continue
            except EOFError:
                break

        if not self._quiet:
            print("Goodbye!")

    def single_message(self, message: str, stream: bool = False) -> Optional[str]:
        """Process a single message. Returns the reply, or None when it failed."""
        return self._process_chat_message(message, stream=stream)

    def _print_welcome(self) -> None:
        session = self._chat_service.get_session(self._session_id)
        print("chatbridge - Interactive Mode")
        print(f"Backend: {session.kind.value}  Model: {session.model}")
        if session.system_prompt:
            print(f"System: {truncate_text(session.system_prompt, 70)}")
        print("Commands: 'quit'/'exit', /clear, /history, /usage, /trim N")
        print("-" * 60)

    def _handle_cli_commands(self, user_input: str) -> bool:
        """Handle built-in slash commands. Returns True when consumed."""
        if not user_input.startswith('/'):
            return False

        command, _, arg = user_input[1:].partition(' ')
        command = command.lower()
        session = self._chat_service.get_session(self._session_id)

        if command == 'clear':
            self._chat_service.clear(self._session_id)
            print("History cleared")
        elif command == 'history':
            records = session.history()
            if not records:
                print("(empty)")
            for record in records:
                print(f"{record['role']}: {truncate_text(record['text'], 200)}")
        elif command == 'usage':
            usage = session.usage
            print(
                f"Tokens - input: {usage.input_tokens}, output: {usage.output_tokens}, "
                f"total: {usage.total_tokens}"
            )
        elif command == 'trim':
            try:
                removed = self._chat_service.trim(self._session_id, int(arg))
            except (ValueError, InvalidState):
                print("Usage: /trim N  (N >= 0)")
            else:
                print(f"Removed {removed} turn(s)")
        else:
            print(f"Unknown command: /{command}")
        return True

    def _process_chat_message(self, message: str, stream: bool = False) -> Optional[str]:
        try:
            if stream:
                return self._process_streaming_chat(message)
            reply = self._chat_service.send(self._session_id, message)
            print(f"Assistant: {reply}" if not self._quiet else reply)
            return reply
        except InvalidState as e:
            print(f"Error: {e}")
        except BackendError as e:
            self._logger.error(f"Chat error: {e}")
            print(f"Error: {e}")
        return None

    def _process_streaming_chat(self, message: str) -> Optional[str]:
        if not self._quiet:
            print("Assistant: ", end="", flush=True)

        accumulated = []
        stream = self._chat_service.stream(self._session_id, message)
        try:
            for fragment in stream:
                accumulated.append(fragment)
                print(fragment, end="", flush=True)
        except KeyboardInterrupt:
            # Abandoned replies are not kept in the transcript
            print("\n[interrupted]")
            return None
        finally:
            stream.close()
        print()
        return "".join(accumulated)
