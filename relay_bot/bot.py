"""
Telegram Bot - Completion Relay

Answers /summarize, /caveman and /explain by sending the replied-to message
to the completion endpoint and replying with the result. /help lists the
commands; /summarizerecent is reserved and not implemented yet.

Every command invocation sends exactly one threaded reply. Completion
failures are handled inside the handler; only Telegram send errors reach the
application error handler.
"""

import logging
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from dotenv import load_dotenv
from telegram import BotCommand, Message, Update
from telegram.ext import Application, CommandHandler, ContextTypes, filters

from . import __version__
from .commands import TEXT_COMMANDS, Command, bot_commands, help_text, parse_command
from .completion import CompletionClient, CompletionFailure, CompletionResult
from .config import BotConfig, ConfigError, load_config
from .logging_setup import configure_logging

logger = logging.getLogger("relay_bot.bot")

# -----------------------------------------------------------------------------
# Reply Texts
# -----------------------------------------------------------------------------
NO_REPLY_TARGET = "Reply to a message for this command."
NOT_TEXT_MESSAGE = "The replied message is not a text message."
NOT_IMPLEMENTED = "This command is not implemented yet."
NO_COMPLETION_FOUND = "No completion found in the response."
TRANSPORT_FAILED = "Failed to reach the completion service. Please try again later."
MALFORMED_RESPONSE = "Failed to process the message: invalid response from the completion service."

CLIENT_KEY = "completion_client"


def reply_target(message: Message) -> Optional[Message]:
    """
    The message a command replies to, if any.

    Inside forum topics Telegram sets reply_to_message to the topic's opening
    message even when the user did not reply to anything.
    """
    target = message.reply_to_message
    if target is None:
        return None
    if message.is_topic_message and target.message_id == message.message_thread_id:
        return None
    return target


@dataclass(frozen=True)
class ReplyContext:
    """Where to reply, and the replied-to text a command acts on."""
    chat_id: int
    message_id: int
    has_target: bool = False
    target_text: Optional[str] = None

    @classmethod
    def from_message(cls, message: Message) -> "ReplyContext":
        target = reply_target(message)
        return cls(
            chat_id=message.chat_id,
            message_id=message.message_id,
            has_target=target is not None,
            target_text=target.text if target is not None else None,
        )


def failure_message(result: CompletionResult) -> str:
    """User-facing text for a failed completion."""
    if result.failure == CompletionFailure.HTTP_STATUS:
        return f"Failed to process the message: error {result.status_code}"
    if result.failure == CompletionFailure.MISSING_CONTENT:
        return NO_COMPLETION_FOUND
    if result.failure == CompletionFailure.TRANSPORT:
        return TRANSPORT_FAILED
    return MALFORMED_RESPONSE


async def _reply(message: Message, text: str) -> None:
    await message.reply_text(text, do_quote=True)


def _completion_client(context: ContextTypes.DEFAULT_TYPE) -> CompletionClient:
    return context.bot_data[CLIENT_KEY]


# -----------------------------------------------------------------------------
# Command Handlers
# -----------------------------------------------------------------------------
async def handle_text_command(
    command: Command, message: Message, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /summarize, /caveman and /explain."""
    reply_context = ReplyContext.from_message(message)

    if not reply_context.has_target:
        logger.info(
            f"/{command.value} in chat {reply_context.chat_id} "
            f"(message {reply_context.message_id}) without a reply target"
        )
        await _reply(message, NO_REPLY_TARGET)
        return

    if not reply_context.target_text:
        logger.info(
            f"/{command.value} in chat {reply_context.chat_id} "
            f"(message {reply_context.message_id}) replied to a non-text message"
        )
        await _reply(message, NOT_TEXT_MESSAGE)
        return

    result = await _completion_client(context).complete_command(command, reply_context.target_text)

    if result.ok:
        logger.info(
            f"/{command.value} answered in chat {reply_context.chat_id} "
            f"(message {reply_context.message_id}) after {result.elapsed:.2f}s"
        )
        await _reply(message, result.completion)
        return

    logger.warning(
        f"/{command.value} failed in chat {reply_context.chat_id}: "
        f"{result.failure.value} (status={result.status_code}, detail={result.detail})"
    )
    await _reply(message, failure_message(result))


async def handle_help(
    command: Command, message: Message, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /help."""
    await _reply(message, help_text())


async def handle_summarize_recent(
    command: Command, message: Message, context: ContextTypes.DEFAULT_TYPE
) -> None:
    """Handle /summarizerecent. Placeholder until recent history is collected."""
    await _reply(message, NOT_IMPLEMENTED)


Handler = Callable[[Command, Message, ContextTypes.DEFAULT_TYPE], Awaitable[None]]

COMMAND_HANDLERS: Dict[Command, Handler] = {command: handle_text_command for command in TEXT_COMMANDS}
COMMAND_HANDLERS.update({
    Command.HELP: handle_help,
    Command.SUMMARIZE_RECENT: handle_summarize_recent,
})

_unhandled = set(Command) - set(COMMAND_HANDLERS)
if _unhandled:
    raise RuntimeError(f"Commands without a handler: {sorted(c.value for c in _unhandled)}")


async def answer(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Entry point for every registered command."""
    message = update.effective_message
    if message is None:
        return

    command = parse_command(message.text)
    if command is None:
        # CommandHandler only routes registered keywords here
        logger.debug(f"Ignoring unrecognised command text: {message.text!r}")
        return

    user_id = update.effective_user.id if update.effective_user else None
    logger.info(f"/{command.value} from user {user_id} in chat {message.chat_id}")

    await COMMAND_HANDLERS[command](command, message, context)


# -----------------------------------------------------------------------------
# Error Handler
# -----------------------------------------------------------------------------
async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log errors raised by handlers, typically failed Telegram sends."""
    logger.error(f"Update {update} caused error {context.error}", exc_info=context.error)


# -----------------------------------------------------------------------------
# Application Setup
# -----------------------------------------------------------------------------
async def post_init(application: Application) -> None:
    """Register the command menu and announce the bot's username."""
    await application.bot.set_my_commands(
        [BotCommand(name, description) for name, description in bot_commands()]
    )
    me = await application.bot.get_me()
    logger.info(f"{me.username} has started!")


def build_application(
    config: BotConfig, completion_client: Optional[CompletionClient] = None
) -> Application:
    """Build the python-telegram-bot Application with all handlers attached."""
    application = (
        Application.builder()
        .token(config.telegram_token)
        .concurrent_updates(True)
        .post_init(post_init)
        .build()
    )
    application.bot_data[CLIENT_KEY] = completion_client or CompletionClient(config)

    # New messages only: editing a command message must not trigger it again
    for command in Command:
        application.add_handler(
            CommandHandler(command.value, answer, filters=filters.UpdateType.MESSAGE)
        )

    application.add_error_handler(error_handler)
    return application


# -----------------------------------------------------------------------------
# Main Entry Point
# -----------------------------------------------------------------------------
def main() -> None:
    """Start the bot."""
    load_dotenv()

    try:
        config = load_config()
    except ConfigError as e:
        configure_logging()
        logger.error(str(e))
        sys.exit(1)

    configure_logging(config.log_level, config.log_file)

    logger.info("Starting relay bot...")
    logger.info(f"Bot Version: {__version__}")
    logger.info(f"Completion endpoint: {config.base_url} (model: {config.model})")

    application = build_application(config)

    logger.info("Polling for updates...")
    application.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
