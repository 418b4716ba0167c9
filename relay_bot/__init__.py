"""
Completion Relay Bot

Telegram bot that forwards replied-to messages to a chat completion API
(Groq by default) and posts the completion back as a threaded reply.

Note: the bot runtime lives in relay_bot.bot; importing the package does not
touch the environment or the network.
"""

__version__ = "0.1.0"
