"""
Test Suite for the Completion Relay Bot

- test_commands.py - Command parsing and help text
- test_completion.py - Completion client against a simulated endpoint
- test_bot.py - Telegram command handlers
- test_config.py - Environment configuration
"""
