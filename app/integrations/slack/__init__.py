"""Slack incoming webhooks used by the chat channel."""
