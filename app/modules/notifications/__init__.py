"""Notification relay.

Stores one notification per (recipient, event), fans it out to the
recipient's enabled channels and keeps retrying failed channels with
exponential backoff until they succeed or the retry budget runs out, at
which point operators are alerted.
"""
