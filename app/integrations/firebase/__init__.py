"""Firebase Cloud Messaging integration package.

Contains:

- client: lazily initialised Firebase app and multicast send helper.
"""
