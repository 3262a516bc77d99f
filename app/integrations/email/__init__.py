"""Transactional email API integration package.

Contains:

- client: submits rendered notification emails to the configured email API.
"""
