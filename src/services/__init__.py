"""
Service functions for the triage pipeline.

This package contains the I/O edges: raw email parsing, S3 access,
mailbox actions and labeled dataset storage.
"""

__all__ = ['email', 's3', 'mailbox', 'datasets']
