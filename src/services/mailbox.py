"""
Mailbox actions for classified emails.

The mailbox is the S3 bucket SES writes to. Keeping an email means moving it
under the inbox prefix tagged with the approved label; filtering means moving
it under the filtered prefix tagged with the filtered label.

Policy: FAIL-OPEN. If applying any action fails, the email is kept in the
inbox. The classifier itself fails closed (uncertain -> filtered); the
dispatcher is the opposite so that an infrastructure error never hides mail.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, Optional

from domain.models import ClassificationResult
from services import s3 as s3_service

logger = logging.getLogger(__name__)

# Configuration from environment
DRY_RUN = os.environ.get('TRIAGE_DRY_RUN', 'true').lower() in ('1', 'true', 'yes')
MAILBOX_BUCKET = os.environ.get('TRIAGE_MAILBOX_BUCKET', '')
INBOX_PREFIX = os.environ.get('TRIAGE_INBOX_PREFIX', 'inbox/')
FILTERED_PREFIX = os.environ.get('TRIAGE_FILTERED_PREFIX', 'filtered/')
APPROVED_LABEL = os.environ.get('TRIAGE_APPROVED_LABEL', 'College')
FILTERED_LABEL = os.environ.get('TRIAGE_FILTERED_LABEL', 'College/Filtered')

LABEL_TAG = 'triage-label'
REASON_TAG = 'triage-reason'

ACTION_INBOX = 'inbox'
ACTION_FILTERED = 'filtered'


class MailboxActionError(Exception):
    """Raised when an email could not even be kept in the inbox."""
    pass


@dataclass
class MailboxStats:
    """Counters for one triage run (dry-run actions counted as 'would')."""
    would_inbox: int = 0
    would_filtered: int = 0
    did_inbox: int = 0
    did_filtered: int = 0
    errors: int = 0
    skipped: int = 0

    def record(self, action: str, dry_run: bool) -> None:
        if action == ACTION_INBOX:
            if dry_run:
                self.would_inbox += 1
            else:
                self.did_inbox += 1
        elif action == ACTION_FILTERED:
            if dry_run:
                self.would_filtered += 1
            else:
                self.did_filtered += 1

    def summary(self) -> str:
        return (
            f"Inbox={self.would_inbox}/{self.did_inbox}, "
            f"Filtered={self.would_filtered}/{self.did_filtered}, "
            f"Errors={self.errors}, Skipped={self.skipped}"
        )


def _sanitize_tag_value(value: str) -> str:
    """
    Sanitize a string for use as an S3 tag value.

    S3 tag values allow letters, digits, spaces and + - = . _ : / @ only,
    up to 256 characters.
    """
    result = re.sub(r'[^\w\s+\-=.:/@]', '', value)
    return result[:256]


def _relocated_key(key: str, prefix: str) -> str:
    """Keep the object's name but place it under the given prefix."""
    for known in (INBOX_PREFIX, FILTERED_PREFIX):
        if known and key.startswith(known):
            key = key[len(known):]
            break
    return f"{prefix}{key}"


def _move(bucket: str, key: str, prefix: str, tags: Dict[str, str]) -> str:
    """Tag in place if already under prefix, otherwise copy then delete (copy removed if the delete fails)."""
    dest_bucket = MAILBOX_BUCKET or bucket
    dest_key = _relocated_key(key, prefix)

    if dest_bucket == bucket and dest_key == key:
        s3_service.tag_email(bucket, key, tags)
        return key

    s3_service.copy_email(bucket, key, dest_bucket, dest_key, tags)
    try:
        s3_service.delete_email(bucket, key)
    except Exception:
        # Undo the copy so the email exists under one key only
        logger.warning(f"Delete of s3://{bucket}/{key} failed, removing copy s3://{dest_bucket}/{dest_key}")
        s3_service.delete_email(dest_bucket, dest_key)
        raise
    return dest_key


def apply_inbox_action(bucket: str, key: str, reason: str) -> str:
    """
    Keep an email in the inbox with the approved label.

    Args:
        bucket: Bucket holding the email
        key: Object key of the email
        reason: Classification reason (stored as a tag for auditing)

    Returns:
        str: Key of the email after the action

    Raises:
        ClientError: If S3 operation fails
    """
    if DRY_RUN:
        logger.info(f"  DRY_RUN: Would move to Inbox ({reason})")
        return key

    tags = {LABEL_TAG: APPROVED_LABEL, REASON_TAG: _sanitize_tag_value(reason)}
    new_key = _move(bucket, key, INBOX_PREFIX, tags)
    logger.info(f"  Applied: Moved to Inbox ({reason})")
    return new_key


def apply_filtered_action(bucket: str, key: str, reason: str) -> str:
    """
    Archive an email under the filtered label.

    Args:
        bucket: Bucket holding the email
        key: Object key of the email
        reason: Classification reason (stored as a tag for auditing)

    Returns:
        str: Key of the email after the action

    Raises:
        ClientError: If S3 operation fails
    """
    if DRY_RUN:
        logger.info(f"  DRY_RUN: Would filter ({reason})")
        return key

    tags = {LABEL_TAG: FILTERED_LABEL, REASON_TAG: _sanitize_tag_value(reason)}
    new_key = _move(bucket, key, FILTERED_PREFIX, tags)
    logger.info(f"  Applied: Filtered ({reason})")
    return new_key


def keep_in_inbox(bucket: str, key: str, reason: str,
                  stats: Optional[MailboxStats] = None) -> str:
    """
    Fail-safe: keep the email in the inbox.

    Returns:
        str: ACTION_INBOX

    Raises:
        MailboxActionError: If even the inbox action fails
    """
    try:
        apply_inbox_action(bucket, key, reason)
    except Exception as e:
        logger.error(f"FAIL-SAFE inbox action failed for s3://{bucket}/{key}: {e}", exc_info=True)
        raise MailboxActionError(f"Could not keep s3://{bucket}/{key} in inbox: {e}") from e

    if stats is not None:
        stats.record(ACTION_INBOX, DRY_RUN)
    return ACTION_INBOX


def dispatch(bucket: str, key: str, result: ClassificationResult,
             stats: Optional[MailboxStats] = None) -> str:
    """
    Apply the mailbox action matching a classification.

    Logs the verdict, matched rules and action for auditing. Any error while
    applying the action falls back to keeping the email in the inbox.

    Args:
        bucket: Bucket holding the email
        key: Object key of the email
        result: Classifier verdict
        stats: Optional run counters to update

    Returns:
        str: ACTION_INBOX or ACTION_FILTERED (the action actually applied)

    Raises:
        MailboxActionError: If the fail-safe inbox action also fails
    """
    rules = ', '.join(result.matched_rules) or 'none'
    logger.info(
        f"[{key}] Relevant={result.pertains} Confidence={result.confidence} "
        f"Rules={rules} Reason=\"{result.reason}\""
    )

    action = ACTION_INBOX if result.pertains else ACTION_FILTERED
    try:
        if action == ACTION_INBOX:
            apply_inbox_action(bucket, key, result.reason)
        else:
            apply_filtered_action(bucket, key, result.reason)
    except Exception as e:
        logger.error(f"ERROR applying {action} action to {key}: {e}. FAIL-SAFE: Moving to inbox.")
        if stats is not None:
            stats.errors += 1
        return keep_in_inbox(bucket, key, f"fail-safe after error: {result.reason}", stats)

    if stats is not None:
        stats.record(action, DRY_RUN)
    return action
