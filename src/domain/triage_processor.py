"""
Mailbox triage pipeline - core business logic.

This module handles the end-to-end triage of SES email notifications:
1. Parse SES notification from SQS record
2. Fetch email from S3
3. Build the classifier input
4. Classify the email
5. Apply the mailbox action (inbox or filtered)

All errors are caught and returned as TriageResult with success=False.
Once the S3 location is known, any error keeps the email in the inbox.
No exceptions propagate out of the public methods.
"""

import json
import logging
from typing import Dict, Any, Optional

from .models import EmailMetadata, EmailInput, TriageResult
from .email_classifier import EmailClassifier
from services import email as email_service
from services import s3 as s3_service
from services import mailbox

logger = logging.getLogger(__name__)


class TriageProcessor:
    """
    Handles end-to-end triage of received emails.

    Classifies each email and moves it to the inbox or the filtered label.
    Returns TriageResult for explicit success/failure handling.
    """

    def __init__(self, classifier: Optional[EmailClassifier] = None):
        """Initialize triage processor."""
        self.classifier = classifier or EmailClassifier()

    def process_ses_record(self, record: Dict[str, Any],
                           stats: Optional[mailbox.MailboxStats] = None) -> TriageResult:
        """
        Triage a single SQS record containing an SES notification.

        Args:
            record: SQS record dict containing SES notification
            stats: Optional run counters

        Returns:
            TriageResult with success=True or success=False (errors logged)
        """
        message_id = record.get('messageId', 'UNKNOWN')
        logger.info(f"Processing SQS message: {message_id}")

        metadata = None
        try:
            metadata = self._parse_ses_notification(record)
            logger.info(f"Parsed: from={metadata.from_address}, subject={metadata.subject}")

            email = self._fetch_email(metadata)
            logger.info(f"Fetched: {email_service.describe(email)}")

            if not email.has_content:
                logger.warning("WARNING: No content. FAIL-SAFE: Moving to inbox.")
                action = mailbox.keep_in_inbox(
                    metadata.bucket_name, metadata.object_key, "no content", stats
                )
                return TriageResult(
                    success=True,
                    message_id=message_id,
                    metadata=metadata,
                    action=action,
                    dry_run=mailbox.DRY_RUN
                )

            classification = self.classifier.classify(email)
            action = mailbox.dispatch(
                metadata.bucket_name, metadata.object_key, classification, stats
            )

            return TriageResult(
                success=True,
                message_id=message_id,
                metadata=metadata,
                classification=classification,
                action=action,
                dry_run=mailbox.DRY_RUN
            )

        except Exception as e:
            logger.error(f"Failed to process {message_id}: {e}", exc_info=True)
            if stats is not None:
                stats.errors += 1

            action = self._fail_safe(metadata, stats)
            return TriageResult(
                success=False,
                message_id=message_id,
                metadata=metadata,
                action=action,
                dry_run=mailbox.DRY_RUN,
                error_message=str(e)
            )

    def _fail_safe(self, metadata: Optional[EmailMetadata],
                   stats: Optional[mailbox.MailboxStats]) -> Optional[str]:
        """Keep the email in the inbox after an error, if we know where it is."""
        if metadata is None:
            return None
        logger.warning(f"FAIL-SAFE: Moving {metadata.object_key} to inbox.")
        try:
            return mailbox.keep_in_inbox(
                metadata.bucket_name, metadata.object_key, "fail-safe after error", stats
            )
        except mailbox.MailboxActionError as e:
            logger.error(f"Fail-safe inbox action failed: {e}")
            return None

    def _parse_ses_notification(self, record: Dict[str, Any]) -> EmailMetadata:
        """
        Parse SQS record and extract SES notification metadata.

        Handles both direct SES->SQS and SNS-wrapped notifications.

        Args:
            record: SQS record dict

        Returns:
            EmailMetadata: Structured email metadata

        Raises:
            ValueError: If notification structure is invalid
            json.JSONDecodeError: If JSON parsing fails
        """
        message_id = record.get('messageId', 'UNKNOWN')

        sqs_body = json.loads(record['body'])

        # Check if wrapped in SNS (optional setup: SES -> SNS -> SQS)
        if sqs_body.get('Type') == 'Notification' and 'Message' in sqs_body:
            logger.info("Unwrapping SNS message (SES -> SNS -> SQS)")
            ses_notification = json.loads(sqs_body['Message'])
        else:
            ses_notification = sqs_body

        if 'mail' not in ses_notification or 'receipt' not in ses_notification:
            raise ValueError("SES notification missing 'mail' or 'receipt' fields")

        mail = ses_notification['mail']
        receipt = ses_notification['receipt']
        common_headers = mail.get('commonHeaders', {})

        # 'from' can be list, string, or missing (fall back to returnPath)
        from_field = common_headers.get('from', [])
        if isinstance(from_field, list) and len(from_field) > 0:
            from_address = from_field[0]
        elif isinstance(from_field, str) and from_field:
            from_address = from_field
        else:
            from_address = mail.get('returnPath', 'Unknown')

        to_field = common_headers.get('to', [])
        if isinstance(to_field, list):
            to_addresses = to_field
        elif isinstance(to_field, str) and to_field:
            to_addresses = [to_field]
        else:
            to_addresses = []

        action = receipt.get('action', {})
        bucket_name = action.get('bucketName')
        object_key = action.get('objectKey')

        if not bucket_name or not object_key:
            raise ValueError("Missing S3 location in SES notification")

        return EmailMetadata(
            message_id=message_id,
            from_address=from_address,
            to_addresses=to_addresses,
            subject=common_headers.get('subject', ''),
            timestamp=mail.get('timestamp', ''),
            bucket_name=bucket_name,
            object_key=object_key
        )

    def _fetch_email(self, metadata: EmailMetadata) -> EmailInput:
        """
        Fetch email from S3 and build the classifier input.

        Args:
            metadata: Email metadata containing S3 location

        Returns:
            EmailInput: Parsed email fields

        Raises:
            ValueError: If S3 fetch fails or email is empty
        """
        logger.info(f"Fetching email from: s3://{metadata.bucket_name}/{metadata.object_key}")

        raw_email = s3_service.fetch_email_from_s3(
            metadata.bucket_name,
            metadata.object_key
        )
        logger.info(f"Fetched {len(raw_email):,} bytes from S3")

        email = email_service.build_email_input(raw_email)

        # Headers in the notification are authoritative when the raw email lacks them
        if not email.subject and metadata.subject:
            email = EmailInput(
                subject=metadata.subject,
                body=email.body,
                from_address=email.from_address or metadata.from_address,
                to=email.to or ', '.join(metadata.to_addresses),
                cc=email.cc,
                date=email.date or metadata.timestamp or None
            )

        return email
