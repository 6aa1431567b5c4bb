"""
AWS Lambda handler for triaging SES email notifications from SQS.

Thin orchestration layer that delegates to TriageProcessor.
Policy: Always delete attempted messages (no retries). Errors logged to CloudWatch.
Messages not attempted before the time budget ran out are returned for redelivery.
"""

import logging
import os
import time
from typing import Dict, Any

from domain.triage_processor import TriageProcessor
from services import mailbox

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

# Stop starting new messages when less than this much time is left
MIN_REMAINING_MS = int(os.environ.get('TRIAGE_MIN_REMAINING_MS', '15000'))

# Initialize processor once at module level (reused across invocations)
triage_processor = TriageProcessor()


def _remaining_ms(context: Any) -> int:
    getter = getattr(context, 'get_remaining_time_in_millis', None)
    if not callable(getter):
        return MIN_REMAINING_MS + 1
    try:
        return int(getter())
    except (TypeError, ValueError):
        return MIN_REMAINING_MS + 1


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Triage SES email notifications from SQS.

    Args:
        event: Lambda event with SQS records
        context: Lambda context

    Returns:
        Dict with batchItemFailures (only messages skipped for lack of time)
    """
    start_time = time.time()
    logger.info("=" * 70)
    logger.info(f"College Mail Triage - Started (dry_run={mailbox.DRY_RUN})")
    logger.info("=" * 70)

    records = event.get('Records', [])
    logger.info(f"Processing batch of {len(records)} message(s)")

    stats = mailbox.MailboxStats()
    results = []
    unprocessed = []
    for index, record in enumerate(records):
        if _remaining_ms(context) < MIN_REMAINING_MS:
            unprocessed = records[index:]
            stats.skipped = len(unprocessed)
            logger.warning(f"Time limit reached. Processed {index}/{len(records)}")
            break

        result = triage_processor.process_ses_record(record, stats)
        results.append(result)

        if result.success:
            logger.info(f"✓ Triaged message {result.message_id}: {result.action}")
        else:
            logger.warning(
                f"⚠ Triaged message {result.message_id} with ERRORS: "
                f"{result.error_message} (action={result.action})"
            )

    total_time = time.time() - start_time
    logger.info("=" * 70)
    logger.info(f"Batch triage complete: {len(results)} message(s) in {total_time:.2f}s")
    logger.info(f"  Summary: {stats.summary()}")
    logger.info("=" * 70)

    # Messages never attempted go back to the queue; attempted ones are always consumed
    return {
        "batchItemFailures": [
            {"itemIdentifier": r.get('messageId', 'UNKNOWN')} for r in unprocessed
        ]
    }
