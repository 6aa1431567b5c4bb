"""
Evaluation of the classifier against human-labeled emails.

Pure functions over datasets: scoring (accuracy/precision/recall/F1),
merging newly labeled emails into the main dataset, and exporting test cases.
Loading and saving datasets lives in services.datasets.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Tuple

from .models import LabeledEmail, ClassificationResult, EvaluationReport, EvaluationFailure
from .email_classifier import classify

logger = logging.getLogger(__name__)

# Minimum accuracy for a dataset run to count as passing
PASSING_ACCURACY = 0.90


def evaluate(
    emails: Iterable[LabeledEmail],
    classify_fn: Callable[[Any], ClassificationResult] = classify
) -> EvaluationReport:
    """
    Run the classifier over labeled emails and score it.

    Emails without a human verdict are ignored.

    Args:
        emails: Labeled dataset records
        classify_fn: Classifier to score (default: classify)

    Returns:
        EvaluationReport
    """
    report = EvaluationReport()

    for labeled in emails:
        if not labeled.is_labeled:
            continue

        actual = classify_fn(labeled.email)
        expected = bool(labeled.pertains)
        report.total += 1

        if actual.pertains == expected:
            report.correct += 1
            if expected:
                report.true_positives += 1
        else:
            report.incorrect += 1
            report.failures.append(EvaluationFailure(labeled=labeled, actual=actual))
            if actual.pertains:
                report.false_positives += 1
            else:
                report.false_negatives += 1

    logger.info(
        f"Evaluated {report.total} labeled email(s): accuracy={report.accuracy:.3f}, "
        f"precision={report.precision:.3f}, recall={report.recall:.3f}"
    )
    return report


def is_passing(report: EvaluationReport) -> bool:
    """Check whether the report meets the passing accuracy."""
    return report.total > 0 and report.accuracy >= PASSING_ACCURACY


def recommendations(report: EvaluationReport) -> List[str]:
    """
    Summarize what to do next based on the report.

    Returns:
        List of human-readable recommendation lines
    """
    lines = []

    if report.accuracy >= 0.95:
        lines.append("Excellent! Classifier is performing very well.")
    elif report.accuracy >= 0.85:
        lines.append("Good performance, but room for improvement.")
    else:
        lines.append("Poor performance. Significant improvements needed.")

    if report.false_negatives > report.false_positives:
        lines.append("More false negatives than false positives.")
        lines.append("  Risk: Missing important emails (they'll be filtered).")
        lines.append("  Recommendation: Add more rules to catch relevant emails.")
    elif report.false_positives > report.false_negatives:
        lines.append("More false positives than false negatives.")
        lines.append("  Risk: Spam getting through to inbox.")
        lines.append("  Recommendation: Tighten rules to reduce false relevance.")

    if report.recall < 0.9:
        lines.append(f"Low recall ({report.recall * 100:.1f}%). Missing too many relevant emails.")

    if report.precision < 0.9:
        lines.append(f"Low precision ({report.precision * 100:.1f}%). Too many false alarms.")

    return lines


def merge_labeled(
    dataset: Dict[str, Any],
    new_emails: Iterable[LabeledEmail]
) -> Tuple[Dict[str, Any], List[LabeledEmail], int]:
    """
    Merge newly labeled emails into a dataset, skipping known thread IDs.

    Imported human labels are marked with confidence "high".

    Args:
        dataset: Dataset dict with an 'emails' list of LabeledEmail
        new_emails: Newly labeled emails

    Returns:
        Tuple of (dataset, added emails, skipped duplicate count)
    """
    existing = dataset.setdefault('emails', [])
    known_ids = {e.thread_id for e in existing}

    added = []
    skipped = 0
    for labeled in new_emails:
        if labeled.thread_id in known_ids:
            skipped += 1
            continue
        labeled.confidence = 'high'
        known_ids.add(labeled.thread_id)
        added.append(labeled)

    if skipped:
        logger.warning(f"Skipped {skipped} duplicate email(s)")

    if added:
        existing.extend(added)
        dataset['total_count'] = len(existing)
        dataset['exported_at'] = datetime.now(timezone.utc).isoformat()
        logger.info(f"Merged {len(added)} new labeled email(s), dataset now {len(existing)}")

    return dataset, added, skipped


def export_test_suite(emails: Iterable[LabeledEmail]) -> List[Dict[str, Any]]:
    """
    Convert labeled emails into {input, expected, metadata} test cases.

    Only emails with a human verdict are exported.
    """
    cases = []
    for labeled in emails:
        if not labeled.is_labeled:
            continue
        cases.append({
            'input': labeled.email.to_dict(),
            'expected': {
                'pertains': labeled.pertains,
                'reason': labeled.reason,
            },
            'metadata': {
                'thread_id': labeled.thread_id,
                'date': labeled.email.date,
                'confidence': labeled.confidence or 'unknown',
                'notes': labeled.notes,
                'labels': list(labeled.labels),
            },
        })
    return cases
