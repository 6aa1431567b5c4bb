"""
Data models for the college mail triage domain.

These type-safe data structures define clear contracts between components.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any, Mapping, Tuple


def as_text(value: Any) -> str:
    """Coerce an optional exporter field to a string ('' for None)."""
    if value is None:
        return ''
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class EmailInput:
    """
    Email record handed to the classifier.

    Attributes:
        subject: Subject line
        body: Plain text body
        from_address: Sender ("from" in exported records)
        to: Recipient header
        cc: CC header
        date: Date string as exported (optional)
    """
    subject: str = ''
    body: str = ''
    from_address: str = ''
    to: str = ''
    cc: str = ''
    date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'EmailInput':
        """
        Build from an exporter record.

        Missing or None fields become empty strings.

        Args:
            data: Mapping with subject/body/from/to/cc/date keys

        Returns:
            EmailInput
        """
        sender = data.get('from')
        if sender is None:
            sender = data.get('from_address')
        date = data.get('date')
        return cls(
            subject=as_text(data.get('subject')),
            body=as_text(data.get('body')),
            from_address=as_text(sender),
            to=as_text(data.get('to')),
            cc=as_text(data.get('cc')),
            date=as_text(date) if date is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the exporter record format."""
        result = {
            'subject': self.subject,
            'body': self.body,
            'from': self.from_address,
            'to': self.to,
            'cc': self.cc,
        }
        if self.date is not None:
            result['date'] = self.date
        return result

    @property
    def has_content(self) -> bool:
        """Check if email has a subject or a body."""
        return bool(self.subject.strip() or self.body.strip())


@dataclass(frozen=True)
class NormalizedText:
    """
    Lower-cased view of an email used as the match surface.

    Built fresh for every classification call.
    """
    subject: str
    body: str
    sender: str

    @property
    def combined(self) -> str:
        """Subject and body joined by a single space."""
        return f"{self.subject} {self.body}"


@dataclass(frozen=True)
class ClassificationResult:
    """
    Verdict for a single email.

    Attributes:
        pertains: True to keep the email in the inbox
        reason: Human-readable explanation
        confidence: Fixed per-rule confidence in [0, 1]
        matched_rules: Rule identifiers that produced the verdict
    """
    pertains: bool
    reason: str
    confidence: float
    matched_rules: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-friendly dict."""
        return {
            'pertains': self.pertains,
            'reason': self.reason,
            'confidence': self.confidence,
            'matched_rules': list(self.matched_rules),
        }

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        rules = ', '.join(self.matched_rules) or 'none'
        return (
            f"ClassificationResult(pertains={self.pertains}, "
            f"confidence={self.confidence}, rules={rules})"
        )


@dataclass
class LabeledEmail:
    """
    Email with a human relevance label, as stored in datasets.

    Attributes:
        thread_id: Mailbox thread identifier (dedupe key)
        email: The email fields
        pertains: Human verdict (None if not labeled yet)
        reason: Why the human chose the verdict
        confidence: Labeler confidence ("high", "medium", "low")
        labels: Mailbox labels at export time
        is_in_inbox: Whether the thread was in the inbox at export time
        labeled_at: ISO 8601 timestamp of labeling
        notes: Free-form notes
    """
    thread_id: str
    email: EmailInput
    pertains: Optional[bool] = None
    reason: str = ''
    confidence: Optional[str] = None
    labels: List[str] = field(default_factory=list)
    is_in_inbox: bool = False
    labeled_at: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_labeled(self) -> bool:
        """Check if a human verdict is present."""
        return self.pertains is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'LabeledEmail':
        """Build from a dataset record (flat email fields plus label fields)."""
        return cls(
            thread_id=as_text(data.get('thread_id')),
            email=EmailInput.from_dict(data),
            pertains=data.get('pertains'),
            reason=as_text(data.get('reason')),
            confidence=data.get('confidence'),
            labels=list(data.get('labels') or []),
            is_in_inbox=bool(data.get('is_in_inbox', False)),
            labeled_at=data.get('labeled_at'),
            notes=data.get('notes'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a flat dataset record."""
        result = {'thread_id': self.thread_id}
        result.update(self.email.to_dict())
        result['labels'] = list(self.labels)
        result['is_in_inbox'] = self.is_in_inbox
        if self.pertains is not None:
            result['pertains'] = self.pertains
            result['reason'] = self.reason
        for key in ('confidence', 'labeled_at', 'notes'):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result


@dataclass
class EmailMetadata:
    """
    Structured email metadata extracted from SES notification.

    Attributes:
        message_id: Unique SQS message identifier
        from_address: Email sender address
        to_addresses: List of recipient addresses
        subject: Email subject line
        timestamp: ISO 8601 timestamp when email was received
        bucket_name: S3 bucket containing the raw email
        object_key: S3 object key for the raw email
    """
    message_id: str
    from_address: str
    to_addresses: List[str]
    subject: str
    timestamp: str
    bucket_name: str
    object_key: str


@dataclass
class TriageResult:
    """
    Result of triaging one mailbox message.

    This explicit result type makes success/failure handling clear
    and prevents exceptions from being used for control flow.

    Attributes:
        success: Whether triage completed without errors
        message_id: SQS message identifier
        metadata: Email metadata (if parsing succeeded)
        classification: Classifier verdict (if classification ran)
        action: Mailbox action taken: "inbox", "filtered" or None
        dry_run: True if the action was only logged
        error_message: Error description (if triage failed)
    """
    success: bool
    message_id: str
    metadata: Optional[EmailMetadata] = None
    classification: Optional[ClassificationResult] = None
    action: Optional[str] = None
    dry_run: bool = False
    error_message: Optional[str] = None

    @property
    def should_delete_message(self) -> bool:
        """Always True - delete all messages to prevent infinite retries."""
        return True

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.success:
            return f"TriageResult(success=True, message_id={self.message_id}, action={self.action})"
        else:
            return (
                f"TriageResult(success=False, message_id={self.message_id}, "
                f"action={self.action}, error={self.error_message})"
            )


@dataclass
class EvaluationFailure:
    """A labeled email the classifier got wrong."""
    labeled: LabeledEmail
    actual: ClassificationResult

    @property
    def kind(self) -> str:
        return "FALSE POSITIVE" if self.actual.pertains else "FALSE NEGATIVE"


@dataclass
class EvaluationReport:
    """
    Accuracy metrics of the classifier over a labeled dataset.

    Attributes:
        total: Number of labeled emails evaluated
        correct: Predictions matching the human label
        incorrect: Predictions not matching the human label
        false_positives: Predicted relevant, labeled not relevant
        false_negatives: Predicted not relevant, labeled relevant
        true_positives: Predicted and labeled relevant
        failures: Details of every wrong prediction
    """
    total: int = 0
    correct: int = 0
    incorrect: int = 0
    false_positives: int = 0
    false_negatives: int = 0
    true_positives: int = 0
    failures: List[EvaluationFailure] = field(default_factory=list)

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0

    @property
    def precision(self) -> float:
        predicted_positive = self.true_positives + self.false_positives
        return self.true_positives / predicted_positive if predicted_positive else 0.0

    @property
    def recall(self) -> float:
        actual_positive = self.true_positives + self.false_negatives
        return self.true_positives / actual_positive if actual_positive else 0.0

    @property
    def f1_score(self) -> float:
        precision, recall = self.precision, self.recall
        if precision + recall == 0:
            return 0.0
        return 2 * precision * recall / (precision + recall)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-friendly dict (failures summarized)."""
        return {
            'total': self.total,
            'correct': self.correct,
            'incorrect': self.incorrect,
            'false_positives': self.false_positives,
            'false_negatives': self.false_negatives,
            'accuracy': self.accuracy,
            'precision': self.precision,
            'recall': self.recall,
            'f1_score': self.f1_score,
            'failures': [
                {
                    'thread_id': f.labeled.thread_id,
                    'subject': f.labeled.email.subject,
                    'expected': f.labeled.pertains,
                    'actual': f.actual.to_dict(),
                }
                for f in self.failures
            ],
        }
