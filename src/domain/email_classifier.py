"""
College mail classifier - ordered rule pipeline.

classify() normalizes one email and runs it through STAGES in order:

1. Security/account alerts
2. Replies to the student's outreach
3. Confirmations of student actions
4. Accepted-student information
5. Dual enrollment coursework
6. Scholarships (named opportunity, not-awarded, awarded)
7. Financial aid ready
8. Marketing/unsolicited outreach

Each stage returns a ClassificationResult or None. The first result wins;
if every stage declines, the email is marked not relevant with low
confidence. Filtering is the safe default: spam reaching the inbox is worse
than a relevant email landing in the filtered label.

The classifier never raises for malformed input and has no I/O.
"""

import logging
from typing import Any, Callable, Mapping, Optional, Sequence, Tuple

from .models import EmailInput, NormalizedText, ClassificationResult, as_text
from . import rules
from .rules import CategoryRule, Pattern

logger = logging.getLogger(__name__)

Stage = Callable[[NormalizedText], Optional[ClassificationResult]]


def normalize(email: Any) -> NormalizedText:
    """
    Lower-case the fields the rules look at.

    Args:
        email: EmailInput or exporter mapping (missing fields allowed)

    Returns:
        NormalizedText
    """
    if not isinstance(email, EmailInput):
        email = EmailInput.from_dict(email)
    return NormalizedText(
        subject=as_text(email.subject).lower(),
        body=as_text(email.body).lower(),
        sender=as_text(email.from_address).lower(),
    )


def _verdict(rule: CategoryRule, pattern: Optional[Pattern] = None) -> ClassificationResult:
    matched = (rule.rule_id,)
    if pattern is not None:
        matched += (f"{rule.rule_id}.{pattern.label}",)
    return ClassificationResult(
        pertains=rule.pertains,
        reason=rule.reason,
        confidence=rule.confidence,
        matched_rules=matched,
    )


def _check_category(rule: CategoryRule, text: NormalizedText) -> Optional[ClassificationResult]:
    """Trigger matched and no exclusion matched -> the category's verdict."""
    trigger = rule.first_trigger(text)
    if trigger is None:
        return None

    exclusion = rule.first_exclusion(text)
    if exclusion is not None:
        logger.debug(
            f"{rule.rule_id}: trigger '{trigger.label}' vetoed by exclusion '{exclusion.label}'"
        )
        return None

    return _verdict(rule, trigger)


# ============================================================================
# Stages
# ============================================================================

def check_security(text: NormalizedText) -> Optional[ClassificationResult]:
    return _check_category(rules.SECURITY_ALERT, text)


def check_student_outreach(text: NormalizedText) -> Optional[ClassificationResult]:
    # Only replies ("Re:") to something the student sent qualify
    if not rules.REPLY_SUBJECT.matches(text):
        return None
    return _check_category(rules.STUDENT_OUTREACH_REPLY, text)


def check_student_action(text: NormalizedText) -> Optional[ClassificationResult]:
    return _check_category(rules.STUDENT_ACTION_CONFIRMATION, text)


def check_accepted(text: NormalizedText) -> Optional[ClassificationResult]:
    return _check_category(rules.ACCEPTED_STUDENT, text)


def check_dual_enrollment(text: NormalizedText) -> Optional[ClassificationResult]:
    return _check_category(rules.DUAL_ENROLLMENT, text)


def check_scholarship(text: NormalizedText) -> Optional[ClassificationResult]:
    """
    Scholarship stage.

    Order matters:
    1. "Apply for the <named> scholarship" subjects for specific programs
    2. Not-awarded language (held for you, eligible, consideration, ...)
    3. Awarded language

    Not-awarded is tested before awarded so that "scholarship offer" next to
    "eligible for a scholarship" resolves to not relevant.
    """
    opportunity = rules.SCHOLARSHIP_APPLICATION_OPPORTUNITY
    trigger = opportunity.first_trigger(text)
    if trigger is not None and rules.first_match(rules.NAMED_SCHOLARSHIP_PROGRAMS, text):
        return _verdict(opportunity, trigger)

    if rules.SCHOLARSHIP_MENTION.matches(text):
        not_awarded = rules.SCHOLARSHIP_NOT_AWARDED.first_trigger(text)
        if not_awarded is not None:
            return _verdict(rules.SCHOLARSHIP_NOT_AWARDED, not_awarded)

    return _check_category(rules.SCHOLARSHIP_AWARDED, text)


def check_financial_aid(text: NormalizedText) -> Optional[ClassificationResult]:
    return _check_category(rules.FINANCIAL_AID_READY, text)


def check_irrelevant(text: NormalizedText) -> Optional[ClassificationResult]:
    result = _check_category(rules.IRRELEVANT_MARKETING, text)
    if result is not None:
        return result
    return _check_category(rules.NOT_APPLIED, text)


STAGES: Tuple[Stage, ...] = (
    check_security,
    check_student_outreach,
    check_student_action,
    check_accepted,
    check_dual_enrollment,
    check_scholarship,
    check_financial_aid,
    check_irrelevant,
)

DEFAULT_RESULT = ClassificationResult(
    pertains=False,
    reason=rules.DEFAULT_REASON,
    confidence=rules.DEFAULT_CONFIDENCE,
    matched_rules=(rules.DEFAULT_RULE_ID,),
)

INVALID_INPUT_RESULT = ClassificationResult(
    pertains=False,
    reason=rules.INVALID_INPUT_REASON,
    confidence=rules.INVALID_INPUT_CONFIDENCE,
    matched_rules=(rules.INVALID_INPUT_RULE_ID,),
)


def run_stages(text: NormalizedText, stages: Sequence[Stage] = STAGES) -> ClassificationResult:
    """Return the first stage verdict, or the fail-closed default."""
    for stage in stages:
        result = stage(text)
        if result is not None:
            return result
    return DEFAULT_RESULT


def classify(email: Any) -> ClassificationResult:
    """
    Classify one email as pertaining to the student or not.

    Args:
        email: EmailInput or mapping with subject/body/from/to/cc/date

    Returns:
        ClassificationResult (never raises for malformed input)

    Example:
        >>> result = classify({'subject': 'Password Reset Required', 'body': ''})
        >>> result.pertains, result.matched_rules[0]
        (True, 'security_alert')
    """
    if not isinstance(email, (EmailInput, Mapping)):
        return INVALID_INPUT_RESULT
    return run_stages(normalize(email))


class EmailClassifier:
    """
    Object wrapper around the stage pipeline.

    Holds an optional custom stage list (useful when trying out new rules
    against a labeled dataset) and logs each verdict.
    """

    def __init__(self, stages: Optional[Sequence[Stage]] = None):
        self.stages = tuple(stages) if stages is not None else STAGES

    def classify(self, email: Any) -> ClassificationResult:
        if not isinstance(email, (EmailInput, Mapping)):
            logger.warning(f"Invalid email object: {type(email).__name__}")
            return INVALID_INPUT_RESULT

        result = run_stages(normalize(email), self.stages)
        logger.debug(f"Classified: {result!r} reason={result.reason}")
        return result
