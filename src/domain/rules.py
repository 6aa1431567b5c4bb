"""
Rule tables for the college mail classifier.

Each category is a CategoryRule holding ordered trigger patterns and ordered
exclusion patterns. A category produces its verdict when any trigger matches
and no exclusion matches. Patterns are compiled once at import and the tables
are immutable tuples, so they can be shared freely between concurrent calls.

To adjust behavior after reviewing a misclassified email, add or edit a
Pattern in the relevant tuple below. Order is significant only for the
labels reported in logs: the verdict depends on whether any pattern matches.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .models import NormalizedText

RULES_VERSION = "2025.11"


class Scope(Enum):
    """Which part of the normalized email a pattern is matched against."""
    SUBJECT = "subject"
    COMBINED = "combined"
    SENDER = "sender"


@dataclass(frozen=True)
class Pattern:
    """
    Declarative match expression.

    Attributes:
        label: Short identifier used in logs and audit output
        expression: Regular expression source (matched against lower-cased text)
        scope: Field the expression is searched in
        requires: Optional second expression that must also match the same
            scope (for rules such as "reserve your spot" AND an event word)
    """
    label: str
    expression: str
    scope: Scope = Scope.COMBINED
    requires: Optional[str] = None
    _compiled: re.Pattern = field(init=False, repr=False, compare=False)
    _compiled_requires: Optional[re.Pattern] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, '_compiled', re.compile(self.expression))
        object.__setattr__(
            self,
            '_compiled_requires',
            re.compile(self.requires) if self.requires else None,
        )

    def _surface(self, text: NormalizedText) -> str:
        if self.scope is Scope.SUBJECT:
            return text.subject
        if self.scope is Scope.SENDER:
            return text.sender
        return text.combined

    def matches(self, text: NormalizedText) -> bool:
        """Check the pattern (and its required companion) against the text."""
        surface = self._surface(text)
        if not self._compiled.search(surface):
            return False
        if self._compiled_requires is not None:
            return bool(self._compiled_requires.search(surface))
        return True


def first_match(patterns: Tuple[Pattern, ...], text: NormalizedText) -> Optional[Pattern]:
    """Return the first pattern that matches, or None."""
    for pattern in patterns:
        if pattern.matches(text):
            return pattern
    return None


@dataclass(frozen=True)
class CategoryRule:
    """
    One pipeline category: verdict constants plus trigger/exclusion tables.

    Attributes:
        rule_id: Identifier reported in matched_rules
        reason: Human-readable reason for the verdict
        pertains: Verdict produced when the category fires
        confidence: Fixed confidence attached to the verdict
        triggers: Patterns suggesting membership in the category
        exclusions: Patterns that veto a trigger match
    """
    rule_id: str
    reason: str
    pertains: bool
    confidence: float
    triggers: Tuple[Pattern, ...] = ()
    exclusions: Tuple[Pattern, ...] = ()

    def first_trigger(self, text: NormalizedText) -> Optional[Pattern]:
        return first_match(self.triggers, text)

    def first_exclusion(self, text: NormalizedText) -> Optional[Pattern]:
        return first_match(self.exclusions, text)


def _p(label: str, expression: str, **kwargs) -> Pattern:
    return Pattern(label=label, expression=expression, **kwargs)


MONTHS = (
    r"(january|february|march|april|may|june|july|august|september"
    r"|october|november|december)"
)


# ============================================================================
# 1. Security / account alerts
# ============================================================================

SECURITY_ALERT = CategoryRule(
    rule_id="security_alert",
    reason="Security/password alert - always important",
    pertains=True,
    confidence=1.0,
    triggers=(
        _p("password_change", r"\bpassword\s+(reset|change|update|expired)\b"),
        _p("reset_your_password", r"\breset\s+your\s+password\b"),
        _p("account_security", r"\baccount\s+security\b"),
        _p("security_alert", r"\bsecurity\s+alert\b"),
        _p("unusual_activity", r"\bunusual\s+(sign[- ]?in|activity)\b"),
        _p("verification_code", r"\bverification\s+code\b"),
        _p("multi_factor", r"\b(2fa|mfa|two[- ]factor)\b"),
        _p("compromised_account", r"\bcompromised\s+account\b"),
        _p("account_locked", r"\baccount\s+(locked|suspended)\b"),
        _p("suspicious_activity", r"\bsuspicious\s+activity\b"),
    ),
    exclusions=(
        # Real security alerts never talk about tuition savings
        _p("tuition_savings", r"\bsaving.*\bon\s+tuition\b|\btuition.*\bsaving\b"),
    ),
)


# ============================================================================
# 2. Replies to the student's own outreach
# ============================================================================

REPLY_SUBJECT = _p("reply_prefix", r"^\s*re:", scope=Scope.SUBJECT)

STUDENT_OUTREACH_REPLY = CategoryRule(
    rule_id="student_outreach_reply",
    reason="Reply to student's outreach email",
    pertains=True,
    confidence=0.95,
    triggers=(
        _p("thank_you_reaching_out", r"\bthank\s+you\s+for\s+reaching\s+out\b"),
        _p("thanks_reaching_out", r"\bthanks\s+for\s+reaching\s+out\b"),
        _p("thank_you_for_email", r"\bthank\s+you\s+for\s+(your\s+)?(email|inquiry|question|interest)\b"),
        _p("in_response_to", r"\bin\s+response\s+to\s+your\s+(email|inquiry|question)\b"),
    ),
)


# ============================================================================
# 3. Confirmations of something the student did
# ============================================================================

STUDENT_ACTION_CONFIRMATION = CategoryRule(
    rule_id="student_action_confirmation",
    reason="Confirmation of student action (application/enrollment)",
    pertains=True,
    confidence=0.95,
    triggers=(
        _p("application_status", r"\bapplication\s+(received|complete|submitted|confirmation)\b"),
        _p("received_your_application", r"\breceived\s+your\s+application\b"),
        _p("thank_you_for_applying", r"\bthank\s+you\s+for\s+(applying|submitting)\b"),
        _p("enrollment_confirmation", r"\benrollment\s+confirmation\b"),
        _p("confirmation_of", r"\bconfirmation\s+(of|for)\s+(your\s+)?(application|enrollment)\b"),
        _p("your_application_is", r"\byour\s+application\s+(has\s+been|is)\s+(received|complete)\b"),
    ),
    exclusions=(
        _p("solicitation", r"\bhow\s+to\s+apply\b|\bapply\s+now\b|\bstart\s+(your\s+)?application\b"),
    ),
)


# ============================================================================
# 4. Accepted-student operational mail
#
# The trigger vocabulary ("accepted", "deposit", "reserve") is shared with
# top-of-funnel marketing, so the exclusion list is long and explicit.
# ============================================================================

ACCEPTED_STUDENT = CategoryRule(
    rule_id="accepted_student",
    reason="Accepted student portal/deposit information",
    pertains=True,
    confidence=0.95,
    triggers=(
        _p("accepted_portal", r"\baccepted\s+(student\s+)?portal\b"),
        _p("your_accepted_portal", r"\byour\s+(personalized\s+)?accepted\s+portal\b"),
        _p("deposit_now", r"\bdeposit\s+(today|now|by|to\s+reserve)\b"),
        _p("reserve_your_place", r"\breserve\s+your\s+(place|spot)\b"),
        _p("congratulations_accepted", r"\bcongratulations.*\baccepted\b"),
        _p("you_are_accepted", r"\byou\s+(have\s+been|are|were)\s+accepted\b"),
        _p("admission_decision", r"\badmission\s+(decision|offer)\b"),
        _p("enrollment_deposit", r"\benroll(ment)?\s+deposit\b"),
    ),
    exclusions=(
        _p("acceptance_rate",
           r"\bacceptance\s+rate\b|\bhigh\s+acceptance\b|\bpre[- ]admit(ted)?\b|\bautomatic\s+admission\b"),
        _p("direct_admit_profile",
           r"\bdirect\s+(admit(ted)?|admission)\b.*\b(complete|submit).*\bprofile\b"
           r"|\b(complete|submit).*\bprofile\b.*\bdirect\s+(admit(ted)?|admission)\b"),
        _p("future_admission_decision",
           r"\byou\s+will\s+(also\s+)?receive\s+(an?\s+)?(accelerated\s+)?admission\s+decision\b"),
        _p("decision_within", r"\breceive\s+an\s+admission\s+decision\s+within\b"),
        _p("priority_student",
           r"\bpriority\s+student\b.*\bsubmit.*application\b|\bsubmit.*\bpriority\s+student\s+application\b"),
        _p("submit_application", r"\bsubmit\s+(your\s+)?(the\s+)?application\b"),
        _p("once_accepted", r"\bonce\s+you\s+(are|have\s+been)\s+accepted\b"),
        _p("reserve_spot_event", r"\breserve\s+your\s+spot\b",
           requires=r"\b(virtual|webinar|event|program|zoom|session)\b"),
        _p("top_candidate",
           r"\btop\s+candidate\b.*\b(apply|start.*application|submit.*application)\b"),
        _p("invite_to_apply", r"\binvite\s+you\s+to\s+apply\b"),
        _p("early_deadline",
           r"\b(early\s+(decision|action)|priority)\b.*\b(deadline|apply|application)\b"
           r".*\b(approaching|by|extended)\b"),
        _p("apply_by", r"\bapply\s+(by|now|right\s+away|today)\b|\bdeadline.*\b(december|january|february|march)\b"),
        _p("priority_application", r"\bpanther\s+priority\s+application\b|\bpriority\s+application\b"),
        _p("deadline_details", r"\bdeadline\s+details\b|\byour\s+deadline\b"),
        _p("future_deadline", r"\bapplication\s+deadline\s+will\s+be\b"),
        _p("exploratory", r"\bflip\s+these\s+pages\b|\blearn\s+more\s+about\s+being\b"),
        _p("make_sure_ready", r"\b(want|wanted)\s+to\s+make\s+sure\s+you'?re\s+ready\b"),
        _p("interested_in_you", r"\bwe'?re\s+interested\s+in\s+you\b", requires=r"\bapply\b"),
        _p("until_midnight", r"\byou\s+have\s+until\b.*\b(midnight|tonight|today)\b.*\bto\s+apply\b"),
        _p("giving_until_midnight", r"\bgiving\s+you\s+until\b.*\b(midnight|tonight|today)\b.*\bto\s+apply\b"),
        _p("apply_by_month", r"\bapply\s+by\s+the\s+" + MONTHS + r"\b.*\bdeadline\b"),
        _p("fee_waiver_deadline",
           r"\bfee\s+waiver\b.*\b(ends|today|tonight|last\s+day)\b"
           r"|\b(today|tonight).*\blast\s+day\s+for.*\bfee\s+waiver\b"),
        _p("complete_with_perks",
           r"\bcomplete\s+your\s+application\b.*\b(priority|perks|benefits|no\s+application\s+fee|no\s+essay)\b"),
        _p("apply_for_free", r"\bapply\s+for\s+free\b|\bwaiving\s+your.*\bfee\b|\bwe'?re\s+waiving\s+your\b"),
        _p("apply_and_enroll", r"\bapply\s+and\s+enroll\b.*\bfree\b"),
        _p("not_received", r"\bhaven'?t\s+received\s+your\s+application\b|\bwe\s+haven'?t\s+received\b"),
    ),
)


# ============================================================================
# 5. Dual enrollment coursework
# ============================================================================

DUAL_ENROLLMENT = CategoryRule(
    rule_id="dual_enrollment",
    reason="Dual enrollment course information",
    pertains=True,
    confidence=0.9,
    triggers=(
        _p("dual_enrollment", r"\bdual\s+enrollment\b"),
        _p("course_change", r"\bcourse\s+(registration|deletion|added|dropped)\b"),
        _p("term_course", r"\bspring\s+\d{4}\s+(course|on[- ]campus)\b"),
        _p("how_to_register", r"\bhow\s+to\s+register\b.*\b(course|class)"),
        _p("institution_course", r"\bcedarville\s+university\).*\b(course|registration)\b"),
    ),
    exclusions=(
        _p("marketing", r"\blearn\s+more\s+about\b|\binterested\s+in\b|\bconsider\s+joining\b"),
        _p("explore_interests",
           r"\bfreedom\s+to\s+explore\b.*\bacademic\s+interests\b|\bmajors,?\s+minors\s+and\s+more\b"),
    ),
)


# ============================================================================
# 6. Scholarships
# ============================================================================

SCHOLARSHIP_MENTION = _p("scholarship", r"\bscholarship\b")

SCHOLARSHIP_APPLICATION_OPPORTUNITY = CategoryRule(
    rule_id="scholarship_application_opportunity",
    reason="Scholarship application opportunity for accepted student",
    pertains=True,
    confidence=0.75,
    triggers=(
        _p("apply_for_scholarship", r"\bapply\s+for\s+(the\s+)?.*\bscholarship\b", scope=Scope.SUBJECT),
    ),
)

# Named programs that make an "apply for ... scholarship" subject specific
NAMED_SCHOLARSHIP_PROGRAMS = (
    _p("named_program", r"\bpresident'?s\b|\bministry\b|\bimpact\b"),
)

SCHOLARSHIP_NOT_AWARDED = CategoryRule(
    rule_id="scholarship_not_awarded",
    reason="Scholarship mentioned but not actually awarded (held/eligible/apply)",
    pertains=False,
    confidence=0.9,
    triggers=(
        _p("held_for_you_scholarship", r"\bscholarship\b.*\b(held|reserved)\s+for\s+you\b"),
        _p("held_for_you", r"\b(held|reserved)\s+for\s+you\b"),
        _p("consideration_before", r"\bconsider(ed|ation)\b.*\bscholarship\b"),
        _p("consideration_after", r"\bscholarship\b.*\bconsider(ed|ation)\b"),
        _p("eligible_before", r"\beligible\s+for\b.*\bscholarship\b"),
        _p("eligible_after", r"\bscholarship\b.*\beligible\b"),
        _p("may_qualify", r"\bmay\s+qualify\b.*\bscholarship\b"),
        _p("guaranteed_admission", r"\bguaranteed\s+admission\b"),
        _p("priority_consideration", r"\bpriority\s+consideration\b"),
        _p("attend_scholarship_event", r"\b(attend|register\s+for).*\bscholarship\s+(day|event|award\s+event)\b"),
        _p("scholarship_event_attend", r"\bscholarship\s+(day|event).*\b(attend|register)\b"),
        _p("soar_event", r"\bsoar\s+(scholarship\s+award\s+)?event\b"),
        _p("direct_admission_form", r"\bdirect\s+admission\b.*\bscholarship\s+form\b"),
        _p("form_direct_admission", r"\bscholarship\s+form\b.*\bdirect\s+admission\b"),
        _p("submit_scholarship_form", r"\bsubmit\s+(your\s+)?.*\bscholarship\s+form\b"),
        _p("make_sure_ready", r"\b(want|wanted)\s+to\s+make\s+sure\s+you'?re\s+ready\b.*\bscholarship\b"),
        _p("scholarship_estimate", r"\bscholarship\s+estimate\b"),
        _p("not_seen_scholarship", r"\byou\s+have\s+not\s+(yet\s+)?seen\s+your.*\bscholarship\b"),
        _p("academic_estimate", r"\bacademic\s+scholarship\s+estimate\b"),
        _p("pre_admission", r"\bpre[- ]admission\b"),
        _p("deadline_approaching", r"\bscholarship\s+deadline\s+(approaching|soon)\b"),
        _p("upon_admission",
           r"\bscholarship\b.*\bupon\s+admission\b|\bupon\s+admission\b.*\bscholarship\b"),
    ),
)

SCHOLARSHIP_AWARDED = CategoryRule(
    rule_id="scholarship_awarded",
    reason="Scholarship actually awarded",
    pertains=True,
    confidence=0.95,
    triggers=(
        _p("congratulations", r"\bcongratulations\b.*\bscholarship\b"),
        _p("you_received", r"\byou\s+(have|received|are\s+awarded|won)\b.*\bscholarship\b"),
        _p("pleased_to_award", r"\bwe\s+(are\s+)?(pleased\s+to\s+)?award(ing)?\b.*\bscholarship\b"),
        _p("scholarship_offer", r"\bscholarship\s+(offer|award)\b"),
        _p("received_a_scholarship", r"\breceived\s+a\s+scholarship\b"),
    ),
)


# ============================================================================
# 7. Financial aid offers ready to review
# ============================================================================

FINANCIAL_AID_READY = CategoryRule(
    rule_id="financial_aid_ready",
    reason="Financial aid offer ready to review",
    pertains=True,
    confidence=0.95,
    triggers=(
        _p("offer_ready", r"\bfinancial\s+aid\b.*\boffer\b.*\b(ready|available)\b"),
        _p("ready_offer", r"\b(ready|available)\b.*\bfinancial\s+aid\b.*\boffer\b"),
        _p("award_letter_ready", r"\baward\s+letter\b.*\b(ready|available|posted|view)\b"),
        _p("review_award_letter", r"\b(view|review)\s+(your\s+)?award\s+letter\b"),
        _p("package_ready", r"\bfinancial\s+aid\s+package\b.*\b(ready|available|posted)\b"),
        _p("aid_is_ready", r"\byour\s+aid\s+is\s+ready\b"),
    ),
    exclusions=(
        _p("learn_more", r"\blearn\s+more\s+about\b.*\bfinancial\s+aid\b"),
        _p("apply_for_aid", r"\bapply\b.*\b(for\s+)?financial\s+aid\b"),
        _p("aid_application", r"\bfinancial\s+aid\b.*\bapplication\b"),
        _p("complete_fafsa", r"\bcomplete\s+(your\s+)?fafsa\b"),
        _p("considered_for_aid", r"\bconsidered\s+for\b.*\baid\b"),
        _p("priority_deadline", r"\bpriority\s+(deadline|consideration)\b.*\bfinancial\s+aid\b"),
    ),
)


# ============================================================================
# 8. Marketing, newsletters and unsolicited outreach
# ============================================================================

IRRELEVANT_MARKETING = CategoryRule(
    rule_id="irrelevant_marketing",
    reason="Marketing/newsletter/unsolicited outreach",
    pertains=False,
    confidence=0.95,
    triggers=(
        # Newsletter/blog content
        _p("student_life_blog", r"\bstudent\s+life\s+blog\b"),
        _p("blog_post", r"\b(student\s+life\s+)?blog\s+(post|update)\b"),
        _p("new_blog", r"\bnew\s+student\s+life\s+blog\b"),
        _p("newsletter", r"\bnewsletter\b"),
        _p("weekly_digest", r"\bweekly\s+(digest|update)\b"),
        # Events
        _p("upcoming_events", r"\bupcoming\s+events\b"),
        _p("join_us", r"\bjoin\s+us\s+(for|at|on\s+zoom)\b"),
        _p("open_house", r"\bopen\s+house\b"),
        _p("virtual_tour", r"\bvirtual\s+tour\b"),
        _p("campus_visit", r"\bcampus\s+(visit|tour|event)\b"),
        _p("meet_faculty", r"\bmeet\s+(the|our)\s+(students|faculty)\b"),
        # Generic outreach to students who have not applied
        _p("havent_applied_yet", r"\bhaven'?t\s+applied.*yet\b"),
        _p("still_time", r"\bstill\s+time\s+to\s+apply\b"),
        _p("college_search", r"\bhow\s+is\s+your\s+college\s+search\b"),
        _p("start_college_search", r"\bstart\s+(your\s+)?college\s+search\b"),
        _p("explore_programs", r"\bexplore\s+(our\s+)?(programs|campus)\b"),
        # Unsolicited outreach framing
        _p("receiving_my_emails", r"\bi\s+hope\s+you\s+have\s+been\s+receiving\s+my\s+emails\b"),
        _p("am_i_reaching", r"\bam\s+i\s+reaching\b"),
        _p("on_our_list", r"\byou\s+are\s+on\s+.*\s+(radar|list)\b"),
        _p("on_our_radar", r"\byou'?re\s+on\s+(our|my)\s+radar\b"),
        _p("make_sure_you_know", r"\bi\s+want\s+to\s+make\s+sure\s+you\s+know\b"),
        _p("invited_to_submit", r"\byou'?re\s+invited\s+to\s+submit\b"),
        _p("eager_to_consider", r"\bi'?m\s+eager\s+to\s+consider\s+you\b"),
        _p("submit_your_application", r"\bsubmit\s+your\s+.*\s+application\b"),
        _p("priority_status", r"\bpriority\s+status\b.*\bsubmit.*application\b"),
        _p("top_candidate", r"\btop\s+candidate\b.*\binvite\s+you\s+to\s+apply\b"),
        _p("invite_to_apply", r"\binvite\s+you\s+to\s+apply\b"),
        # Priority deadline extensions
        _p("extended_deadline", r"\bextended.*\bpriority\s+deadline\b"),
        _p("deadline_extended", r"\bpriority\s+deadline.*\bextended\b"),
        # Summer programs
        _p("summer_program", r"\bsummer\s+(academy|camp|program)\b"),
        _p("save_the_date", r"\bsave\s+the\s+date\b"),
        # Seasonal fluff
        _p("ugly_sweater", r"\bugly\s+sweater\b"),
        _p("season", r"\bit'?s\s+.+\s+season\b"),
        # Scholarship/aid info sessions
        _p("aid_info_session", r"\bjoin\s+us.*\b(virtual\s+program|zoom)\b.*\b(scholarship|financial\s+aid)\b"),
        _p("learn_more_opportunities", r"\blearn\s+more\b.*\b(scholarship|financial\s+aid)\s+(opportunities|options)\b"),
        _p("opportunities_learn_more", r"\b(scholarship|financial\s+aid)\s+(opportunities|options)\b.*\blearn\s+more\b"),
    ),
)

NOT_APPLIED = CategoryRule(
    rule_id="not_applied",
    reason="Unsolicited email where student has not applied",
    pertains=False,
    confidence=0.95,
    triggers=(
        _p("havent_applied", r"\bhaven'?t\s+applied\b"),
    ),
)


# ============================================================================
# Fixed verdicts outside the category tables
# ============================================================================

DEFAULT_RULE_ID = "default_not_relevant"
DEFAULT_REASON = "No clear relevance indicators found"
DEFAULT_CONFIDENCE = 0.3

INVALID_INPUT_RULE_ID = "invalid_input"
INVALID_INPUT_REASON = "Invalid email object"
INVALID_INPUT_CONFIDENCE = 0.0
