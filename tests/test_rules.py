"""
Tests for rule tables and pattern matching.
"""

import dataclasses
import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain import rules
from domain.rules import Pattern, CategoryRule, Scope, first_match
from domain.models import NormalizedText
from domain.email_classifier import classify


def text(subject='', body='', sender=''):
    return NormalizedText(subject=subject, body=body, sender=sender)


class TestPattern:
    """Test declarative pattern matching."""

    def test_combined_scope_default(self):
        pattern = Pattern(label='hello', expression=r'\bhello\b')

        assert pattern.scope is Scope.COMBINED
        assert pattern.matches(text(body='well hello there'))
        assert pattern.matches(text(subject='hello'))
        assert not pattern.matches(text(sender='hello@example.com'))

    def test_subject_scope(self):
        pattern = Pattern(label='re', expression=r'^\s*re:', scope=Scope.SUBJECT)

        assert pattern.matches(text(subject='re: hi'))
        assert not pattern.matches(text(subject='hi', body='re: hi'))

    def test_sender_scope(self):
        pattern = Pattern(label='edu', expression=r'\.edu$', scope=Scope.SENDER)

        assert pattern.matches(text(sender='admissions@college.edu'))
        assert not pattern.matches(text(subject='college.edu'))

    def test_combined_spans_subject_and_body(self):
        pattern = Pattern(label='span', expression=r'offer\s+ready')

        # combined joins subject and body with one space
        assert pattern.matches(text(subject='offer', body='ready'))

    def test_requires_companion(self):
        pattern = Pattern(label='spot', expression=r'reserve\s+your\s+spot', requires=r'\bwebinar\b')

        assert pattern.matches(text(body='reserve your spot for the webinar'))
        assert not pattern.matches(text(body='reserve your spot in the class'))

    def test_is_immutable(self):
        pattern = Pattern(label='a', expression='a')

        with pytest.raises(dataclasses.FrozenInstanceError):
            pattern.label = 'b'

    def test_equality_ignores_compiled(self):
        assert Pattern(label='a', expression='a') == Pattern(label='a', expression='a')

    def test_first_match_order(self):
        patterns = (
            Pattern(label='first', expression='x'),
            Pattern(label='second', expression='x'),
        )

        assert first_match(patterns, text(body='x')).label == 'first'
        assert first_match(patterns, text(body='y')) is None


class TestCategoryRule:
    """Test trigger and exclusion lookups."""

    def test_trigger_and_exclusion(self):
        rule = CategoryRule(
            rule_id='demo',
            reason='Demo',
            pertains=True,
            confidence=0.5,
            triggers=(Pattern(label='t', expression='deposit'),),
            exclusions=(Pattern(label='e', expression='acceptance rate'),),
        )

        assert rule.first_trigger(text(body='deposit now')).label == 't'
        assert rule.first_exclusion(text(body='deposit now')) is None
        assert rule.first_exclusion(text(body='deposit, acceptance rate')).label == 'e'

    def test_empty_tables(self):
        rule = CategoryRule(rule_id='empty', reason='', pertains=False, confidence=0.0)

        assert rule.first_trigger(text(body='anything')) is None
        assert rule.first_exclusion(text(body='anything')) is None


class TestRuleTables:
    """Sanity checks over the shipped tables."""

    ALL_RULES = [
        rules.SECURITY_ALERT,
        rules.STUDENT_OUTREACH_REPLY,
        rules.STUDENT_ACTION_CONFIRMATION,
        rules.ACCEPTED_STUDENT,
        rules.DUAL_ENROLLMENT,
        rules.SCHOLARSHIP_APPLICATION_OPPORTUNITY,
        rules.SCHOLARSHIP_NOT_AWARDED,
        rules.SCHOLARSHIP_AWARDED,
        rules.FINANCIAL_AID_READY,
        rules.IRRELEVANT_MARKETING,
        rules.NOT_APPLIED,
    ]

    def test_rule_ids_unique(self):
        ids = [rule.rule_id for rule in self.ALL_RULES]

        assert len(ids) == len(set(ids))

    @pytest.mark.parametrize('rule', ALL_RULES, ids=lambda r: r.rule_id)
    def test_confidence_in_range(self, rule):
        assert 0.0 <= rule.confidence <= 1.0
        assert rule.triggers

    @pytest.mark.parametrize('rule', ALL_RULES, ids=lambda r: r.rule_id)
    def test_labels_unique_within_rule(self, rule):
        labels = [p.label for p in rule.triggers]
        assert len(labels) == len(set(labels))

        labels = [p.label for p in rule.exclusions]
        assert len(labels) == len(set(labels))

    def test_verdict_constants(self):
        assert rules.SECURITY_ALERT.confidence == 1.0
        assert rules.SCHOLARSHIP_APPLICATION_OPPORTUNITY.confidence == 0.75
        assert rules.SCHOLARSHIP_NOT_AWARDED.pertains is False
        assert rules.SCHOLARSHIP_NOT_AWARDED.confidence == 0.9
        assert rules.DUAL_ENROLLMENT.confidence == 0.9
        assert rules.IRRELEVANT_MARKETING.pertains is False
        assert rules.NOT_APPLIED.pertains is False
        assert rules.DEFAULT_CONFIDENCE == 0.3
        assert rules.INVALID_INPUT_CONFIDENCE == 0.0

    def test_tables_are_tuples(self):
        for rule in self.ALL_RULES:
            assert isinstance(rule.triggers, tuple)
            assert isinstance(rule.exclusions, tuple)

    def test_marketing_has_no_exclusions(self):
        assert rules.IRRELEVANT_MARKETING.exclusions == ()

    def test_accepted_exclusions(self):
        surface = text(body='with our high acceptance rate, you have been accepted')

        assert rules.ACCEPTED_STUDENT.first_trigger(surface) is not None
        assert rules.ACCEPTED_STUDENT.first_exclusion(surface).label == 'acceptance_rate'

    def test_interested_in_you_requires_apply(self):
        assert rules.ACCEPTED_STUDENT.first_exclusion(
            text(body="we're interested in you. deposit today")
        ) is None
        assert rules.ACCEPTED_STUDENT.first_exclusion(
            text(body="we're interested in you, so apply soon")
        ).label == 'interested_in_you'


def matching_labels(patterns, surface):
    return [p.label for p in patterns if p.matches(surface)]


ACCEPTED_EXCLUSION_SAMPLES = [
    ('acceptance_rate', "with our high acceptance rate, you have been accepted"),
    ('direct_admit_profile', "you have been accepted through direct admission. complete your profile today."),
    ('future_admission_decision', "you will receive an admission decision soon."),
    ('decision_within', "apply and receive an admission decision within two weeks."),
    ('priority_student', "as a priority student, submit your application and reserve your place."),
    ('submit_application', "submit your application to reserve your place."),
    ('once_accepted', "once you are accepted, log in to your accepted student portal."),
    ('reserve_spot_event', "reserve your spot for our virtual session."),
    ('top_candidate', "as a top candidate, apply to reserve your place."),
    ('invite_to_apply', "we invite you to apply and reserve your place."),
    ('early_deadline', "the early action deadline is approaching. deposit today."),
    ('apply_by', "apply today and reserve your place."),
    ('priority_application', "finish your priority application to reserve your place."),
    ('deadline_details', "see your deadline details and deposit now."),
    ('future_deadline', "your application deadline will be announced. you have been accepted."),
    ('exploratory', "learn more about being a falcon. deposit today."),
    ('make_sure_ready', "we wanted to make sure you're ready to reserve your place."),
    ('interested_in_you', "we're interested in you, so apply soon to reserve your place."),
    ('until_midnight', "you have until midnight to apply and reserve your place."),
    ('giving_until_midnight', "we are giving you until tonight to apply. reserve your place."),
    ('apply_by_month', "apply by the march 1 deadline to reserve your place."),
    ('fee_waiver_deadline', "your fee waiver ends soon. reserve your place."),
    ('complete_with_perks', "complete your application for priority perks and reserve your place."),
    ('apply_for_free', "apply for free and reserve your place."),
    ('apply_and_enroll', "apply and enroll for free, then reserve your place."),
    ('not_received', "we haven't received your application yet. reserve your place."),
]

DUAL_ENROLLMENT_EXCLUSION_SAMPLES = [
    ('marketing', "learn more about dual enrollment."),
    ('explore_interests', "dual enrollment gives you the freedom to explore your academic interests."),
]

FINANCIAL_AID_EXCLUSION_SAMPLES = [
    ('learn_more', "learn more about financial aid. your aid is ready."),
    ('apply_for_aid', "apply for financial aid today. your aid is ready."),
    ('aid_application', "your financial aid application is being processed. view your award letter."),
    ('complete_fafsa', "complete your fafsa, then view your award letter."),
    ('considered_for_aid', "you will be considered for merit aid. view your award letter."),
    ('priority_deadline', "the priority deadline for financial aid is near. view your award letter."),
]

# Each sample also carries awarded language, which the not-awarded check must beat
SCHOLARSHIP_NOT_AWARDED_SAMPLES = [
    ('held_for_you_scholarship', "a scholarship is being held for you."),
    ('held_for_you', "your award is reserved for you. scholarship details inside."),
    ('consideration_before', "you are being considered for our scholarship."),
    ('consideration_after', "our scholarship committee will give you full consideration."),
    ('eligible_before', "you are eligible for a scholarship."),
    ('eligible_after', "this scholarship is one you may be eligible to receive."),
    ('may_qualify', "you may qualify for a scholarship."),
    ('guaranteed_admission', "guaranteed admission and a scholarship await."),
    ('priority_consideration', "apply early for priority consideration for every scholarship."),
    ('attend_scholarship_event', "register for our scholarship day on campus."),
    ('scholarship_event_attend', "our scholarship event is coming, please attend."),
    ('soar_event', "join the soar scholarship award event."),
    ('direct_admission_form', "with direct admission, fill out the scholarship form."),
    ('form_direct_admission', "the scholarship form is part of direct admission."),
    ('submit_scholarship_form', "submit your scholarship form today."),
    ('make_sure_ready', "we wanted to make sure you're ready for scholarship season."),
    ('scholarship_estimate', "view your scholarship estimate."),
    ('not_seen_scholarship', "you have not yet seen your merit scholarship."),
    ('academic_estimate', "see your academic scholarship estimate."),
    ('pre_admission', "your pre-admission scholarship review has begun."),
    ('deadline_approaching', "scholarship deadline soon: act fast."),
    ('upon_admission', "a scholarship is awarded upon admission."),
]


class TestExclusionTables:
    """Every exclusion vetoes its category's trigger."""

    @pytest.mark.parametrize('rule,samples', [
        (rules.ACCEPTED_STUDENT, ACCEPTED_EXCLUSION_SAMPLES),
        (rules.DUAL_ENROLLMENT, DUAL_ENROLLMENT_EXCLUSION_SAMPLES),
        (rules.FINANCIAL_AID_READY, FINANCIAL_AID_EXCLUSION_SAMPLES),
    ], ids=['accepted_student', 'dual_enrollment', 'financial_aid_ready'])
    def test_every_exclusion_has_a_sample(self, rule, samples):
        assert {label for label, _ in samples} == {p.label for p in rule.exclusions}

    def test_every_not_awarded_pattern_has_a_sample(self):
        labels = {label for label, _ in SCHOLARSHIP_NOT_AWARDED_SAMPLES}

        assert labels == {p.label for p in rules.SCHOLARSHIP_NOT_AWARDED.triggers}

    @pytest.mark.parametrize('label,body', ACCEPTED_EXCLUSION_SAMPLES,
                             ids=[s[0] for s in ACCEPTED_EXCLUSION_SAMPLES])
    def test_accepted_student_exclusion(self, label, body):
        self._assert_vetoed(rules.ACCEPTED_STUDENT, label, body)

    @pytest.mark.parametrize('label,body', DUAL_ENROLLMENT_EXCLUSION_SAMPLES,
                             ids=[s[0] for s in DUAL_ENROLLMENT_EXCLUSION_SAMPLES])
    def test_dual_enrollment_exclusion(self, label, body):
        self._assert_vetoed(rules.DUAL_ENROLLMENT, label, body)

    @pytest.mark.parametrize('label,body', FINANCIAL_AID_EXCLUSION_SAMPLES,
                             ids=[s[0] for s in FINANCIAL_AID_EXCLUSION_SAMPLES])
    def test_financial_aid_exclusion(self, label, body):
        self._assert_vetoed(rules.FINANCIAL_AID_READY, label, body)

    @pytest.mark.parametrize('label,body', SCHOLARSHIP_NOT_AWARDED_SAMPLES,
                             ids=[s[0] for s in SCHOLARSHIP_NOT_AWARDED_SAMPLES])
    def test_scholarship_not_awarded(self, label, body):
        body = f"congratulations! {body}"
        surface = text(body=body)

        assert label in matching_labels(rules.SCHOLARSHIP_NOT_AWARDED.triggers, surface)
        assert rules.SCHOLARSHIP_AWARDED.first_trigger(surface) is not None

        result = classify({'subject': '', 'body': body})
        assert result.pertains is False
        assert result.matched_rules[0] == 'scholarship_not_awarded'
        assert 'scholarship_awarded' not in result.matched_rules

    @staticmethod
    def _assert_vetoed(rule, label, body):
        surface = text(body=body)

        assert rule.first_trigger(surface) is not None
        assert rule.first_exclusion(surface) is not None
        assert label in matching_labels(rule.exclusions, surface)
        assert rule.rule_id not in classify({'subject': '', 'body': body}).matched_rules
