"""
Tests for classifier evaluation against labeled emails.
"""

import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.evaluation import (
    evaluate, is_passing, recommendations, merge_labeled, export_test_suite,
)
from domain.models import LabeledEmail, EmailInput, ClassificationResult


def labeled(thread_id, subject, body, pertains, reason=''):
    return LabeledEmail(
        thread_id=thread_id,
        email=EmailInput(subject=subject, body=body, from_address='admissions@college.edu'),
        pertains=pertains,
        reason=reason,
    )


@pytest.fixture
def dataset_emails():
    """Small labeled dataset the shipped rules classify correctly."""
    return [
        labeled('t1', 'Password Reset Required', 'Your password needs to be reset immediately', True),
        labeled('t2', 'Application Received', 'Thank you for submitting your application', True),
        labeled('t3', 'Campus Newsletter', 'Read the latest newsletter', False),
        labeled('t4', 'Scholarship Reserved For You', 'A scholarship is being held for you.', False),
    ]


class TestEvaluate:
    """Test scoring the classifier."""

    def test_all_correct(self, dataset_emails):
        report = evaluate(dataset_emails)

        assert report.total == 4
        assert report.correct == 4
        assert report.accuracy == 1.0
        assert report.true_positives == 2
        assert report.failures == []
        assert is_passing(report)

    def test_counts_false_positive_and_negative(self, dataset_emails):
        dataset_emails[0].pertains = False  # labeled spam, classified relevant
        dataset_emails[2].pertains = True   # labeled relevant, classified spam

        report = evaluate(dataset_emails)

        assert report.incorrect == 2
        assert report.false_positives == 1
        assert report.false_negatives == 1
        assert [f.labeled.thread_id for f in report.failures] == ['t1', 't3']
        assert not is_passing(report)

    def test_skips_unlabeled(self, dataset_emails):
        dataset_emails.append(LabeledEmail(thread_id='t5', email=EmailInput(subject='x')))

        assert evaluate(dataset_emails).total == 4

    def test_custom_classifier(self, dataset_emails):
        always_relevant = ClassificationResult(pertains=True, reason='test', confidence=1.0)

        report = evaluate(dataset_emails, classify_fn=lambda email: always_relevant)

        assert report.correct == 2
        assert report.false_positives == 2
        assert report.precision == 0.5
        assert report.recall == 1.0

    def test_empty_dataset_is_not_passing(self):
        assert not is_passing(evaluate([]))


class TestRecommendations:
    """Test recommendation lines."""

    def test_excellent(self, dataset_emails):
        lines = recommendations(evaluate(dataset_emails))

        assert lines[0].startswith('Excellent')

    def test_false_negative_heavy(self, dataset_emails):
        for email in dataset_emails:
            email.pertains = True

        lines = recommendations(evaluate(dataset_emails))

        assert any('false negatives' in line for line in lines)
        assert any('Low recall' in line for line in lines)


class TestMergeLabeled:
    """Test importing newly labeled emails."""

    def test_adds_new_and_skips_duplicates(self, dataset_emails):
        dataset = {'label': 'College', 'emails': dataset_emails[:2]}
        incoming = [
            labeled('t2', 'dup', '', True),
            labeled('t9', 'new', '', False),
            labeled('t9', 'new again', '', False),
        ]

        dataset, added, skipped = merge_labeled(dataset, incoming)

        assert [e.thread_id for e in added] == ['t9']
        assert skipped == 2
        assert len(dataset['emails']) == 3
        assert dataset['total_count'] == 3
        assert 'exported_at' in dataset
        assert added[0].confidence == 'high'

    def test_nothing_new(self, dataset_emails):
        dataset = {'emails': list(dataset_emails)}

        dataset, added, skipped = merge_labeled(dataset, [labeled('t1', '', '', True)])

        assert added == []
        assert skipped == 1
        assert 'exported_at' not in dataset


class TestExportTestSuite:
    """Test exporting labeled emails as test cases."""

    def test_export(self, dataset_emails):
        dataset_emails.append(LabeledEmail(thread_id='t5', email=EmailInput(subject='x')))

        cases = export_test_suite(dataset_emails)

        assert len(cases) == 4
        assert cases[0]['input']['subject'] == 'Password Reset Required'
        assert cases[0]['expected']['pertains'] is True
        assert cases[0]['metadata']['thread_id'] == 't1'
        assert cases[0]['metadata']['confidence'] == 'unknown'
