#!/usr/bin/env python3
"""
College Mail Triage - dataset and evaluation CLI.

Scores the classifier against human-labeled emails, imports newly labeled
batches into the main dataset, and classifies one-off emails while authoring
rules. Datasets may be local JSON files or s3://bucket/key URIs.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from domain.email_classifier import classify
from domain.evaluation import (
    evaluate, export_test_suite, is_passing, merge_labeled, recommendations
)
from domain.models import EmailInput, EvaluationReport
from services import datasets
from services.datasets import DatasetError

logger = logging.getLogger(__name__)

RULE = "=" * 80


def print_report(report: EvaluationReport) -> None:
    """Print metrics, failures and recommendations."""
    print(RULE)
    print("EVALUATION RESULTS")
    print(RULE)
    print(f"Total test cases:     {report.total}")
    print(f"Correct:              {report.correct} ({report.accuracy * 100:.1f}%)")
    print(f"Incorrect:            {report.incorrect}")
    print(f"  False positives:    {report.false_positives} (said relevant when not)")
    print(f"  False negatives:    {report.false_negatives} (said not relevant when is)")
    print()
    print(f"Accuracy:             {report.accuracy * 100:.1f}%")
    print(f"Precision:            {report.precision * 100:.1f}% (of predicted relevant, % correct)")
    print(f"Recall:               {report.recall * 100:.1f}% (of actual relevant, % found)")
    print(f"F1 Score:             {report.f1_score * 100:.1f}%")
    print(RULE)

    if report.failures:
        print("\n❌ FAILURES:\n")
        for i, failure in enumerate(report.failures, 1):
            labeled = failure.labeled
            print(f"{i}. {failure.kind}")
            print(f"   Subject: {labeled.email.subject}")
            print(f"   From: {labeled.email.from_address}")
            print(f"   Expected: {'RELEVANT' if labeled.pertains else 'NOT RELEVANT'} ({labeled.reason})")
            print(f"   Got: {'RELEVANT' if failure.actual.pertains else 'NOT RELEVANT'} ({failure.actual.reason})")
            print(f"   Confidence: {failure.actual.confidence * 100:.0f}%")
            print(f"   Rules: {', '.join(failure.actual.matched_rules) or 'none'}")
            print()
    else:
        print("\n✅ ALL TESTS PASSED!\n")

    print(RULE)
    print("RECOMMENDATIONS")
    print(RULE)
    for line in recommendations(report):
        print(line)
    print(RULE)


def cmd_evaluate(args) -> int:
    """Evaluate the classifier against a labeled dataset"""
    print("📊 Evaluating Email Classifier\n")

    dataset = datasets.load_dataset(args.dataset)
    labeled = [e for e in dataset['emails'] if e.is_labeled]

    print(f"Loaded {len(labeled)} labeled emails")
    print(f"  Relevant: {sum(1 for e in labeled if e.pertains)}")
    print(f"  Not relevant: {sum(1 for e in labeled if not e.pertains)}\n")

    report = evaluate(labeled)
    print_report(report)

    if args.json:
        with open(args.json, 'w', encoding='utf-8') as f:
            json.dump(report.to_dict(), f, indent=2)
        print(f"💾 Wrote report to {args.json}")

    return 0 if is_passing(report) else 1


def cmd_import(args) -> int:
    """Import newly labeled emails into the dataset and evaluate them"""
    print(f"📥 Importing labeled emails from {args.labeled_file}...")
    incoming = datasets.load_dataset(args.labeled_file, use_cache=False)

    print(f"📊 Loading existing dataset from {args.dataset}...")
    dataset = datasets.load_dataset(args.dataset, use_cache=False)

    candidates = [e for e in incoming['emails'] if e.is_labeled]
    dataset, added, skipped = merge_labeled(dataset, candidates)

    if skipped:
        print(f"⚠️  Skipped {skipped} duplicate emails")

    if not added:
        print("❌ No new emails to import")
        return 0

    print(f"✅ Importing {len(added)} new labeled emails")
    datasets.save_dataset(args.dataset, dataset)
    print(f"💾 Saved {len(dataset['emails'])} total emails to {args.dataset}")

    print("\n" + RULE)
    print("🧪 Evaluating classifier on newly labeled emails...")
    print(RULE)

    report = evaluate(added)
    print(f"\nResults for {report.total} new emails:")
    print(f"  ✅ Correct: {report.correct}")
    print(f"  ❌ Incorrect: {report.incorrect}")
    print(f"  📊 Accuracy: {report.accuracy * 100:.1f}%")

    if report.failures:
        print("\n" + RULE)
        print("❌ FAILURES - Update the rule tables to fix these:")
        print(RULE)
        for i, failure in enumerate(report.failures, 1):
            labeled = failure.labeled
            print(f"\n{i}. {failure.kind}")
            print(f"   Subject: {labeled.email.subject}")
            print(f"   From: {labeled.email.from_address}")
            print(f"   Expected: {'RELEVANT' if labeled.pertains else 'NOT RELEVANT'} ({labeled.reason})")
            print(f"   Got: {'RELEVANT' if failure.actual.pertains else 'NOT RELEVANT'} ({failure.actual.reason})")
            print(f"   Body preview: {labeled.email.body[:200]}...")
    else:
        print("\n" + RULE)
        print("🎉 All new emails classified correctly!")
        print(RULE)

    return 0


def cmd_classify(args) -> int:
    """Classify a single email given on the command line"""
    email = EmailInput(
        subject=args.subject,
        body=args.body,
        from_address=args.sender,
    )
    print(json.dumps(classify(email).to_dict(), indent=2))
    return 0


def cmd_export_tests(args) -> int:
    """Export labeled emails as a JSON test suite"""
    dataset = datasets.load_dataset(args.dataset)
    cases = export_test_suite(dataset['emails'])
    with open(args.output, 'w', encoding='utf-8') as f:
        json.dump(cases, f, indent=2)
    print(f"💾 Exported {len(cases)} test case(s) to {args.output}")
    return 0


def create_parser():
    """Create command line argument parser"""
    parser = argparse.ArgumentParser(
        prog='college-triage',
        description='College Mail Triage - rule evaluation and dataset tools',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  college-triage evaluate                              # Score against data/labeled-emails.json
  college-triage evaluate s3://bucket/datasets/x.json  # Score against a dataset in S3
  college-triage import batch_labeled.json             # Merge a labeled batch and score it
  college-triage classify --subject "Password Reset"   # Classify one email
        """
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    evaluate_parser = subparsers.add_parser('evaluate', help='Evaluate classifier against labeled data')
    evaluate_parser.add_argument('dataset', nargs='?', default=datasets.DEFAULT_DATASET,
                                 help=f'Dataset location (default: {datasets.DEFAULT_DATASET})')
    evaluate_parser.add_argument('--json', default=None, help='Also write the report as JSON to this path')

    import_parser = subparsers.add_parser('import', help='Import labeled emails into the dataset')
    import_parser.add_argument('labeled_file', help='Newly labeled emails (JSON)')
    import_parser.add_argument('dataset', nargs='?', default=datasets.DEFAULT_DATASET,
                               help=f'Dataset location (default: {datasets.DEFAULT_DATASET})')

    classify_parser = subparsers.add_parser('classify', help='Classify a single email')
    classify_parser.add_argument('--subject', default='', help='Subject line')
    classify_parser.add_argument('--body', default='', help='Body text')
    classify_parser.add_argument('--from', dest='sender', default='', help='Sender')

    export_parser = subparsers.add_parser('export-tests', help='Export labeled emails as test cases')
    export_parser.add_argument('dataset', help='Dataset location')
    export_parser.add_argument('output', help='Output JSON path')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s - %(message)s'
    )

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        'evaluate': cmd_evaluate,
        'import': cmd_import,
        'classify': cmd_classify,
        'export-tests': cmd_export_tests,
    }

    try:
        return commands[args.command](args)
    except DatasetError as e:
        print(f"\n❌ Dataset error: {e}")
        return 1
    except OSError as e:
        print(f"\n❌ File error: {e}")
        return 1
    except KeyboardInterrupt:
        print("\n⏹️ Operation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
