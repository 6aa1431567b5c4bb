"""
Tests for S3 service operations.
"""

import json
import pytest
from unittest.mock import patch, MagicMock
from botocore.exceptions import ClientError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from services import s3


def client_error(code, operation='GetObject'):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


class TestFetchEmailFromS3:
    """Test fetching email content from S3."""

    @patch('services.s3.s3_client')
    def test_fetch_email_success(self, mock_s3_client):
        """Test successful email fetch from S3."""
        sample_email = b"From: admissions@college.edu\r\nSubject: Test\r\n\r\nBody content"
        mock_s3_client.get_object.return_value = {
            'Body': MagicMock(read=lambda: sample_email)
        }

        result = s3.fetch_email_from_s3('test-bucket', 'emails/test.eml')

        assert result == sample_email
        mock_s3_client.get_object.assert_called_once_with(
            Bucket='test-bucket',
            Key='emails/test.eml'
        )

    @patch('services.s3.s3_client')
    def test_fetch_email_no_such_key(self, mock_s3_client):
        """Test fetch when S3 object doesn't exist."""
        mock_s3_client.get_object.side_effect = client_error('NoSuchKey')

        with pytest.raises(ValueError, match="Email file not found in S3"):
            s3.fetch_email_from_s3('test-bucket', 'missing-email.eml')

    @patch('services.s3.s3_client')
    def test_fetch_email_no_such_bucket(self, mock_s3_client):
        """Test fetch when S3 bucket doesn't exist."""
        mock_s3_client.get_object.side_effect = client_error('NoSuchBucket')

        with pytest.raises(ValueError, match="S3 bucket not found"):
            s3.fetch_email_from_s3('missing-bucket', 'emails/test.eml')

    @patch('services.s3.s3_client')
    def test_fetch_email_other_client_error(self, mock_s3_client):
        """Test fetch with other S3 errors (re-raised)."""
        mock_s3_client.get_object.side_effect = client_error('AccessDenied')

        with pytest.raises(ClientError):
            s3.fetch_email_from_s3('test-bucket', 'emails/test.eml')


class TestMailboxObjectOperations:
    """Test tagging, copying and deleting email objects."""

    @patch('services.s3.s3_client')
    def test_tag_email(self, mock_s3_client):
        s3.tag_email('bucket', 'inbox/abc', {'triage-label': 'College'})

        mock_s3_client.put_object_tagging.assert_called_once_with(
            Bucket='bucket',
            Key='inbox/abc',
            Tagging={'TagSet': [{'Key': 'triage-label', 'Value': 'College'}]}
        )

    @patch('services.s3.s3_client')
    def test_copy_email_replaces_tags(self, mock_s3_client):
        s3.copy_email('bucket', 'emails/abc', 'bucket', 'filtered/emails/abc',
                      {'triage-label': 'College/Filtered', 'triage-reason': 'Marketing'})

        mock_s3_client.copy_object.assert_called_once_with(
            Bucket='bucket',
            Key='filtered/emails/abc',
            CopySource={'Bucket': 'bucket', 'Key': 'emails/abc'},
            Tagging='triage-label=College%2FFiltered&triage-reason=Marketing',
            TaggingDirective='REPLACE'
        )

    @patch('services.s3.s3_client')
    def test_copy_email_empty_key(self, mock_s3_client):
        with pytest.raises(ValueError, match="cannot be empty"):
            s3.copy_email('bucket', '', 'bucket', 'inbox/abc', {})

        mock_s3_client.copy_object.assert_not_called()

    @patch('services.s3.s3_client')
    def test_copy_email_client_error(self, mock_s3_client):
        mock_s3_client.copy_object.side_effect = client_error('AccessDenied', 'CopyObject')

        with pytest.raises(ClientError):
            s3.copy_email('bucket', 'emails/abc', 'bucket', 'inbox/abc', {})

    @patch('services.s3.s3_client')
    def test_delete_email(self, mock_s3_client):
        s3.delete_email('bucket', 'emails/abc')

        mock_s3_client.delete_object.assert_called_once_with(Bucket='bucket', Key='emails/abc')


class TestJsonObjects:
    """Test JSON read/write helpers."""

    @patch('services.s3.s3_client')
    def test_read_json(self, mock_s3_client):
        mock_s3_client.get_object.return_value = {
            'Body': MagicMock(read=lambda: b'{"emails": []}')
        }

        assert s3.read_json('bucket', 'datasets/x.json') == {'emails': []}

    @patch('services.s3.s3_client')
    def test_read_json_missing(self, mock_s3_client):
        mock_s3_client.get_object.side_effect = client_error('NoSuchKey')

        with pytest.raises(ValueError, match="not found"):
            s3.read_json('bucket', 'datasets/x.json')

    @patch('services.s3.s3_client')
    def test_write_json(self, mock_s3_client):
        s3.write_json('bucket', 'datasets/x.json', {'emails': []})

        call_args = mock_s3_client.put_object.call_args
        assert call_args[1]['ContentType'] == 'application/json'
        assert json.loads(call_args[1]['Body'].decode('utf-8')) == {'emails': []}

    @patch('services.s3.s3_client')
    def test_write_json_unicode(self, mock_s3_client):
        s3.write_json('bucket', 'datasets/x.json', {'subject': 'Bienvenue à l\'université'})

        body = mock_s3_client.put_object.call_args[1]['Body']
        assert json.loads(body.decode('utf-8'))['subject'].startswith('Bienvenue')

    @patch('services.s3.s3_client')
    def test_write_json_empty_key(self, mock_s3_client):
        with pytest.raises(ValueError, match="cannot be empty"):
            s3.write_json('bucket', '', {})

        mock_s3_client.put_object.assert_not_called()

    @patch('services.s3.s3_client')
    def test_write_json_client_error(self, mock_s3_client):
        mock_s3_client.put_object.side_effect = client_error('AccessDenied', 'PutObject')

        with pytest.raises(ClientError):
            s3.write_json('bucket', 'datasets/x.json', {})


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
