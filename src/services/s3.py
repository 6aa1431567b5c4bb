"""
S3 operations for the triage pipeline.

SES stores each received email as an S3 object; mailbox "labels" are S3
prefixes plus object tags. This module wraps the raw S3 calls.
"""

import json
import logging
from typing import Any, Dict
from urllib.parse import urlencode

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

# Configure S3 client with timeouts to prevent infinite hangs
s3_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=10,
    read_timeout=60
)

# Initialize S3 client at module level (thread-safe, reused across invocations)
s3_client = boto3.client('s3', config=s3_config)
logger.info("S3 client initialized with timeouts: connect=10s, read=60s, max_attempts=1")


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def fetch_email_from_s3(bucket: str, key: str) -> bytes:
    """
    Fetch raw email content from S3.

    Args:
        bucket: S3 bucket name
        key: S3 object key (path to the email file)

    Returns:
        bytes: The raw email content as bytes

    Raises:
        ValueError: If the bucket or object does not exist
        ClientError: For other S3 failures
    """
    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
        return response['Body'].read()
    except ClientError as e:
        error_code = _error_code(e)
        if error_code == 'NoSuchKey':
            logger.error(f"S3 object not found: s3://{bucket}/{key}")
            raise ValueError(f"Email file not found in S3: {key}")
        elif error_code == 'NoSuchBucket':
            logger.error(f"S3 bucket not found: {bucket}")
            raise ValueError(f"S3 bucket not found: {bucket}")
        else:
            logger.error(f"Failed to fetch from S3 s3://{bucket}/{key}: {e}")
            raise


def tag_email(bucket: str, key: str, tags: Dict[str, str]) -> None:
    """
    Replace the tag set of an email object.

    Raises:
        ClientError: If S3 operation fails
    """
    tag_set = [{'Key': k, 'Value': v} for k, v in tags.items()]
    try:
        s3_client.put_object_tagging(Bucket=bucket, Key=key, Tagging={'TagSet': tag_set})
        logger.info(f"Tagged s3://{bucket}/{key}: {tags}")
    except ClientError as e:
        logger.error(f"Failed to tag s3://{bucket}/{key}: error_code={_error_code(e)}")
        raise


def copy_email(bucket: str, source_key: str, dest_bucket: str, dest_key: str,
               tags: Dict[str, str]) -> None:
    """
    Copy an email object, replacing its tags on the copy.

    Raises:
        ValueError: If source or destination key is empty
        ClientError: If S3 operation fails
    """
    if not source_key or not dest_key:
        raise ValueError("Source and destination keys cannot be empty")

    tagging = urlencode(tags)
    try:
        s3_client.copy_object(
            Bucket=dest_bucket,
            Key=dest_key,
            CopySource={'Bucket': bucket, 'Key': source_key},
            Tagging=tagging,
            TaggingDirective='REPLACE'
        )
        logger.info(f"Copied s3://{bucket}/{source_key} -> s3://{dest_bucket}/{dest_key}")
    except ClientError as e:
        logger.error(
            f"Failed to copy s3://{bucket}/{source_key} -> s3://{dest_bucket}/{dest_key}: "
            f"error_code={_error_code(e)}"
        )
        raise


def delete_email(bucket: str, key: str) -> None:
    """
    Delete an email object.

    Raises:
        ClientError: If S3 operation fails
    """
    try:
        s3_client.delete_object(Bucket=bucket, Key=key)
        logger.info(f"Deleted s3://{bucket}/{key}")
    except ClientError as e:
        logger.error(f"Failed to delete s3://{bucket}/{key}: error_code={_error_code(e)}")
        raise


def read_json(bucket: str, key: str) -> Any:
    """
    Read and decode a JSON object.

    Raises:
        ValueError: If the object does not exist
        json.JSONDecodeError: If the content is not JSON
    """
    try:
        response = s3_client.get_object(Bucket=bucket, Key=key)
    except ClientError as e:
        if _error_code(e) in ('NoSuchKey', 'NoSuchBucket'):
            raise ValueError(f"JSON object not found in S3: s3://{bucket}/{key}")
        raise
    return json.loads(response['Body'].read().decode('utf-8'))


def write_json(bucket: str, key: str, data: Any) -> None:
    """
    Store data as an indented JSON object (datasets, reports).

    Raises:
        ValueError: If bucket or key is empty
        ClientError: If S3 operation fails
    """
    if not bucket or not key:
        raise ValueError("Bucket and key cannot be empty")

    body = json.dumps(data, indent=2).encode('utf-8')
    try:
        s3_client.put_object(
            Bucket=bucket,
            Key=key,
            Body=body,
            ContentType='application/json'
        )
        logger.info(f"Wrote {len(body):,} bytes to s3://{bucket}/{key}")
    except ClientError as e:
        logger.error(f"Failed to write s3://{bucket}/{key}: error_code={_error_code(e)}")
        raise
