"""
Labeled dataset storage.

Datasets are JSON documents of the form
{"exported_at": ..., "total_count": N, "label": ..., "emails": [...]}
where each email is a flat record (thread_id, subject, from, body, ...,
pertains, reason).

Locations are resolved with the following priority:
1. Explicit S3 URI (s3://bucket/key)
2. S3 override for bare names when DATASET_BUCKET is set
3. Local filesystem path

Datasets loaded from S3 are cached in memory with a TTL for warm invocations.
"""

import copy
import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from botocore.exceptions import ClientError

from domain.models import LabeledEmail
from services import s3 as s3_service

logger = logging.getLogger(__name__)

# Cache TTL in seconds (default: 5 minutes)
CACHE_TTL_SECONDS = int(os.environ.get('DATASET_CACHE_TTL', '300'))

# Configuration from environment variables
DATASET_BUCKET = os.environ.get('DATASET_BUCKET')
DATASET_KEY_PREFIX = os.environ.get('DATASET_KEY_PREFIX', 'datasets/')

DEFAULT_DATASET = 'data/labeled-emails.json'

# Module-level cache: {location: (raw_document, timestamp)}
_dataset_cache: Dict[str, Tuple[Dict[str, Any], float]] = {}


class DatasetError(Exception):
    """Raised when a dataset cannot be read, written or understood."""
    pass


def parse_s3_uri(location: str) -> Optional[Tuple[str, str]]:
    """
    Split an s3://bucket/key URI.

    Returns:
        (bucket, key) or None if location is not an S3 URI

    Raises:
        DatasetError: If the URI has no bucket or key
    """
    if not location.startswith('s3://'):
        return None
    bucket, _, key = location[len('s3://'):].partition('/')
    if not bucket or not key:
        raise DatasetError(f"Invalid S3 URI: {location}")
    return bucket, key


def _resolve_s3(location: str) -> Optional[Tuple[str, str]]:
    parsed = parse_s3_uri(location)
    if parsed:
        return parsed
    if DATASET_BUCKET and not os.path.isabs(location):
        return DATASET_BUCKET, f"{DATASET_KEY_PREFIX}{Path(location).name}"
    return None


def _from_document(document: Any, location: str) -> Dict[str, Any]:
    if not isinstance(document, dict) or not isinstance(document.get('emails'), list):
        raise DatasetError(f"Dataset {location} has no 'emails' list")

    dataset = dict(document)
    dataset['emails'] = [LabeledEmail.from_dict(e) for e in document['emails'] if isinstance(e, dict)]
    dropped = len(document['emails']) - len(dataset['emails'])
    if dropped:
        logger.warning(f"Ignored {dropped} malformed record(s) in {location}")
    return dataset


def _to_document(dataset: Dict[str, Any]) -> Dict[str, Any]:
    document = {k: v for k, v in dataset.items() if k != 'emails'}
    emails = [e.to_dict() for e in dataset.get('emails', [])]
    document['total_count'] = len(emails)
    document['emails'] = emails
    return document


def _load_from_filesystem(location: str) -> Any:
    path = Path(location)
    logger.info(f"Loading dataset from filesystem: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        raise DatasetError(f"Dataset not found: {path}")
    except json.JSONDecodeError as e:
        raise DatasetError(f"Dataset {path} is not valid JSON: {e}")


def _load_from_s3(bucket: str, key: str) -> Any:
    logger.info(f"Loading dataset from S3: s3://{bucket}/{key}")
    try:
        return s3_service.read_json(bucket, key)
    except json.JSONDecodeError as e:
        raise DatasetError(f"Dataset s3://{bucket}/{key} is not valid JSON: {e}")


def load_dataset(location: str = DEFAULT_DATASET, use_cache: bool = True) -> Dict[str, Any]:
    """
    Load a labeled dataset.

    Args:
        location: Local path, bare file name or s3://bucket/key
        use_cache: Use cached S3 document if still within TTL

    Returns:
        dict: Dataset with 'emails' as a list of LabeledEmail

    Raises:
        DatasetError: If the dataset cannot be found or parsed
    """
    current_time = time.time()

    if use_cache and location in _dataset_cache:
        cached_document, cached_time = _dataset_cache[location]
        age_seconds = current_time - cached_time
        if age_seconds < CACHE_TTL_SECONDS:
            logger.info(f"Using cached dataset: {location} (age: {int(age_seconds)}s)")
            return _from_document(copy.deepcopy(cached_document), location)
        logger.info(f"Cache expired for dataset: {location}, reloading...")

    document = None
    s3_location = _resolve_s3(location)

    if s3_location:
        bucket, key = s3_location
        try:
            document = _load_from_s3(bucket, key)
            _dataset_cache[location] = (copy.deepcopy(document), current_time)
        except (ClientError, ValueError) as e:
            if location.startswith('s3://'):
                raise DatasetError(f"Failed to load dataset {location}: {e}")
            logger.info(
                f"S3 override not available ({e.__class__.__name__}), "
                f"falling back to local filesystem"
            )

    if document is None:
        document = _load_from_filesystem(location)

    dataset = _from_document(document, location)
    logger.info(f"Loaded {len(dataset['emails'])} email(s) from {location}")
    return dataset


def save_dataset(location: str, dataset: Dict[str, Any]) -> None:
    """
    Save a dataset to the same place load_dataset would read it from.

    Raises:
        DatasetError: If writing fails
    """
    document = _to_document(dataset)

    s3_location = _resolve_s3(location)
    if s3_location:
        bucket, key = s3_location
        try:
            s3_service.write_json(bucket, key, document)
        except ClientError as e:
            raise DatasetError(f"Failed to save dataset {location}: {e}")
    else:
        path = Path(location)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2)
        except OSError as e:
            raise DatasetError(f"Failed to save dataset {location}: {e}")

    _dataset_cache.pop(location, None)
    logger.info(f"Saved {document['total_count']} email(s) to {location}")


def clear_cache() -> None:
    """Clear the dataset cache."""
    _dataset_cache.clear()
    logger.info("Dataset cache cleared")
