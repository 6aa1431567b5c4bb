"""
Email parsing utilities for the triage pipeline.

Turns raw MIME bytes (as stored by SES in S3) into the EmailInput record
the classifier consumes.
"""

import logging
import os
from email import policy
from email.parser import BytesParser
from email.message import EmailMessage
from typing import Dict, Any, Optional

from domain.models import EmailInput

logger = logging.getLogger(__name__)

# Bodies longer than this are truncated before classification
MAX_BODY_CHARS = int(os.environ.get('TRIAGE_MAX_BODY_CHARS', '10000'))


def _decode_part(part: EmailMessage) -> str:
    """Decode a text part, falling back to a lenient UTF-8 decode."""
    try:
        # get_content() handles quoted-printable, base64, etc automatically
        return part.get_content()
    except Exception as e:
        logger.warning(f"Failed to decode {part.get_content_type()} with get_content(): {e}")
        payload = part.get_payload(decode=True)
        if payload:
            return payload.decode('utf-8', errors='ignore')
        return ''


def extract_email_body(email_content: bytes) -> Dict[str, str]:
    """
    Parse raw email (MIME format) and extract text and HTML bodies.

    Attachments are skipped; the classifier only reads text.

    Args:
        email_content: Raw email bytes from S3

    Returns:
        Dictionary with text_body and html_body

    Example:
        >>> email_bytes = b"From: sender@example.com\\r\\n\\r\\nHello World"
        >>> result = extract_email_body(email_bytes)
        >>> print(result['text_body'])
        "Hello World"
    """
    msg = BytesParser(policy=policy.default).parsebytes(email_content)

    result = {
        'text_body': '',
        'html_body': '',
    }

    for part in msg.walk():
        if part.is_multipart():
            continue

        disposition = part.get_content_disposition()
        if disposition == 'attachment' or part.get_filename():
            continue

        content_type = part.get_content_type()
        if content_type == 'text/plain' and not result['text_body']:
            result['text_body'] = _decode_part(part)
        elif content_type == 'text/html' and not result['html_body']:
            result['html_body'] = _decode_part(part)

    if not result['text_body'] and not result['html_body']:
        logger.warning(
            f"No text/plain or text/html body found (content type: {msg.get_content_type()}). "
            f"Email body will be empty."
        )

    return result


def parse_email_headers(email_content: bytes) -> Dict[str, str]:
    """
    Parse email headers and return them as a dictionary.

    Args:
        email_content: Raw email bytes (RFC 822 format)

    Returns:
        dict: Non-empty headers among From, To, Cc, Subject, Date, Message-ID

    Raises:
        ValueError: If email content is empty
    """
    if not email_content:
        raise ValueError("Email content cannot be empty")

    msg = BytesParser(policy=policy.default).parsebytes(email_content, headersonly=True)

    headers = {}
    for name in ('From', 'To', 'Cc', 'Subject', 'Date', 'Message-ID'):
        value = msg.get(name)
        if value:
            headers[name] = str(value)

    logger.info(f"Parsed email headers: {list(headers.keys())}")
    return headers


def safe_text(value: Optional[str], max_len: Optional[int] = None) -> str:
    """
    Trim a possibly missing string and cap its length.

    Args:
        value: Raw value (None allowed)
        max_len: Maximum length to keep (None for no limit)

    Returns:
        str: Trimmed (and truncated) text
    """
    if value is None:
        return ''
    text = str(value).strip()
    if max_len and len(text) > max_len:
        return text[:max_len]
    return text


def build_email_input(email_content: bytes, max_body_chars: int = MAX_BODY_CHARS) -> EmailInput:
    """
    Build the classifier input from raw MIME bytes.

    The plain text body is preferred; HTML is used as-is when there is no
    plain text part.

    Args:
        email_content: Raw email bytes from S3
        max_body_chars: Body truncation limit

    Returns:
        EmailInput

    Raises:
        ValueError: If email content is empty
    """
    headers = parse_email_headers(email_content)
    bodies = extract_email_body(email_content)
    body = bodies['text_body'] or bodies['html_body']

    return EmailInput(
        subject=safe_text(headers.get('Subject')),
        body=safe_text(body, max_body_chars),
        from_address=safe_text(headers.get('From')),
        to=safe_text(headers.get('To')),
        cc=safe_text(headers.get('Cc')),
        date=headers.get('Date'),
    )


def describe(email: EmailInput) -> Dict[str, Any]:
    """Short loggable summary of an email (no body)."""
    return {
        'from': email.from_address,
        'subject': email.subject,
        'body_chars': len(email.body),
    }
