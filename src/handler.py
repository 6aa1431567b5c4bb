import json
import os
import logging
from typing import Dict, Any

from domain.email_classifier import classify, STAGES
from domain.rules import RULES_VERSION
from services import mailbox

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

# Environment variables
ENVIRONMENT = os.environ.get('ENVIRONMENT', 'dev')


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler to classify a single email.

    Expected event format (either form):
    {
        "email": {"subject": "...", "body": "...", "from": "...", "to": "...", "cc": "..."}
    }
    or the email fields at the top level.
    """
    logger.info(f"Environment: {ENVIRONMENT}")

    try:
        email = event.get('email', event) if isinstance(event, dict) else None

        if not isinstance(email, dict) or not any(
            email.get(name) for name in ('subject', 'body', 'from')
        ):
            return {
                'statusCode': 400,
                'body': json.dumps({
                    'error': 'email with subject, body or from is required'
                })
            }

        result = classify(email)
        logger.info(
            f"Classified: pertains={result.pertains} confidence={result.confidence} "
            f"rules={','.join(result.matched_rules)}"
        )

        return {
            'statusCode': 200,
            'headers': {
                'Content-Type': 'application/json',
                'Access-Control-Allow-Origin': '*'
            },
            'body': json.dumps({
                'classification': result.to_dict(),
                'rulesVersion': RULES_VERSION
            })
        }

    except Exception as e:
        logger.error(f"Error classifying email: {str(e)}", exc_info=True)
        return {
            'statusCode': 500,
            'body': json.dumps({
                'error': 'Internal server error',
                'message': str(e)
            })
        }


def health_check(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Simple health check endpoint for monitoring.
    """
    return {
        'statusCode': 200,
        'body': json.dumps({
            'status': 'healthy',
            'environment': ENVIRONMENT,
            'stages': len(STAGES),
            'rulesVersion': RULES_VERSION,
            'dryRun': mailbox.DRY_RUN
        })
    }
