import json
import boto3
import os
import logging

logger = logging.getLogger()
logger.setLevel(logging.INFO)

codedeploy = boto3.client('codedeploy')
lambda_client = boto3.client('lambda')

# Smoke test emails and the verdict the new version must return
SMOKE_TESTS = [
    (
        {
            'email': {
                'subject': 'Password Reset Request',
                'body': 'Click here to reset your password for your student portal account.',
                'from': 'noreply@university.edu'
            }
        },
        True
    ),
    (
        {
            'email': {
                'subject': 'Campus Newsletter',
                'body': 'Join our newsletter for the latest campus updates and events.',
                'from': 'news@university.edu'
            }
        },
        False
    ),
]


def _invoke(target_function, payload):
    response = lambda_client.invoke(
        FunctionName=target_function,
        InvocationType='RequestResponse',
        Payload=json.dumps(payload)
    )

    response_payload = json.loads(response['Payload'].read())
    logger.info(f"Test response: {json.dumps(response_payload)}")

    if response.get('FunctionError'):
        raise Exception(f"Function returned error: {response_payload}")

    if response.get('StatusCode') != 200:
        raise Exception(f"Unexpected status code: {response.get('StatusCode')}")

    if response_payload.get('statusCode') != 200:
        raise Exception(f"Invalid response status: {response_payload.get('statusCode')}")

    return json.loads(response_payload.get('body', '{}'))


def lambda_handler(event, context):
    """
    Pre-traffic hook for CodeDeploy.
    Classifies known emails on the new version before shifting traffic.
    """
    logger.info(f"Pre-traffic hook triggered: {json.dumps(event)}")

    deployment_id = event['DeploymentId']
    lifecycle_event_hook_execution_id = event['LifecycleEventHookExecutionId']

    try:
        target_function = os.environ.get('TARGET_FUNCTION')
        logger.info(f"Running smoke tests on {target_function}")

        for payload, expected in SMOKE_TESTS:
            body = _invoke(target_function, payload)
            classification = body.get('classification', {})
            if classification.get('pertains') is not expected:
                raise Exception(
                    f"Expected pertains={expected} for '{payload['email']['subject']}', "
                    f"got {classification}"
                )

        logger.info("Pre-traffic validation passed")

        # Report success
        codedeploy.put_lifecycle_event_hook_execution_status(
            deploymentId=deployment_id,
            lifecycleEventHookExecutionId=lifecycle_event_hook_execution_id,
            status='Succeeded'
        )

        return {
            'statusCode': 200,
            'body': json.dumps('Pre-traffic validation succeeded')
        }

    except Exception as e:
        logger.error(f"Pre-traffic validation failed: {str(e)}", exc_info=True)

        # Report failure - this will prevent deployment
        codedeploy.put_lifecycle_event_hook_execution_status(
            deploymentId=deployment_id,
            lifecycleEventHookExecutionId=lifecycle_event_hook_execution_id,
            status='Failed'
        )

        return {
            'statusCode': 500,
            'body': json.dumps(f'Pre-traffic validation failed: {str(e)}')
        }
