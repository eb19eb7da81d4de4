"""
Lambda handler for the Vaccination Engine API
Runs the FastAPI app on AWS Lambda through Mangum
"""
import os
import sys
import json
import logging

logger = logging.getLogger()
logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))

# Lambda may not put the package root on sys.path
current_dir = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.insert(0, current_dir)

from mangum import Mangum  # noqa: E402
from app.main import app  # noqa: E402

handler_mangum = Mangum(app, lifespan="off")

# API Gateway stage prefix stripped before routing
BASE_PATH = os.getenv("API_BASE_PATH", "")


def handler(event, context):
    """Handler with request logging and base path stripping"""
    logger.debug(f"Event received: {json.dumps(event, default=str)}")

    original_path = (
        event.get('rawPath')
        or event.get('path')
        or event.get('requestContext', {}).get('http', {}).get('path', '')
    )

    if BASE_PATH and original_path.startswith(BASE_PATH):
        new_path = original_path[len(BASE_PATH):] or "/"
        if 'rawPath' in event:
            event['rawPath'] = new_path
        if 'path' in event:
            event['path'] = new_path
        if 'requestContext' in event and 'http' in event['requestContext']:
            event['requestContext']['http']['path'] = new_path
        logger.info(f"Path rewritten: {original_path} -> {new_path}")

    try:
        response = handler_mangum(event, context)
        logger.info(f"{original_path} -> {response.get('statusCode', 'N/A')}")
        return response
    except Exception as e:
        logger.error(f"Error in handler: {str(e)}", exc_info=True)
        raise
