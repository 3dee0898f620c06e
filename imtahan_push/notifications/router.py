import asyncio
import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from firebase_admin import firestore
from pydantic import ValidationError

from .schemas import EnqueueRequest
from ..config import Settings
from ..dependencies import get_firestore_db, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Notifications"])

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
    'Access-Control-Allow-Headers': 'Content-Type',
}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': message}, headers=CORS_HEADERS)


async def _read_body(request: Request) -> dict:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {}
    return body if isinstance(body, dict) else {}


@router.options('/sendTestNotification', include_in_schema=False)
async def send_test_notification_preflight():
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=CORS_HEADERS)


@router.post('/sendTestNotification')
async def send_test_notification(
    request: Request,
    firestore_db: Annotated[object, Depends(get_firestore_db)],
    settings: Annotated[Settings, Depends(get_settings)]
):
    """
    Queue a test push notification for a user.

    The record is picked up by the dispatcher like any other outbox entry.
    """
    try:
        try:
            payload = EnqueueRequest.model_validate(await _read_body(request))
        except ValidationError:
            return _error(status.HTTP_400_BAD_REQUEST, "Invalid request body")

        if not payload.userId:
            return _error(status.HTTP_400_BAD_REQUEST, "userId is required")

        # Get the user's FCM token
        profile_ref = firestore_db.collection(settings.profiles_collection).document(payload.userId)
        profile = await asyncio.to_thread(profile_ref.get)

        if not profile.exists:
            return _error(status.HTTP_404_NOT_FOUND, "User not found")

        device_token = (profile.to_dict() or {}).get(settings.profile_token_field)

        if not device_token:
            return _error(status.HTTP_400_BAD_REQUEST, "User has no FCM token")

        # Create the outbox record for the dispatcher
        outbox_ref = firestore_db.collection(settings.outbox_collection)
        await asyncio.to_thread(outbox_ref.add, {
            'recipient_id': payload.userId,
            'device_token': device_token,
            'title': payload.title or settings.test_notification_title,
            'body': payload.body or settings.test_notification_body,
            'data': payload.data or {},
            'created_at': firestore.SERVER_TIMESTAMP,
            'sent': False,
        })

        logger.info(f"Queued test notification for user {payload.userId}")
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={'success': True, 'message': 'Notification queued for sending'},
            headers=CORS_HEADERS
        )
    except Exception as e:
        logger.error(f"Error in send_test_notification: {str(e)}", exc_info=True)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))
