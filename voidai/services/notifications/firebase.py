"""
Notification Dispatcher

Push notifications through Firebase Cloud Messaging. The Firebase app is
initialised lazily from a service account JSON; without one, notifications are
skipped. Sending never raises: callers get a bool back.
"""

import json
import logging
from traceback import format_exc
from typing import Dict, Optional

import firebase_admin
from firebase_admin import credentials, messaging

from config import FIREBASE_SERVICE_ACCOUNT_JSON

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

APP_NAME = "voidai-notifications"
NOTIFICATION_ICON = "/pwa-192x192.png"
DEFAULT_LINK = "/library"


class NotificationDispatcher:
    """Sends push notifications for finished generation tasks."""

    def __init__(
        self, service_account_json: Optional[str] = FIREBASE_SERVICE_ACCOUNT_JSON
    ):
        self.service_account_json = service_account_json
        self._app: Optional[firebase_admin.App] = None
        self._init_failed = False

    @property
    def app(self) -> Optional[firebase_admin.App]:
        """Get or create the Firebase app, None when notifications are disabled."""
        if self._app is not None or self._init_failed:
            return self._app

        if not self.service_account_json:
            logger.warning(
                "Firebase service account not configured - push notifications disabled"
            )
            self._init_failed = True
            return None

        try:
            self._app = firebase_admin.get_app(APP_NAME)
        except ValueError:
            try:
                certificate = credentials.Certificate(
                    json.loads(self.service_account_json)
                )
                self._app = firebase_admin.initialize_app(certificate, name=APP_NAME)
                logger.info("Firebase Admin initialized successfully")
            except Exception as e:
                logger.error(
                    f"Failed to initialize Firebase Admin: {str(e)}\n{format_exc()}"
                )
                self._init_failed = True
        return self._app

    def send(
        self,
        token: str,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
    ) -> bool:
        """
        Send one push notification.

        Args:
            token: Device registration token
            title: Notification title
            body: Notification body
            data: Extra string payload; a `url` entry sets the click-through link

        Returns:
            True if Firebase accepted the message
        """
        app = self.app
        if app is None:
            logger.warning("Firebase Admin not initialized - cannot send notification")
            return False

        data = {key: str(value) for key, value in (data or {}).items()}
        message = messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(
                    icon=NOTIFICATION_ICON, badge=NOTIFICATION_ICON
                ),
                fcm_options=messaging.WebpushFCMOptions(
                    link=data.get("url", DEFAULT_LINK)
                ),
            ),
            data=data,
        )

        try:
            response = messaging.send(message, app=app)
            logger.info(f"Push notification sent successfully: {response}")
            return True
        except messaging.UnregisteredError:
            logger.warning("Device token is invalid or expired - should be cleaned up")
            return False
        except Exception as e:
            logger.error(f"Error sending push notification: {str(e)}\n{format_exc()}")
            return False

    def notify_track_ready(self, token: str, track_title: str, track_id: str) -> bool:
        return self.send(
            token,
            "Your track is ready!",
            f'"{track_title}" has finished generating. Tap to listen!',
            {"type": "track_ready", "trackId": track_id, "url": DEFAULT_LINK},
        )

    def notify_generation_failed(
        self, token: str, track_title: str, track_id: str
    ) -> bool:
        return self.send(
            token,
            "Generation failed",
            f'Sorry, "{track_title}" could not be generated. Please try again.',
            {"type": "generation_failed", "trackId": track_id, "url": "/create"},
        )

    def notify_video_ready(self, token: str, video_id: str) -> bool:
        return self.send(
            token,
            "Your video is ready!",
            "Your music video has finished rendering. Tap to watch!",
            {"type": "video_ready", "videoId": video_id, "url": DEFAULT_LINK},
        )

    def notify_video_failed(self, token: str, video_id: str) -> bool:
        return self.send(
            token,
            "Video generation failed",
            "Sorry, your music video could not be generated. Please try again.",
            {"type": "video_failed", "videoId": video_id, "url": DEFAULT_LINK},
        )


# Global instance
_notification_dispatcher: Optional[NotificationDispatcher] = None


def get_notification_dispatcher() -> NotificationDispatcher:
    global _notification_dispatcher
    if _notification_dispatcher is None:
        _notification_dispatcher = NotificationDispatcher()
    return _notification_dispatcher
