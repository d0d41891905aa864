"""
functions/clients/push_gateway.py

Broadcast push notifications through Firebase Cloud Messaging using the
firebase-admin SDK.

All dashboard users subscribe to a single topic (settings.push_topic);
every send goes to that topic. The SDK is synchronous, so async handlers
call these methods through FastAPI's thread pool.

The Firebase app is created lazily on first use and reused for the life of
the process. A gateway without a service-account key / client email /
project id reports `configured == False` and refuses to send.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Optional

import firebase_admin
import structlog
from firebase_admin import credentials, messaging

from functions.utils.settings import Settings

logger = structlog.get_logger(__name__)

FIREBASE_APP_NAME = "statusboard-push"
TOKEN_URI = "https://oauth2.googleapis.com/token"

_APP_LOCK = threading.Lock()


class PushError(RuntimeError):
    pass


class PushNotConfigured(PushError):
    pass


class PushGateway:
    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._app: Optional[firebase_admin.App] = None

    @property
    def configured(self) -> bool:
        s = self._settings
        return bool(s.firebase_private_key and s.firebase_client_email and s.firebase_project_id)

    @property
    def topic(self) -> str:
        return self._settings.push_topic

    def send_to_topic(
        self,
        *,
        title: str,
        body: str,
        url: Optional[str] = None,
        type_: str = "general",
        project_id: Optional[str] = None,
    ) -> str:
        """Send one notification to the dashboard topic and return the FCM message id."""
        link = url or "/"
        data: Dict[str, str] = {
            "title": title,
            "body": body,
            "url": link,
            "type": type_,
            "projectId": project_id or "",
        }

        # FCM only accepts absolute https links in fcm_options; relative links
        # still reach the client through `data.url`.
        fcm_options = messaging.WebpushFCMOptions(link=link) if link.startswith("https://") else None

        message = messaging.Message(
            topic=self.topic,
            data=data,
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(
                    title=title,
                    body=body,
                    icon=self._settings.push_icon,
                ),
                fcm_options=fcm_options,
            ),
        )

        try:
            message_id = messaging.send(message, app=self._get_app())
        except PushError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("push_send_failed", topic=self.topic, type=type_, error=str(exc))
            raise PushError(f"Failed to send push notification: {exc}") from exc

        logger.info("push_sent", topic=self.topic, type=type_, message_id=message_id)
        return message_id

    def subscribe(self, token: str) -> str:
        """Subscribe a device registration token to the dashboard topic."""
        try:
            resp = messaging.subscribe_to_topic([token], self.topic, app=self._get_app())
        except PushError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.error("push_subscribe_failed", topic=self.topic, error=str(exc))
            raise PushError(f"Failed to register push token: {exc}") from exc

        if resp.failure_count:
            reason = resp.errors[0].reason if resp.errors else "unknown"
            logger.warning("push_subscribe_rejected", topic=self.topic, reason=reason)
            raise PushError(f"Failed to register push token: {reason}")

        logger.info("push_token_registered", topic=self.topic)
        return self.topic

    def _get_app(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app

        if not self.configured:
            raise PushNotConfigured("Firebase Admin not configured")

        # sends run on thread-pool workers; only one of them may create the app
        with _APP_LOCK:
            if self._app is not None:
                return self._app
            try:
                self._app = firebase_admin.get_app(FIREBASE_APP_NAME)
            except ValueError:
                cred = credentials.Certificate(self._service_account_info())
                self._app = firebase_admin.initialize_app(
                    cred,
                    {"projectId": self._settings.firebase_project_id},
                    name=FIREBASE_APP_NAME,
                )
                logger.info("firebase_app_initialized", project_id=self._settings.firebase_project_id)
        return self._app

    def _service_account_info(self) -> Dict[str, Any]:
        s = self._settings
        return {
            "type": "service_account",
            "project_id": s.firebase_project_id,
            "client_email": s.firebase_client_email,
            "private_key": s.firebase_private_key,
            "token_uri": TOKEN_URI,
        }
