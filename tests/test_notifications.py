from unittest.mock import MagicMock, patch

from voidai.services.notifications.firebase import NotificationDispatcher


def configured_dispatcher():
    dispatcher = NotificationDispatcher(service_account_json='{"type": "service_account"}')
    dispatcher._app = MagicMock()
    return dispatcher


class TestNotificationDispatcher:
    def test_unconfigured_skips_sending(self):
        dispatcher = NotificationDispatcher(service_account_json=None)

        with patch("voidai.services.notifications.firebase.messaging.send") as send:
            assert dispatcher.notify_track_ready("token", "Rain", "track-1") is False

        send.assert_not_called()

    def test_track_ready_message(self):
        dispatcher = configured_dispatcher()

        with patch(
            "voidai.services.notifications.firebase.messaging.send",
            return_value="projects/x/messages/1",
        ) as send:
            assert dispatcher.notify_track_ready("token", "Rain", "track-1") is True

        message = send.call_args.args[0]
        assert message.token == "token"
        assert message.notification.title == "Your track is ready!"
        assert message.data == {
            "type": "track_ready",
            "trackId": "track-1",
            "url": "/library",
        }
        assert message.webpush.fcm_options.link == "/library"

    def test_send_failure_returns_false(self):
        dispatcher = configured_dispatcher()

        with patch(
            "voidai.services.notifications.firebase.messaging.send",
            side_effect=RuntimeError("quota"),
        ):
            assert dispatcher.notify_video_failed("token", "video-1") is False

    def test_invalid_credentials_disable_notifications(self):
        dispatcher = NotificationDispatcher(service_account_json="not json")

        assert dispatcher.app is None
        assert dispatcher.send("token", "title", "body") is False
