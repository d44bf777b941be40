import os

# Configuration is read at import time
os.environ.setdefault("VOIDAI_ENV", "d")
os.environ.setdefault("VOIDAI_AUTH_JWT_KEY", "test-signing-key")
os.environ.setdefault("VOIDAI_DATABASE_URL", "sqlite:///:memory:")

import itertools  # noqa: E402
from typing import Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from voidai.models.database import User  # noqa: E402
from voidai.models.shared import TaskStatus  # noqa: E402
from voidai.models.tracks import GenerateMusicRequest  # noqa: E402
from voidai.server.main import app  # noqa: E402
from voidai.server.routers.auth_routes import issue_token  # noqa: E402
from voidai.server.routers.generation_routes import get_callback_secret  # noqa: E402
from voidai.services.database import DatabaseService, get_database_service  # noqa: E402
from voidai.services.generation.common import (  # noqa: E402
    MusicProviderService,
    ProviderTaskStatus,
    VideoProviderService,
)
from voidai.services.generation.kie import KieMusicClient, get_music_provider  # noqa: E402
from voidai.services.generation.runway import get_video_provider  # noqa: E402
from voidai.services.notifications.firebase import (  # noqa: E402
    NotificationDispatcher,
    get_notification_dispatcher,
)


class FakeMusicProvider(MusicProviderService):
    """In-memory music provider; tests script the status each task reports."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.submitted: List[GenerateMusicRequest] = []
        self.reports: Dict[str, ProviderTaskStatus] = {}
        self.fetches: List[str] = []
        self.submit_error: Optional[Exception] = None
        self._parser = KieMusicClient(api_key="test-key", callback_url="http://test")

    async def submit(self, request: GenerateMusicRequest) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(request)
        return f"task-{next(self._ids)}"

    async def fetch_status(self, task_id: str) -> ProviderTaskStatus:
        self.fetches.append(task_id)
        return self.reports.get(
            task_id,
            ProviderTaskStatus(
                task_id=task_id, status=TaskStatus.PENDING, provider_status="PENDING"
            ),
        )

    def parse_callback(self, payload) -> ProviderTaskStatus:
        return self._parser.parse_callback(payload)


class FakeVideoProvider(VideoProviderService):
    def __init__(self):
        self._ids = itertools.count(1)
        self.submitted: List[dict] = []
        self.reports: Dict[str, ProviderTaskStatus] = {}
        self.submit_error: Optional[Exception] = None

    async def submit(self, image_url: str, prompt: str, duration: int = 5) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(
            {"image_url": image_url, "prompt": prompt, "duration": duration}
        )
        return f"runway-{next(self._ids)}"

    async def fetch_status(self, job_id: str) -> ProviderTaskStatus:
        return self.reports.get(
            job_id,
            ProviderTaskStatus(
                task_id=job_id, status=TaskStatus.PENDING, provider_status="RUNNING"
            ),
        )


class RecordingNotifier(NotificationDispatcher):
    """Notification dispatcher that records messages instead of sending them."""

    def __init__(self):
        super().__init__(service_account_json=None)
        self.sent: List[dict] = []

    def send(self, token, title, body, data=None) -> bool:
        self.sent.append({"token": token, "title": title, "body": body, "data": data})
        return True


@pytest.fixture
def database_service(tmp_path):
    service = DatabaseService(f"sqlite:///{tmp_path / 'voidai.db'}")
    service.create_all()
    yield service
    service.dispose()


@pytest.fixture
def music_provider():
    return FakeMusicProvider()


@pytest.fixture
def video_provider():
    return FakeVideoProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_user(database_service):
    counter = itertools.count(1)

    def _make_user(**fields) -> User:
        n = next(counter)
        values = {
            "email": f"user{n}@example.com",
            "username": f"user_{n}",
            "plan_type": "free",
            "credits": 55,
        }
        values.update(fields)
        with database_service.session() as session:
            user = User(**values)
            session.add(user)
            session.flush()
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(user).access_token}"}

    return _auth_headers


@pytest.fixture
def callback_secret():
    """Callback token the webhook expects; None disables the check."""
    return None


@pytest.fixture
def client(database_service, music_provider, video_provider, notifier, callback_secret):
    app.dependency_overrides[get_database_service] = lambda: database_service
    app.dependency_overrides[get_music_provider] = lambda: music_provider
    app.dependency_overrides[get_video_provider] = lambda: video_provider
    app.dependency_overrides[get_notification_dispatcher] = lambda: notifier
    app.dependency_overrides[get_callback_secret] = lambda: callback_secret
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def load_user(database_service):
    """Re-read a user row, to see what a request wrote."""

    def _load_user(user_id: str) -> User:
        with database_service.session() as session:
            return session.get(User, user_id)

    return _load_user
