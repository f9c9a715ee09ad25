"""Test configuration and fixtures."""

from collections.abc import Generator
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clipfeed.core.db import Base, configure_sqlite_transactions
from clipfeed.core.settings import Settings
from clipfeed.models.schema import InboundItem, Video
from clipfeed.services.queue import QueueService
from clipfeed.services.user_resolution import UserResolver
from clipfeed.utils.error_logger import reset_pipeline_metrics


@pytest.fixture
def test_db():
    """Create an in-memory test database.

    All sessions share one connection, so tests open them one at a time.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite_transactions(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_db):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_db)


@pytest.fixture
def db_factory(session_factory):
    """Drop-in replacement for ``clipfeed.core.db.get_db``."""

    @contextmanager
    def _get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    return _get_db


@pytest.fixture
def queue_service(db_factory):
    return QueueService(db_factory=db_factory)


@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        google_api_key=None,
        analysis_model="test",
        analysis_timeout_seconds=5,
        max_retries=3,
    )


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_pipeline_metrics()
    yield
    reset_pipeline_metrics()


@pytest.fixture
def create_item(db_factory):
    """Insert an inbound item and return its id."""

    def _create(
        batch_id: str = "batch-1",
        author_username: str = "alice",
        raw_urls: list | None = None,
        is_processed: bool = False,
    ) -> int:
        with db_factory() as db:
            item = InboundItem(
                batch_id=batch_id,
                author_username=author_username,
                author_external_id=f"ext-{author_username}",
                raw_urls=raw_urls if raw_urls is not None else [],
                is_processed=is_processed,
            )
            db.add(item)
            db.flush()
            return item.id

    return _create


@pytest.fixture
def create_video(db_factory):
    """Insert a video owned by ``username`` and return its id."""

    def _create(
        source_url: str = "https://youtu.be/abc",
        title: str = "Building a Flutter app",
        description: str | None = "A walkthrough",
        username: str = "alice",
    ) -> int:
        with db_factory() as db:
            user_id = UserResolver(db).find_or_create(username)
            video = Video(
                source_url=source_url,
                thumbnail_url=None,
                title=title,
                description=description,
                platform="youtube",
                user_id=user_id,
                liked_by=[],
                saved_by=[],
                comment_count=0,
            )
            db.add(video)
            db.flush()
            return video.id

    return _create
