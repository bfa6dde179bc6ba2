"""
Общие фикстуры: изолированная SQLite-база на тест и фабрики сущностей.
"""
import os

# окружение до импорта пакета: модели создают engine при импорте
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLE", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from uptower.db.models import Base, Monitor, NotificationChannel, User
from uptower.db.repo import Repository


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def repo(session_factory):
    return Repository(session_factory)


@pytest.fixture
def owner(session_factory):
    with session_factory() as session:
        user = User(email="owner@example.com", name="Owner")
        session.add(user)
        session.commit()
        return user


@pytest.fixture
def make_monitor(session_factory, owner):
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        fields = {
            "user_id": owner.id,
            "name": f"Monitor {counter['n']}",
            "type": "http",
            "url": "https://example.com",
            "interval_s": 60,
            "timeout_s": 5,
            "retries": 0,
            "active": True,
        }
        fields.update(kwargs)
        with session_factory() as session:
            monitor = Monitor(**fields)
            session.add(monitor)
            session.commit()
            return monitor

    return _make


@pytest.fixture
def make_channel(session_factory, owner):
    def _make(monitor_ids=(), **kwargs):
        fields = {
            "user_id": owner.id,
            "name": "channel",
            "type": "webhook",
            "config": {"url": "http://127.0.0.1:9/hook"},
            "active": True,
        }
        fields.update(kwargs)
        with session_factory() as session:
            channel = NotificationChannel(**fields)
            for mid in monitor_ids:
                channel.monitors.append(session.get(Monitor, mid))
            session.add(channel)
            session.commit()
            return channel

    return _make
