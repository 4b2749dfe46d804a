from __future__ import annotations

import pytest

from spotres import new_manager, registry
# FIXME: Switch to pytest-postgresql, testing.postgresql is unmaintained
from testing.postgresql import Postgresql  # type: ignore[import-untyped]
from uuid import uuid4 as new_uuid


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Generator
    from spotres.db.manager import SpotManager


OWNER = 'owner@example.org'


def new_test_manager(
    dsn: str,
    context_name: str | None = None
) -> SpotManager:

    context_name = context_name or new_uuid().hex

    context = registry.register_context(
        context_name, replace=True, settings={'dsn': dsn}
    )

    return new_manager(context, timezone='Europe/Zurich')


@pytest.fixture
def manager(dsn: str) -> Generator[SpotManager, None, None]:

    # clear the events before each test
    from spotres.modules import events
    for event in (e for e in dir(events) if e.startswith('on_')):
        del getattr(events, event)[:]

    manager = new_test_manager(dsn)

    yield manager

    manager.rollback()
    manager.extinguish_records()
    manager.commit()
    manager.close()
    manager.session_provider.stop_service()


@pytest.fixture
def spots(manager: SpotManager) -> SpotManager:
    """ A manager with an owner, two plain users, an admin and the spots
    A1 and A2.

    """
    manager.ensure_user(OWNER, 'Olivia Owner')
    manager.add_user('alice@example.org', 'Alice')
    manager.add_user('bob@example.org', 'Bob')
    manager.add_user('admin@example.org', 'Ada Admin', role='admin')
    manager.add_spot(OWNER, 'A1')
    manager.add_spot(OWNER, 'A2')

    return manager


@pytest.fixture(scope='session')
def dsn(
    tmp_path_factory: pytest.TempPathFactory
) -> Generator[str, None, None]:

    try:
        postgres = Postgresql()
    except RuntimeError:
        # no postgres binaries installed, on sqlite the session provider
        # runs one transaction at a time (BEGIN IMMEDIATE)
        postgres = None
        url = 'sqlite:///{}'.format(
            tmp_path_factory.mktemp('spotres') / 'spotres.db'
        )
    else:
        url = postgres.url()

    manager = new_test_manager(url)
    manager.setup_database()

    yield url

    manager.close()
    manager.session_provider.stop_service()

    if postgres is not None:
        postgres.stop()
