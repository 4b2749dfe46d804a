from __future__ import annotations

import enum
import spotres
import threading
from contextlib import contextmanager
from functools import cached_property

from spotres.modules import errors


from typing import Any
from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterator
    from sqlalchemy.orm import Session
    from typing_extensions import TypeAlias

    from spotres.context.registry import Registry
    from spotres.context.session import SessionProvider


class _Marker(enum.Enum):
    missing = enum.auto()
    required = enum.auto()


missing_t: TypeAlias = Literal[_Marker.missing]  # noqa: PYI042
required_t: TypeAlias = Literal[_Marker.required]  # noqa: PYI042
missing: missing_t = _Marker.missing
required: required_t = _Marker.required


class StoppableService:
    """ A service which holds on to resources (connections, threads).

    When a context replaces the service with another one, stop_service is
    called on the old one. Nothing calls it at interpreter shutdown.

    """

    def stop_service(self) -> None:
        pass


class ContextServicesMixin:
    """ Shortcuts to the services and settings of ``self.context``, which
    the class using this mixin has to provide.

    Services and settings are looked up once per instance, see
    :meth:`clear_cache`.

    """

    context: Context

    _cached = ('validate_email', 'max_assignment_rounds')

    @cached_property
    def validate_email(self) -> Callable[[str], bool]:
        return self.context.get_service('email_validator')  # type: ignore[no-any-return]

    @cached_property
    def max_assignment_rounds(self) -> int:
        return int(self.context.get_setting('max_assignment_rounds'))

    def clear_cache(self) -> None:
        """ Forgets the looked up services and settings, so changes to the
        context take effect.

        """
        for name in self._cached:
            self.__dict__.pop(name, None)

    @property
    def session_provider(self) -> SessionProvider:
        return self.context.get_service('session_provider')  # type: ignore[no-any-return]

    @property
    def session(self) -> Session:
        """ The session of the current thread. """
        return self.session_provider.session()  # type: ignore[no-any-return]

    def close(self) -> None:
        self.session.close()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class Context:
    """ Holds the settings (e.g. the dsn) and the services (e.g. the session
    provider) spotres runs with.

    Every application using spotres registers a context of its own on the
    :class:`~spotres.context.registry.Registry`, several applications can
    thereby share a process while talking to different databases. Lookups
    the context cannot answer itself go to its parent, the master context,
    which carries the defaults.

    Managers cache what they look up, after changing a context create a new
    :class:`~spotres.db.manager.SpotManager` or call
    :meth:`~.ContextServicesMixin.clear_cache`.

    """

    def __init__(
        self,
        name: str,
        registry: Registry | None = None,
        parent: Context | None = None,
        locked: bool = False
    ):
        self.name = name
        self.registry = registry or spotres.registry
        self.values: dict[str, Any] = {}
        self.parent = parent
        self.locked = locked
        self.thread_lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<Spotres Context(name='{self.name}')>"

    @contextmanager
    def as_current_context(self) -> Iterator[None]:
        with self.registry.context(self.name):
            yield

    def switch_to(self) -> None:
        self.registry.switch_context(self.name)

    def lock(self) -> None:
        with self.thread_lock:
            self.locked = True

    def unlock(self) -> None:
        with self.thread_lock:
            self.locked = False

    def get(self, key: str) -> Any | missing_t:
        if key in self.values:
            return self.values[key]

        if self.parent is not None:
            return self.parent.get(key)

        return missing

    def set(self, key: str, value: Any) -> None:
        if self.locked:
            raise errors.ContextIsLocked(self.name)

        with self.thread_lock:
            previous = self.values.get(key)

            if isinstance(previous, StoppableService):
                previous.stop_service()

            self.values[key] = value

    def get_setting(self, name: str) -> Any:
        return self.get(f'settings.{name}')

    def set_setting(self, name: str, value: Any) -> None:
        self.set(f'settings.{name}', value)

    def get_service(self, name: str) -> Any:
        """ Returns the service created by the factory registered under the
        given name. Cached services are created once per context.

        """
        factory = self.get(f'service/{name}')

        if factory is missing:
            raise errors.UnknownService(name)

        cache_id = f'service/{name}/cache'
        cached = self.get(cache_id)

        if cached is missing:
            return factory(self)

        if cached is required:
            self.set(cache_id, factory(self))

        return self.get(cache_id)

    def set_service(
        self,
        name: str,
        factory: Callable[[Context], Any],
        cache: bool = False
    ) -> None:
        with self.thread_lock:
            self.set(f'service/{name}', factory)

            if cache:
                self.set(f'service/{name}/cache', required)
