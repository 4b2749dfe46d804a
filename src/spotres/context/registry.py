from __future__ import annotations

import re
import threading

from contextlib import contextmanager

from spotres.modules import errors
from spotres.context.core import Context


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterator
    from collections.abc import Mapping

    from spotres.context.session import SessionProvider


# a very simple email check
EMAIL_EXPRESSION = re.compile(r'[^@\s]+@[^@\s]+\.[^@\s]+')


def is_valid_email(email: str) -> bool:
    return EMAIL_EXPRESSION.fullmatch(email) is not None


def create_default_registry() -> Registry:
    """ Creates the registry with the default settings and services on a
    locked master context.

    """

    from spotres.context.session import SessionProvider
    from spotres.context.settings import set_default_settings

    registry = Registry()

    def session_provider_factory(context: Context) -> SessionProvider:
        return SessionProvider(context.get_setting('dsn'))

    def email_validator_factory(context: Context) -> Callable[[str], bool]:
        return is_valid_email

    master = registry.master_context
    assert master is not None
    master.set_service('email_validator', email_validator_factory)
    master.set_service(
        'session_provider', session_provider_factory, cache=True
    )

    set_default_settings(master)

    master.lock()

    return registry


class Registry:
    """ Keeps the contexts of a process by name and knows which one is
    active in the current thread (the master context unless switched).

    spotres ships a global registry::

        from spotres import registry
        garage = registry.register_context('garage', settings={
            'dsn': 'postgresql+psycopg2://...'
        })

    Applications which avoid global state create their own with
    :func:`create_default_registry`.

    """

    contexts: dict[str, Context]
    master_context: Context | None = None

    def __init__(self) -> None:
        self.thread_lock = threading.RLock()

        with self.thread_lock:
            self.contexts = {}
            self.local = threading.local()

        self.master_context = self.register_context('master')

    @property
    def current_context(self) -> Context:
        if not hasattr(self.local, 'current_context'):
            self.local.current_context = self.master_context

        return self.local.current_context  # type: ignore[no-any-return]

    def is_existing_context(self, name: str) -> bool:
        return name in self.contexts

    def assert_not_locked(self, name: str) -> None:
        if self.get_context(name).locked:
            raise errors.ContextIsLocked(name)

    def assert_exists(self, name: str) -> None:
        if not self.is_existing_context(name):
            raise errors.UnknownContext(name)

    def assert_does_not_exist(self, name: str) -> None:
        if self.is_existing_context(name):
            raise errors.ContextAlreadyExists(name)

    def register_context(
        self,
        name: str,
        replace: bool = False,
        settings: Mapping[str, Any] | None = None
    ) -> Context:
        """ Adds a context inheriting from the master context. An existing
        context of the same name is only replaced if asked to and if it
        isn't locked.

        """
        with self.thread_lock:
            if replace and self.is_existing_context(name):
                self.assert_not_locked(name)
            elif not replace:
                self.assert_does_not_exist(name)

            context = Context(name, registry=self, parent=self.master_context)

            for key, value in (settings or {}).items():
                context.set_setting(key, value)

            self.contexts[name] = context
            return context

    def switch_context(self, name: str) -> None:
        with self.thread_lock:
            self.local.current_context = self.get_context(name)

    @contextmanager
    def context(self, name: str) -> Iterator[Context]:
        """ Makes the given context the current one for the duration of the
        with block.

        """
        previous = self.current_context.name
        self.switch_context(name)

        try:
            yield self.current_context
        finally:
            self.switch_context(previous)

    def get_current_context(self) -> Context:
        return self.current_context

    def get_context(self, name: str, autocreate: bool = False) -> Context:
        with self.thread_lock:
            if autocreate and not self.is_existing_context(name):
                return self.register_context(name)

            self.assert_exists(name)
            return self.contexts[name]
