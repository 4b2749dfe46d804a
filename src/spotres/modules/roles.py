from __future__ import annotations

from spotres.modules import errors


from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing_extensions import TypeAlias

Role: TypeAlias = Literal['user', 'admin', 'owner']

USER: Role = 'user'
ADMIN: Role = 'admin'
OWNER: Role = 'owner'

ROLES: tuple[Role, ...] = (USER, ADMIN, OWNER)
PRIVILEGED_ROLES = frozenset((ADMIN, OWNER))


def is_privileged(role: str) -> bool:
    return role in PRIVILEGED_ROLES


def assert_valid_role(role: str) -> Role:
    if role not in ROLES:
        raise errors.InvalidRole(role)

    return role  # type: ignore[return-value]


def assert_privileged(role: str) -> None:
    if not is_privileged(role):
        raise errors.AuthorizationError(
            'This action requires an admin or owner'
        )


def may_release(
    role: str,
    requesting_email: str,
    owners: Iterable[str]
) -> bool:
    """ Admins and owners may release anyone's intervals, plain users only
    their own.

    """
    if is_privileged(role):
        return True

    return all(owner == requesting_email for owner in owners)
