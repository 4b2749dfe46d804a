from __future__ import annotations

import pytest
import sedate

from datetime import datetime
from spotres.modules import errors
from spotres.modules import events
from spotres.modules.resolver import Disposition


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from spotres.db.manager import SpotManager


def local(*args: int) -> datetime:
    return sedate.standardize_date(datetime(*args), 'Europe/Zurich')


def timeline(manager: SpotManager, spot_id: str) -> list[Any]:
    return [
        (i.owner_email, i.start, i.end)
        for i in manager.intervals(spot_id)
    ]


def test_alice_and_bob(spots: SpotManager) -> None:
    spots.assign(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 0), datetime(2024, 1, 2, 0)
    )

    with pytest.raises(errors.ConflictError):
        spots.assign(
            'bob@example.org', 'A1',
            datetime(2024, 1, 1, 12), datetime(2024, 1, 1, 18)
        )

    resolutions = spots.release(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 6), datetime(2024, 1, 1, 8)
    )

    assert [r.disposition for r in resolutions] == [Disposition.SURROUNDS]
    assert timeline(spots, 'A1') == [
        ('alice@example.org', local(2024, 1, 1, 0), local(2024, 1, 1, 6)),
        ('alice@example.org', local(2024, 1, 1, 8), local(2024, 1, 2, 0)),
    ]

    # bob may now take the gap
    spots.assign(
        'bob@example.org', 'A1',
        datetime(2024, 1, 1, 6), datetime(2024, 1, 1, 8)
    )


def test_release_exact_cover_deletes(spots: SpotManager) -> None:
    start, end = datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 18)
    spots.assign('alice@example.org', 'A1', start, end)

    resolutions = spots.release('alice@example.org', 'A1', start, end)

    assert len(resolutions) == 1
    assert resolutions[0].deleted
    assert resolutions[0].disposition is Disposition.FULLY_CONTAINED
    assert timeline(spots, 'A1') == []


def test_release_covering_many(spots: SpotManager) -> None:
    spots.assign(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 0), datetime(2024, 1, 1, 6)
    )
    spots.assign(
        'bob@example.org', 'A1',
        datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 12)
    )
    spots.assign_infinite(
        'alice@example.org', 'A1', datetime(2024, 1, 1, 12)
    )

    resolutions = spots.release(
        'admin@example.org', 'A1',
        datetime(2024, 1, 1, 4), datetime(2024, 1, 1, 14)
    )

    assert [r.disposition for r in resolutions] == [
        Disposition.OVERLAPS_END,
        Disposition.FULLY_CONTAINED,
        Disposition.OVERLAPS_START,
    ]

    assert timeline(spots, 'A1') == [
        ('alice@example.org', local(2024, 1, 1, 0), local(2024, 1, 1, 4)),
        ('alice@example.org', local(2024, 1, 1, 14), None),
    ]


def test_release_never_deletes_infinite(spots: SpotManager) -> None:
    spots.assign_infinite('alice@example.org', 'A1', datetime(2024, 1, 1))

    spots.release(
        'alice@example.org', 'A1',
        datetime(2023, 1, 1), datetime(2025, 1, 1)
    )

    assert timeline(spots, 'A1') == [
        ('alice@example.org', local(2025, 1, 1), None),
    ]

    # releasing a part of it splits it in two
    spots.release(
        'alice@example.org', 'A1',
        datetime(2025, 2, 1), datetime(2025, 3, 1)
    )

    assert timeline(spots, 'A1') == [
        ('alice@example.org', local(2025, 1, 1), local(2025, 2, 1)),
        ('alice@example.org', local(2025, 3, 1), None),
    ]


def test_release_someone_elses(spots: SpotManager) -> None:
    spots.assign(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 12)
    )
    spots.assign(
        'bob@example.org', 'A1',
        datetime(2024, 1, 1, 12), datetime(2024, 1, 1, 18)
    )

    before = timeline(spots, 'A1')

    with pytest.raises(errors.AuthorizationError):
        spots.release(
            'bob@example.org', 'A1',
            datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 10)
        )

    # even his own interval stays if another one is in the range
    with pytest.raises(errors.AuthorizationError):
        spots.release(
            'bob@example.org', 'A1',
            datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 18)
        )

    assert timeline(spots, 'A1') == before

    # his own is fine
    spots.release(
        'bob@example.org', 'A1',
        datetime(2024, 1, 1, 12), datetime(2024, 1, 1, 18)
    )

    assert timeline(spots, 'A1') == before[:1]


@pytest.mark.parametrize('email', ['admin@example.org', 'owner@example.org'])
def test_privileged_release(spots: SpotManager, email: str) -> None:
    spots.assign(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 12)
    )

    spots.release(
        email, 'A1',
        datetime(2024, 1, 1, 10), datetime(2024, 1, 1, 12)
    )

    assert timeline(spots, 'A1') == [
        ('alice@example.org', local(2024, 1, 1, 8), local(2024, 1, 1, 10)),
    ]


def test_release_free_window(spots: SpotManager) -> None:
    released: list[Any] = []
    events.on_intervals_released.append(
        lambda ctx, email, resolutions: released.append(resolutions)
    )

    spots.assign(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 12)
    )

    assert spots.release(
        'bob@example.org', 'A1',
        datetime(2024, 1, 1, 12), datetime(2024, 1, 1, 18)
    ) == []

    assert spots.release(
        'bob@example.org', 'A2',
        datetime(2024, 1, 1, 12), datetime(2024, 1, 1, 18)
    ) == []

    assert not released
    assert len(timeline(spots, 'A1')) == 1


def test_release_twice(spots: SpotManager) -> None:
    spots.assign(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 18)
    )

    start, end = datetime(2024, 1, 1, 10), datetime(2024, 1, 1, 12)

    assert len(spots.release('alice@example.org', 'A1', start, end)) == 1
    after_first = timeline(spots, 'A1')

    assert spots.release('alice@example.org', 'A1', start, end) == []
    assert timeline(spots, 'A1') == after_first


def test_release_invalid(spots: SpotManager) -> None:
    start = datetime(2024, 1, 1, 8)

    with pytest.raises(errors.InvalidRangeError):
        spots.release('alice@example.org', 'A1', start, start)

    with pytest.raises(errors.NotFoundError):
        spots.release(
            'nobody@example.org', 'A1',
            start, datetime(2024, 1, 1, 9)
        )


def test_release_event(spots: SpotManager) -> None:
    released: list[Any] = []
    events.on_intervals_released.append(
        lambda ctx, email, resolutions: released.append((email, resolutions))
    )

    spots.assign(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 18)
    )
    spots.release(
        'alice@example.org', 'A1',
        datetime(2024, 1, 1, 8), datetime(2024, 1, 1, 9)
    )

    assert len(released) == 1

    email, resolutions = released[0]
    assert email == 'alice@example.org'
    assert resolutions[0].keep.start == local(2024, 1, 1, 9)


def test_release_keeps_intervals_apart(spots: SpotManager) -> None:
    spots.assign_infinite('alice@example.org', 'A1', datetime(2024, 1, 1))

    for day in range(2, 20, 3):
        spots.release(
            'alice@example.org', 'A1',
            datetime(2024, 1, day), datetime(2024, 1, day + 1)
        )

    spots.release(
        'owner@example.org', 'A1',
        datetime(2024, 1, 3, 12), datetime(2024, 1, 9, 12)
    )

    intervals = timeline(spots, 'A1')

    for (_, _, end), (_, start, _) in zip(intervals, intervals[1:]):
        assert end is not None
        assert end <= start

    assert intervals[-1][2] is None
