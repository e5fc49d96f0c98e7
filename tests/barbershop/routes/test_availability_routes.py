from datetime import datetime

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from barbershop.models.unavailability import ProviderUnavailability
from barbershop.routes.availability_routes import (
    CreateUnavailabilityRequest,
    create_unavailability,
    list_unavailability,
    remove_unavailability,
    validate_unavailability_range,
)


def test_create_unavailability_request_normalizes_reason() -> None:
    request = CreateUnavailabilityRequest(
        start_date=datetime(2030, 1, 7),
        end_date=datetime(2030, 1, 8),
        reason='  Vacation  ',
    )

    assert request.reason == 'Vacation'
    assert request.all_day is True


def test_create_unavailability_request_rejects_long_reason() -> None:
    with pytest.raises(ValidationError):
        CreateUnavailabilityRequest(
            start_date=datetime(2030, 1, 7),
            end_date=datetime(2030, 1, 8),
            reason='x' * 201,
        )


def test_validate_unavailability_range_expands_all_day_periods() -> None:
    request = CreateUnavailabilityRequest(
        start_date=datetime(2030, 1, 7, 15, 0),
        end_date=datetime(2030, 1, 7, 9, 0),
        all_day=True,
    )

    assert validate_unavailability_range(request) == (datetime(2030, 1, 7), datetime(2030, 1, 8))


@pytest.mark.parametrize(
    ('start_date', 'end_date', 'all_day'),
    [
        (datetime(2030, 1, 7, 12, 0), datetime(2030, 1, 7, 12, 0), False),
        (datetime(2030, 1, 7, 12, 0), datetime(2030, 1, 7, 11, 0), False),
        (datetime(2030, 1, 8), datetime(2030, 1, 7), True),
    ],
)
def test_validate_unavailability_range_rejects_reversed_ranges(start_date, end_date, all_day) -> None:
    request = CreateUnavailabilityRequest(start_date=start_date, end_date=end_date, all_day=all_day)

    with pytest.raises(HTTPException) as exception_info:
        validate_unavailability_range(request)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'End date must be after start date.'


def test_create_unavailability_blocks_single_day(db, provider) -> None:
    created = create_unavailability(
        data=CreateUnavailabilityRequest(
            start_date=datetime(2030, 1, 7),
            end_date=datetime(2030, 1, 7),
            all_day=True,
            reason='Dentist',
        ),
        provider=provider,
        db=db,
    )

    assert created.id is not None
    assert created.provider_id == provider.id
    assert created.reason == 'Dentist'


def test_create_unavailability_refuses_when_appointments_are_booked(db, provider, add_appointment) -> None:
    booked = add_appointment(provider, datetime(2030, 1, 7, 15, 0))

    with pytest.raises(HTTPException) as exception_info:
        create_unavailability(
            data=CreateUnavailabilityRequest(
                start_date=datetime(2030, 1, 7),
                end_date=datetime(2030, 1, 7),
                all_day=True,
            ),
            provider=provider,
            db=db,
        )

    assert exception_info.value.status_code == 409
    detail = exception_info.value.detail
    assert detail['message'] == 'Cannot block this time - you have 1 appointment(s) scheduled.'
    assert [conflict['id'] for conflict in detail['conflicts']] == [booked.id]
    assert db.query(ProviderUnavailability).count() == 0


def test_create_unavailability_refuses_partial_overlap(db, provider, add_appointment) -> None:
    add_appointment(provider, datetime(2030, 1, 7, 10, 0), duration=60)

    with pytest.raises(HTTPException) as exception_info:
        create_unavailability(
            data=CreateUnavailabilityRequest(
                start_date=datetime(2030, 1, 7, 10, 30),
                end_date=datetime(2030, 1, 7, 12, 0),
                all_day=False,
            ),
            provider=provider,
            db=db,
        )

    assert exception_info.value.status_code == 409


def test_create_unavailability_ignores_cancelled_and_adjacent_appointments(
    db, provider, other_provider, add_appointment,
) -> None:
    add_appointment(provider, datetime(2030, 1, 7, 10, 0), duration=30)
    add_appointment(provider, datetime(2030, 1, 7, 11, 0), status='cancelled')
    add_appointment(other_provider, datetime(2030, 1, 7, 11, 0))

    created = create_unavailability(
        data=CreateUnavailabilityRequest(
            start_date=datetime(2030, 1, 7, 10, 30),
            end_date=datetime(2030, 1, 7, 12, 0),
            all_day=False,
        ),
        provider=provider,
        db=db,
    )

    assert created.all_day is False


def test_list_unavailability_returns_only_own_periods(db, provider, other_provider, add_unavailability) -> None:
    later = add_unavailability(provider, datetime(2030, 2, 1), datetime(2030, 2, 3))
    earlier = add_unavailability(provider, datetime(2030, 1, 10), datetime(2030, 1, 10))
    add_unavailability(other_provider, datetime(2030, 1, 12), datetime(2030, 1, 12))

    periods = list_unavailability(start_date=None, end_date=None, provider=provider, db=db)

    assert [period.id for period in periods] == [earlier.id, later.id]


def test_list_unavailability_filters_by_start_date(db, provider, add_unavailability) -> None:
    add_unavailability(provider, datetime(2030, 1, 10), datetime(2030, 1, 10))
    february = add_unavailability(provider, datetime(2030, 2, 1), datetime(2030, 2, 3))

    periods = list_unavailability(
        start_date=datetime(2030, 1, 15),
        end_date=datetime(2030, 3, 1),
        provider=provider,
        db=db,
    )

    assert [period.id for period in periods] == [february.id]


def test_remove_unavailability_deletes_own_period(db, provider, add_unavailability) -> None:
    period = add_unavailability(provider, datetime(2030, 1, 10), datetime(2030, 1, 10))

    remove_unavailability(unavailability_id=period.id, provider=provider, db=db)

    assert db.query(ProviderUnavailability).filter(ProviderUnavailability.id == period.id).first() is None


def test_remove_unavailability_rejects_other_providers_period(
    db, provider, other_provider, add_unavailability,
) -> None:
    period = add_unavailability(other_provider, datetime(2030, 1, 10), datetime(2030, 1, 10))

    with pytest.raises(HTTPException) as exception_info:
        remove_unavailability(unavailability_id=period.id, provider=provider, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Unavailability not found.'
    assert db.query(ProviderUnavailability).count() == 1
