import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from freezegun import freeze_time

from smart_parking.application.dto import (
    CancelReservationRequest,
    CreateReservationRequest,
    GenerateInvoiceRequest,
)
from smart_parking.application.services.reservation_service import (
    CancelReservation,
    CreateReservation,
    GenerateInvoice,
)
from smart_parking.domain.common import ReservationStatus, SessionStatus
from smart_parking.domain.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from smart_parking.infrastructure.api.dependencies import Repositories
from tests.factories import WEEKDAY_HOURS, add_session, add_subscription, at


@pytest.fixture
def create_reservation(repos):
    return CreateReservation(repos.uow, repos.users, repos.facilities, repos.reservations, repos.availability())


@pytest.fixture
def cancel_reservation(repos):
    return CancelReservation(repos.uow, repos.reservations, repos.facilities)


@pytest.fixture
def generate_invoice(repos):
    return GenerateInvoice(repos.reservations, repos.facilities, repos.sessions)


def _request(user, facility, start, end):
    return CreateReservationRequest(user_id=user.id, facility_id=facility.id, start_time=start, end_time=end)


class TestCreateReservation:
    """Reservations are admitted only while a space stays free for the whole window."""

    async def test_single_space_is_booked_once(self, create_reservation, facility, driver, other_driver):
        first = await create_reservation.execute(_request(driver, facility, at(10), at(12)))
        assert first.status == ReservationStatus.CONFIRMED
        assert first.total_amount == 20.0
        assert first.duration_minutes == 120

        with pytest.raises(ConflictError, match="No available spaces"):
            await create_reservation.execute(_request(other_driver, facility, at(11), at(13)))

    async def test_back_to_back_reservations_fit(self, create_reservation, facility, driver, other_driver):
        await create_reservation.execute(_request(driver, facility, at(10), at(12)))
        second = await create_reservation.execute(_request(other_driver, facility, at(12), at(13)))
        assert second.total_amount == 10.0

    async def test_price_rounds_up_to_quarter_hour(self, create_reservation, make_facility, driver):
        facility = await make_facility(hourly_rate=15.0)
        response = await create_reservation.execute(_request(driver, facility, at(10), at(11, 20)))
        assert response.total_amount == 22.5

    async def test_cached_counter_is_decremented(self, repos, create_reservation, make_facility, driver):
        facility = await make_facility(total_spaces=3)
        await create_reservation.execute(_request(driver, facility, at(10), at(12)))
        stored = await repos.facilities.get_by_id(facility.id)
        assert stored.available_spots == 2
        assert stored.version == facility.version + 1

    async def test_subscription_blocks_reservation(self, repos, create_reservation, facility, driver, other_driver):
        await add_subscription(repos, other_driver, facility, {1: [{"start": "09:00", "end": "17:00"}]})
        with pytest.raises(ConflictError):
            await create_reservation.execute(_request(driver, facility, at(10), at(12)))

    async def test_closed_facility_is_rejected(self, create_reservation, make_facility, driver):
        facility = await make_facility(opening_hours=WEEKDAY_HOURS)
        with pytest.raises(ValidationError, match="closed"):
            await create_reservation.execute(_request(driver, facility, at(17), at(19)))

    @pytest.mark.parametrize(
        "start, end, message",
        [
            (at(12), at(10), "before end"),
            (at(10), at(10, 10), "at least"),
            (at(10), at(10) + timedelta(hours=25), "exceed"),
        ],
    )
    async def test_invalid_windows(self, create_reservation, facility, driver, start, end, message):
        with pytest.raises(ValidationError, match=message):
            await create_reservation.execute(_request(driver, facility, start, end))

    async def test_start_in_the_past(self, create_reservation, facility, driver):
        start = datetime.now(timezone.utc) - timedelta(hours=1)
        with pytest.raises(ValidationError, match="past"):
            await create_reservation.execute(_request(driver, facility, start, start + timedelta(hours=2)))

    async def test_unknown_user_and_facility(self, create_reservation, facility, driver):
        with pytest.raises(NotFoundError, match="User"):
            await create_reservation.execute(
                CreateReservationRequest(user_id="nobody", facility_id=facility.id, start_time=at(10), end_time=at(12))
            )
        with pytest.raises(NotFoundError, match="Facility"):
            await create_reservation.execute(
                CreateReservationRequest(user_id=driver.id, facility_id="nowhere", start_time=at(10), end_time=at(12))
            )

    async def test_free_facility_cannot_be_reserved(self, create_reservation, make_facility, driver):
        facility = await make_facility(hourly_rate=0.0)
        with pytest.raises(ValidationError, match="Amount"):
            await create_reservation.execute(_request(driver, facility, at(10), at(12)))


class TestAdmissionRace:
    """A lost version check rolls back and retries on fresh state."""

    async def test_retry_after_lost_race(self, repos, create_reservation, facility, driver):
        repos.facilities.compare_and_bump_version = AsyncMock(side_effect=[False, True])

        response = await create_reservation.execute(_request(driver, facility, at(10), at(12)))

        assert response.status == ReservationStatus.CONFIRMED
        assert repos.facilities.compare_and_bump_version.await_count == 2
        assert len(await repos.reservations.find_by_facility(facility.id)) == 1

    async def test_gives_up_after_max_retries(self, repos, create_reservation, facility, driver):
        repos.facilities.compare_and_bump_version = AsyncMock(return_value=False)

        with pytest.raises(ConflictError, match="busy") as exc_info:
            await create_reservation.execute(_request(driver, facility, at(10), at(12)))

        assert exc_info.value.retryable
        assert repos.facilities.compare_and_bump_version.await_count == 3
        assert await repos.reservations.find_by_facility(facility.id) == []


async def _reserve_in_own_session(session_maker, request):
    async with session_maker() as session:
        repos = Repositories(session)
        use_case = CreateReservation(
            repos.uow, repos.users, repos.facilities, repos.reservations, repos.availability()
        )
        return await use_case.execute(request)


class TestConcurrentReservations:
    """Separate sessions competing for the same facility."""

    async def test_last_space_goes_to_exactly_one_request(self, test_db, repos, facility, driver, other_driver):
        outcomes = await asyncio.gather(
            _reserve_in_own_session(test_db, _request(driver, facility, at(10), at(12))),
            _reserve_in_own_session(test_db, _request(other_driver, facility, at(11), at(13))),
            return_exceptions=True,
        )

        conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
        confirmed = [o for o in outcomes if not isinstance(o, Exception)]
        assert len(confirmed) == 1
        assert len(conflicts) == 1
        assert [r.id for r in await repos.reservations.find_active_for_facility(facility.id)] == [confirmed[0].id]
        assert (await repos.facilities.get_by_id(facility.id)).available_spots == 0

    async def test_release_during_admission_is_not_lost(
        self, test_db, repos, create_reservation, make_facility, driver, other_driver
    ):
        facility = await make_facility(total_spaces=5)
        existing = await create_reservation.execute(_request(driver, facility, at(8), at(9)))
        assert (await repos.facilities.get_by_id(facility.id)).available_spots == 4

        read_facility = repos.facilities.get_for_update
        calls = []

        async def read_then_cancel_elsewhere(facility_id):
            loaded = await read_facility(facility_id)
            if not calls:
                async with test_db() as session:
                    other = Repositories(session)
                    await CancelReservation(other.uow, other.reservations, other.facilities).execute(
                        CancelReservationRequest(reservation_id=existing.id, user_id=driver.id)
                    )
            calls.append(facility_id)
            return loaded

        repos.facilities.get_for_update = read_then_cancel_elsewhere

        await create_reservation.execute(_request(other_driver, facility, at(10), at(12)))

        assert len(calls) == 2
        stored = await repos.facilities.get_by_id(facility.id)
        assert stored.available_spots == 4
        assert (await repos.reservations.get_by_id(existing.id)).status == ReservationStatus.CANCELLED


class TestCancelReservation:
    async def test_cancel_frees_the_space(self, repos, create_reservation, cancel_reservation, facility, driver):
        reservation = await create_reservation.execute(_request(driver, facility, at(10), at(12)))

        cancelled = await cancel_reservation.execute(
            CancelReservationRequest(reservation_id=reservation.id, user_id=driver.id)
        )

        assert cancelled.status == ReservationStatus.CANCELLED
        assert await repos.availability().has_available_spaces_during(facility.id, at(10), at(12))
        assert (await repos.facilities.get_by_id(facility.id)).available_spots == 1

    async def test_other_user_cannot_cancel(self, create_reservation, cancel_reservation, facility, driver, other_driver):
        reservation = await create_reservation.execute(_request(driver, facility, at(10), at(12)))
        with pytest.raises(AuthorizationError):
            await cancel_reservation.execute(
                CancelReservationRequest(reservation_id=reservation.id, user_id=other_driver.id)
            )

    async def test_cannot_cancel_started_reservation(self, create_reservation, cancel_reservation, facility, driver):
        reservation = await create_reservation.execute(_request(driver, facility, at(10), at(12)))
        with freeze_time(at(10, 30), real_asyncio=True):
            with pytest.raises(StateError, match="already started"):
                await cancel_reservation.execute(
                    CancelReservationRequest(reservation_id=reservation.id, user_id=driver.id)
                )

    async def test_cannot_cancel_twice(self, create_reservation, cancel_reservation, facility, driver):
        reservation = await create_reservation.execute(_request(driver, facility, at(10), at(12)))
        request = CancelReservationRequest(reservation_id=reservation.id, user_id=driver.id)
        await cancel_reservation.execute(request)
        with pytest.raises(StateError):
            await cancel_reservation.execute(request)

    async def test_unknown_reservation(self, cancel_reservation, driver):
        with pytest.raises(NotFoundError):
            await cancel_reservation.execute(CancelReservationRequest(reservation_id="missing", user_id=driver.id))


class TestGenerateInvoice:
    async def test_invoice_without_session(self, create_reservation, generate_invoice, facility, driver):
        reservation = await create_reservation.execute(_request(driver, facility, at(10), at(12)))

        invoice = await generate_invoice.execute(
            GenerateInvoiceRequest(reservation_id=reservation.id, user_id=driver.id)
        )

        assert invoice.invoice_number.startswith("INV-")
        assert invoice.invoice_number.endswith(reservation.id[:8].upper())
        assert invoice.base_amount == 20.0
        assert invoice.overstay_minutes == 0
        assert invoice.total_amount == 20.0
        assert invoice.currency == "EUR"

    async def test_invoice_with_overstay(self, repos, create_reservation, generate_invoice, facility, driver):
        reservation = await create_reservation.execute(_request(driver, facility, at(10), at(12)))
        session = await add_session(repos, driver, facility, at(10), reservation_id=reservation.id)
        stored = await repos.sessions.get_by_id(session.id)
        stored.mark_overstayed(at(13, 30), 70.0, 35.0)
        await repos.sessions.update(stored)
        await repos.uow.commit()

        invoice = await generate_invoice.execute(
            GenerateInvoiceRequest(reservation_id=reservation.id, user_id=driver.id)
        )

        assert stored.status == SessionStatus.OVERSTAYED
        assert invoice.actual_duration_minutes == 210
        assert invoice.overstay_minutes == 90
        assert invoice.overstay_amount == 15.0
        assert invoice.penalty_amount == 20.0
        assert invoice.total_amount == 55.0

    async def test_invoice_for_another_user(self, create_reservation, generate_invoice, facility, driver, other_driver):
        reservation = await create_reservation.execute(_request(driver, facility, at(10), at(12)))
        with pytest.raises(AuthorizationError):
            await generate_invoice.execute(
                GenerateInvoiceRequest(reservation_id=reservation.id, user_id=other_driver.id)
            )
