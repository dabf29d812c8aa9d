from typing import Awaitable, Callable, Optional, TypeVar

from loguru import logger

from smart_parking.application.repositories import AbstractFacilityRepository, AbstractUnitOfWork
from smart_parking.config.settings_env import settings
from smart_parking.domain.entities import Facility
from smart_parking.domain.errors import ConflictError, NotFoundError

T = TypeVar("T")


class _LostRace(Exception):
    pass


async def admit(
    uow: AbstractUnitOfWork,
    facility_repo: AbstractFacilityRepository,
    facility_id: str,
    attempt: Callable[[Facility], Awaitable[T]],
    max_retries: Optional[int] = None,
) -> T:
    """Run a read-check-write admission against one facility.

    ``attempt`` receives the freshly locked facility, checks capacity and adds
    its rows. The commit only goes through if nobody else admitted into the
    same facility or released a spot there in the meantime; otherwise everything is rolled back and
    ``attempt`` runs again on fresh state. Changes the attempt makes to the
    cached counter are applied relative to the stored value.
    """
    max_retries = max_retries or settings.ADMISSION_MAX_RETRIES
    for attempt_number in range(1, max_retries + 1):
        facility = await facility_repo.get_for_update(facility_id)
        if facility is None:
            raise NotFoundError(f"Facility not found: {facility_id}")
        spots_before = facility.available_spots
        try:
            result = await attempt(facility)
            if not await facility_repo.compare_and_bump_version(
                facility.id, facility.version, facility.available_spots - spots_before
            ):
                raise _LostRace()
            await uow.commit()
            return result
        except _LostRace:
            await uow.rollback()
            logger.warning(
                f"Admission race lost on facility {facility_id} (attempt {attempt_number}/{max_retries})"
            )
        except Exception:
            await uow.rollback()
            raise

    raise ConflictError(f"Facility {facility_id} is busy, please retry")
