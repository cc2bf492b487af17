"""Guest identity resolution for offline bookings"""
import logging
from datetime import date
from typing import Callable, Optional

from domain.entities import Guest
from domain.exceptions import ConflictError, DuplicateKeyError
from domain.repositories import GuestRepository
from domain.value_objects import GuestInfo, normalize_cpf

logger = logging.getLogger(__name__)


class GuestIdentityResolver:
    """Finds or creates the Guest an offline booking belongs to.

    Lookup is by normalized CPF first, then by exact phone. A match is
    enriched with the new details (never erasing populated fields) and
    only written when something changed.
    """

    def __init__(self, guest_repo: GuestRepository, today: Callable[[], date] = date.today):
        self.guest_repo = guest_repo
        self.today = today

    async def resolve(self, info: GuestInfo) -> Guest:
        cpf = normalize_cpf(info.cpf)
        info = info.model_copy(update={"cpf": cpf})

        guest = await self._lookup(info.phone, cpf)
        if guest is None:
            try:
                return await self._create(info)
            except DuplicateKeyError:
                # Another request created the same CPF between our read and write
                logger.warning("Guest with CPF %s created concurrently, reusing it", cpf)
                guest = await self._lookup(info.phone, cpf)
                if guest is None:
                    raise ConflictError("A guest with this CPF already exists")

        return await self._merge(guest, info)

    async def _lookup(self, phone: str, cpf: Optional[str]) -> Optional[Guest]:
        guest = None
        if cpf:
            guest = await self.guest_repo.find_by_cpf(cpf)
        if guest is None:
            guest = await self.guest_repo.find_by_phone(phone)
        return guest

    async def _create(self, info: GuestInfo) -> Guest:
        guest = Guest.create(info, self.today())
        guest = await self.guest_repo.save(guest)
        logger.info("Created guest %s", guest.guest_id)
        return guest

    async def _merge(self, guest: Guest, info: GuestInfo) -> Guest:
        changed = guest.merge(info, self.today())
        if not changed:
            return guest
        try:
            await self.guest_repo.update(guest)
        except DuplicateKeyError:
            raise ConflictError("Another guest is already registered with this CPF")
        logger.info("Updated guest %s fields: %s", guest.guest_id, ", ".join(sorted(changed)))
        return guest
