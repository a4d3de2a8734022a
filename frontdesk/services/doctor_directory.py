from typing import Dict, List, Optional
import logging

from ..clients.base import BackendError
from ..clients.receptionist import ReceptionistClient
from ..models.doctor import Doctor

logger = logging.getLogger(__name__)

DIRECTORY_LOAD_WARNING = "Failed to load doctors"

class DoctorDirectory:
    """Active doctors available to one mounted form.

    Loaded once when the form mounts. Entries are never invalidated; a new
    form gets a fresh load.
    """

    def __init__(self, client: ReceptionistClient):
        self._client = client
        self._doctors: Dict[str, Doctor] = {}
        self.load_error: Optional[str] = None

    async def load(self) -> bool:
        """Fetch active doctors. A failure keeps the previous entries."""
        try:
            doctors = await self._client.list_active_doctors()
        except BackendError as e:
            logger.warning(f"Failed to fetch doctors: {e.message}")
            self.load_error = DIRECTORY_LOAD_WARNING
            return False

        self._doctors = {doctor.id: doctor for doctor in doctors if doctor.active}
        self.load_error = None
        logger.info(f"Loaded {len(self._doctors)} active doctors")
        return True

    def lookup(self, doctor_id: Optional[str]) -> Optional[Doctor]:
        if doctor_id is None:
            return None
        return self._doctors.get(doctor_id)

    def options(self) -> List[Doctor]:
        return list(self._doctors.values())

    def __len__(self):
        return len(self._doctors)
