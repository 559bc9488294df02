# ABOUTME: Per-user medication list backed by RxNorm validation and lookups.
# ABOUTME: Provides the store protocol, an in-memory store, and the add/list/remove flow.

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from src.services.rxnorm import DrugSummary, RxNormService

logger = logging.getLogger(__name__)

DRUG_NAME_MIN_LENGTH = 2
DRUG_NAME_MAX_LENGTH = 255


class MedicationError(Exception):
    """Base error for medication list operations."""

    status_code: int = 500

    def __init__(self, message: str, field_errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors or {}


class MedicationValidationError(MedicationError):
    """Raised when request input is missing or malformed."""

    status_code = 422


class InvalidRxcuiError(MedicationValidationError):
    """Raised when an RxCUI does not exist or is not active."""


class DuplicateMedicationError(MedicationError):
    """Raised when the user already has the medication."""

    status_code = 409

    def __init__(self, message: str, existing: "MedicationRecord"):
        super().__init__(message)
        self.existing = existing


class MedicationNotFoundError(MedicationError):
    """Raised when a medication is not in the user's list."""

    status_code = 404


class DrugDetailsUnavailableError(MedicationError):
    """Raised when drug details cannot be retrieved from RxNorm."""

    status_code = 500


@dataclass
class MedicationRecord:
    """A drug saved to a user's medication list."""

    id: int
    user_id: int
    rxcui: str
    drug_name: str
    base_names: list[str] = field(default_factory=list)
    dose_form_group_names: list[str] = field(default_factory=list)
    added_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "rxcui": self.rxcui,
            "drug_name": self.drug_name,
            "base_names": list(self.base_names),
            "dose_form_group_names": list(self.dose_form_group_names),
            "added_at": self.added_at.strftime("%Y-%m-%d %H:%M:%S"),
        }


class MedicationStore(Protocol):
    """Protocol for medication persistence backends."""

    async def list_for_user(self, user_id: int) -> list[MedicationRecord]: ...
    async def find_by_rxcui(self, user_id: int, rxcui: str) -> MedicationRecord | None: ...
    async def get(self, user_id: int, medication_id: int) -> MedicationRecord | None: ...
    async def add(
        self,
        user_id: int,
        rxcui: str,
        drug_name: str,
        base_names: list[str],
        dose_form_group_names: list[str],
    ) -> MedicationRecord: ...
    async def delete(self, medication_id: int) -> None: ...


class InMemoryMedicationStore:
    """Thread-safe in-memory medication store."""

    def __init__(self):
        self._records: dict[int, MedicationRecord] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def list_for_user(self, user_id: int) -> list[MedicationRecord]:
        async with self._lock:
            return [r for r in self._records.values() if r.user_id == user_id]

    async def find_by_rxcui(self, user_id: int, rxcui: str) -> MedicationRecord | None:
        async with self._lock:
            for record in self._records.values():
                if record.user_id == user_id and record.rxcui == rxcui:
                    return record
            return None

    async def get(self, user_id: int, medication_id: int) -> MedicationRecord | None:
        async with self._lock:
            record = self._records.get(medication_id)
            if record is None or record.user_id != user_id:
                return None
            return record

    async def add(
        self,
        user_id: int,
        rxcui: str,
        drug_name: str,
        base_names: list[str],
        dose_form_group_names: list[str],
    ) -> MedicationRecord:
        async with self._lock:
            record = MedicationRecord(
                id=next(self._ids),
                user_id=user_id,
                rxcui=rxcui,
                drug_name=drug_name,
                base_names=list(base_names),
                dose_form_group_names=list(dose_form_group_names),
            )
            self._records[record.id] = record
            return record

    async def delete(self, medication_id: int) -> None:
        async with self._lock:
            self._records.pop(medication_id, None)

    def size(self) -> int:
        """Return number of stored medications."""
        return len(self._records)


def validate_drug_name(name: str | None) -> str:
    """Check a drug search term is a string of 2 to 255 characters."""
    if not isinstance(name, str) or not name:
        raise MedicationValidationError(
            "The drug name field is required.",
            {"drug_name": ["The drug name field is required."]},
        )
    if not DRUG_NAME_MIN_LENGTH <= len(name) <= DRUG_NAME_MAX_LENGTH:
        message = (
            f"The drug name must be between {DRUG_NAME_MIN_LENGTH} "
            f"and {DRUG_NAME_MAX_LENGTH} characters."
        )
        raise MedicationValidationError(message, {"drug_name": [message]})
    return name


class MedicationService:
    """Maintains users' medication lists using RxNorm as the source of drug data."""

    def __init__(
        self,
        rxnorm: RxNormService | None = None,
        store: MedicationStore | None = None,
    ):
        self.rxnorm = rxnorm or RxNormService()
        self.store = store or InMemoryMedicationStore()

    async def search_drugs(self, drug_name: str) -> list[DrugSummary]:
        """
        Search drugs a user can add, after checking the search term.

        Raises:
            MedicationValidationError: drug_name is missing or outside 2..255 characters.
        """
        return await self.rxnorm.search_drugs(validate_drug_name(drug_name))

    async def list_medications(self, user_id: int) -> list[MedicationRecord]:
        """Return the user's medications in the order they were added."""
        return await self.store.list_for_user(user_id)

    async def add_medication(self, user_id: int, rxcui: str) -> MedicationRecord:
        """
        Validate an RxCUI, look up its details, and save it to the user's list.

        Args:
            user_id: Owner of the medication list
            rxcui: RxNorm concept identifier to add

        Returns:
            The newly stored MedicationRecord.

        Raises:
            MedicationValidationError: rxcui is missing.
            InvalidRxcuiError: RxNorm reports the rxcui as unknown or inactive.
            DuplicateMedicationError: The user already has this rxcui.
            DrugDetailsUnavailableError: RxNorm details could not be fetched.
        """
        if not isinstance(rxcui, str) or not rxcui.strip():
            raise MedicationValidationError(
                "The rxcui field is required.",
                {"rxcui": ["The rxcui field is required."]},
            )

        if not await self.rxnorm.validate_rxcui(rxcui):
            raise InvalidRxcuiError(
                "Invalid RXCUI. The drug does not exist or is not active.",
                {"rxcui": ["The provided RXCUI is invalid or inactive."]},
            )

        existing = await self.store.find_by_rxcui(user_id, rxcui)
        if existing is not None:
            raise DuplicateMedicationError(
                "This medication is already in your list", existing
            )

        details = await self.rxnorm.get_drug_details(rxcui)
        if details is None:
            logger.error(f"Drug details unavailable for rxcui '{rxcui}'")
            raise DrugDetailsUnavailableError(
                "Unable to retrieve drug details from RxNorm"
            )

        record = await self.store.add(
            user_id=user_id,
            rxcui=details.rxcui,
            drug_name=details.name,
            base_names=list(details.base_names),
            dose_form_group_names=list(details.dose_form_group_names),
        )
        logger.info(f"Added rxcui '{rxcui}' to medication list of user {user_id}")
        return record

    async def remove_medication(self, user_id: int, medication_id: int) -> None:
        """Remove a medication from the user's list."""
        record = await self.store.get(user_id, medication_id)
        if record is None:
            raise MedicationNotFoundError("Medication not found in your list")
        await self.store.delete(record.id)
