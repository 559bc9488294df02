# ABOUTME: Cached drug lookups over the RxNav API.
# ABOUTME: Normalizes nested, inconsistently shaped RxNav JSON into flat drug records.

import logging
from dataclasses import dataclass, asdict, field
from typing import Any, Iterable

from src.clients.rxnorm import RxNormClient
from src.config import config
from src.services.cache import CacheBackend, InMemoryCache, lookup_key
from src.services.http import HTTPClientManager

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = ("Active", "Remapped")


@dataclass(frozen=True)
class HistoryAttributes:
    """Ingredient and dose form names pulled from an RxCUI history status."""

    base_names: tuple[str, ...] = ()
    dose_form_group_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class DrugSummary:
    """Flat drug record built from RxNav search or property lookups."""

    rxcui: str
    name: str
    base_names: tuple[str, ...] = field(default_factory=tuple)
    dose_form_group_names: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        data = asdict(self)
        data["base_names"] = list(self.base_names)
        data["dose_form_group_names"] = list(self.dose_form_group_names)
        return data


def as_sequence(value: Any) -> list[Any]:
    """RxNav returns a bare object where one item exists and an array otherwise."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def unique(values: Iterable[str]) -> tuple[str, ...]:
    """Drop exact duplicates, keeping first-seen order."""
    return tuple(dict.fromkeys(values))


def dig(document: Any, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a step is missing."""
    current = document
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def parse_history_attributes(document: Any) -> HistoryAttributes:
    """
    Extract base names and dose form group names from a historystatus.json payload.

    Args:
        document: Decoded historystatus.json body

    Returns:
        HistoryAttributes with deduplicated names; empty when attributes are missing.
    """
    attributes = dig(document, "rxcuiStatusHistory", "attributes")
    if not isinstance(attributes, dict):
        return HistoryAttributes()

    base_names = [
        item["baseName"]
        for item in as_sequence(attributes.get("ingredientAndStrength"))
        if isinstance(item, dict) and isinstance(item.get("baseName"), str)
    ]
    dose_form_group_names = [
        item["doseFormGroupName"]
        for item in as_sequence(attributes.get("doseFormGroupConcept"))
        if isinstance(item, dict) and isinstance(item.get("doseFormGroupName"), str)
    ]

    return HistoryAttributes(
        base_names=unique(base_names),
        dose_form_group_names=unique(dose_form_group_names),
    )


def select_concepts(document: Any, tty: str, limit: int) -> list[dict[str, Any]]:
    """Return the first `limit` concepts of the first concept group of type `tty`."""
    groups = as_sequence(dig(document, "drugGroup", "conceptGroup"))
    group = next(
        (g for g in groups if isinstance(g, dict) and g.get("tty") == tty),
        None,
    )
    if group is None:
        return []

    # The window is fixed before unusable entries are dropped
    concepts = as_sequence(group.get("conceptProperties"))[:limit]
    return [c for c in concepts if isinstance(c, dict) and c.get("rxcui")]


def is_active_status(document: Any) -> bool:
    """True when status.json reports the concept as Active or Remapped."""
    return dig(document, "rxcuiStatus", "status") in ACTIVE_STATUSES


def is_unsuppressed(document: Any) -> bool:
    """True when properties.json reports suppress=N."""
    properties = dig(document, "properties")
    if not isinstance(properties, dict):
        return False
    return properties.get("suppress", "Y") == "N"


class RxNormService:
    """Cache-aside drug lookups: search, history attributes, validation and details."""

    def __init__(
        self,
        client: RxNormClient | None = None,
        cache: CacheBackend | None = None,
        ttl: int | None = None,
        search_limit: int | None = None,
        search_tty: str | None = None,
        validation_mode: str | None = None,
        cache_failures: bool | None = None,
    ):
        self.client = client or RxNormClient()
        self._cache = cache or InMemoryCache(max_size=config.CACHE_MAX_SIZE)
        self._ttl = ttl if ttl is not None else config.RXNORM_CACHE_TTL
        self._search_limit = search_limit or config.RXNORM_SEARCH_LIMIT
        self._search_tty = search_tty or config.RXNORM_SEARCH_TTY
        self._validation_mode = validation_mode or config.RXCUI_VALIDATION_MODE
        self._cache_failures = (
            cache_failures if cache_failures is not None else config.CACHE_FAILED_LOOKUPS
        )

    async def search_drugs(self, name: str) -> list[DrugSummary]:
        """
        Search drugs by name, enriching each match with history attributes.

        Only the first concept group of the configured term type (SBD by default)
        is used, truncated to the search limit in upstream order. An upstream
        failure returns an empty list and is never cached; a successful empty
        answer is cached for the full TTL.

        Args:
            name: Drug name, used verbatim for the query and the cache key

        Returns:
            List of DrugSummary objects, possibly empty.
        """
        results = await self._cache.get_or_compute(
            lookup_key("search", name),
            self._ttl,
            lambda: self._search_upstream(name),
        )
        return list(results) if results is not None else []

    async def _search_upstream(self, name: str) -> tuple[DrugSummary, ...] | None:
        document = await self.client.fetch_drugs_by_name(name)
        if document is None:
            return None

        summaries = []
        # One enrichment call at a time, in upstream order
        for concept in select_concepts(document, self._search_tty, self._search_limit):
            rxcui = str(concept["rxcui"])
            history = await self.get_rxcui_history_status(rxcui)
            summaries.append(
                DrugSummary(
                    rxcui=rxcui,
                    name=concept.get("name", ""),
                    base_names=history.base_names,
                    dose_form_group_names=history.dose_form_group_names,
                )
            )

        logger.debug(f"Search '{name}' matched {len(summaries)} {self._search_tty} drugs")
        return tuple(summaries)

    async def get_rxcui_history_status(self, rxcui: str) -> HistoryAttributes:
        """Return ingredient base names and dose form groups for an RxCUI."""
        attributes = await self._cache.get_or_compute(
            lookup_key("history", rxcui),
            self._ttl,
            lambda: self._history_upstream(rxcui),
        )
        return attributes if attributes is not None else HistoryAttributes()

    async def _history_upstream(self, rxcui: str) -> HistoryAttributes | None:
        document = await self.client.fetch_history_status(rxcui)
        if document is None:
            return HistoryAttributes() if self._cache_failures else None
        return parse_history_attributes(document)

    async def validate_rxcui(self, rxcui: str) -> bool:
        """Check whether an RxCUI exists and is currently usable."""
        valid = await self._cache.get_or_compute(
            lookup_key("validate", rxcui),
            self._ttl,
            lambda: self._validate_upstream(rxcui),
        )
        return bool(valid)

    async def _validate_upstream(self, rxcui: str) -> bool | None:
        if self._validation_mode == "suppress":
            document = await self.client.fetch_properties(rxcui)
            check = is_unsuppressed
        else:
            document = await self.client.fetch_status(rxcui)
            check = is_active_status

        if document is None:
            return False if self._cache_failures else None
        return check(document)

    async def get_drug_details(self, rxcui: str) -> DrugSummary | None:
        """
        Build a DrugSummary from properties.json plus history attributes.

        Not cached at this level; the history lookup is.

        Returns:
            DrugSummary, or None when properties are unavailable.
        """
        document = await self.client.fetch_properties(rxcui)
        if document is None:
            return None

        properties = dig(document, "properties")
        if not isinstance(properties, dict):
            logger.error(f"RxNav properties missing for '{rxcui}'")
            return None

        name = properties.get("name")
        history = await self.get_rxcui_history_status(rxcui)
        return DrugSummary(
            rxcui=rxcui,
            name=name if name is not None else "Unknown",
            base_names=history.base_names,
            dose_form_group_names=history.dose_form_group_names,
        )


# Shared instance wired to the pooled HTTP client
_rxnorm_service: RxNormService | None = None


def get_rxnorm_service() -> RxNormService:
    """Get or create the shared RxNormService."""
    global _rxnorm_service
    if _rxnorm_service is None:
        _rxnorm_service = RxNormService(
            client=RxNormClient(http_manager=HTTPClientManager.get_instance_sync())
        )
        logger.info("RxNorm service initialized with pooled HTTP client")
    return _rxnorm_service


def reset_rxnorm_service() -> None:
    """Reset the shared instance (for testing)."""
    global _rxnorm_service
    _rxnorm_service = None
