"""
NPI registry implementation of ProviderRegistryRepository.

Searches the public CMS NPPES registry in three passes, stopping at the
first that returns anything: an exact individual search, an organization
search, then a prefix-wildcard search on the names.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from intake.domain import (
    ProviderSearchCriteria,
    RegistryCandidate,
    RegistryLookupResult,
)
from intake.errors import IntakeError
from intake.repositories import ProviderRegistryRepository
from intake.repos.http.base import PlatformClient

logger = logging.getLogger(__name__)

NPI_API_URL = "https://npiregistry.cms.hhs.gov/api/"
NPI_API_VERSION = "2.1"
SEARCH_LIMIT = 50
MAX_CANDIDATES = 5
MIN_MATCH_SCORE = 3

STATE_CODES = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
    "california": "CA", "colorado": "CO", "connecticut": "CT",
    "delaware": "DE", "florida": "FL", "georgia": "GA", "hawaii": "HI",
    "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA",
    "kansas": "KS", "kentucky": "KY", "louisiana": "LA", "maine": "ME",
    "maryland": "MD", "massachusetts": "MA", "michigan": "MI",
    "minnesota": "MN", "mississippi": "MS", "missouri": "MO",
    "montana": "MT", "nebraska": "NE", "nevada": "NV",
    "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM",
    "new york": "NY", "north carolina": "NC", "north dakota": "ND",
    "ohio": "OH", "oklahoma": "OK", "oregon": "OR", "pennsylvania": "PA",
    "rhode island": "RI", "south carolina": "SC", "south dakota": "SD",
    "tennessee": "TN", "texas": "TX", "utah": "UT", "vermont": "VT",
    "virginia": "VA", "washington": "WA", "west virginia": "WV",
    "wisconsin": "WI", "wyoming": "WY", "district of columbia": "DC",
    "puerto rico": "PR",
}  # fmt: skip


def normalize_state(state: Optional[str]) -> Optional[str]:
    if not state:
        return None
    state = state.strip()
    if len(state) == 2:
        return state.upper()
    return STATE_CODES.get(state.lower(), state)


def wildcard(term: str) -> str:
    """Keep roughly the first three quarters of a name and add ``*``."""
    if len(term) < 2 or "*" in term:
        return term
    return f"{term[: max(2, int(len(term) * 0.75))]}*"


def _location(result: Dict[str, Any]) -> Dict[str, Any]:
    addresses = result.get("addresses") or []
    for address in addresses:
        if address.get("address_purpose") == "LOCATION":
            return address
    return addresses[0] if addresses else {}


def to_candidate(result: Dict[str, Any]) -> RegistryCandidate:
    basic = result.get("basic") or {}
    address = _location(result)
    taxonomy = next(
        (t for t in result.get("taxonomies") or [] if t.get("primary")), {}
    )
    organization = basic.get("organization_name")
    name = organization or " ".join(
        p for p in (basic.get("first_name"), basic.get("last_name")) if p
    )
    street = " ".join(
        p for p in (address.get("address_1"), address.get("address_2")) if p
    )
    return RegistryCandidate(
        npi=str(result.get("number", "")),
        name=name,
        organization=organization,
        specialty=taxonomy.get("desc"),
        address=(
            f"{street}, {address.get('city', '')}, "
            f"{address.get('state', '')} {address.get('postal_code', '')}"
            if address
            else None
        ),
        city=address.get("city"),
        state=address.get("state"),
        phone=address.get("telephone_number"),
        fax_number=address.get("fax_number"),
    )


def match_score(
    result: Dict[str, Any], criteria: ProviderSearchCriteria
) -> int:
    basic = result.get("basic") or {}
    address = _location(result)
    score = 0
    if criteria.first_name and (
        (basic.get("first_name") or "").lower() == criteria.first_name.lower()
    ):
        score += 3
    if criteria.last_name and (
        (basic.get("last_name") or "").lower() == criteria.last_name.lower()
    ):
        score += 3
    if criteria.city and (
        (address.get("city") or "").lower() == criteria.city.lower()
    ):
        score += 2
    state = normalize_state(criteria.state)
    if state and (address.get("state") or "").upper() == state:
        score += 2
    if address.get("fax_number"):
        score += 1
    return score


def select_best_match(
    results: List[Dict[str, Any]], criteria: ProviderSearchCriteria
) -> Dict[str, Any]:
    best = max(results, key=lambda r: match_score(r, criteria))
    if match_score(best, criteria) >= MIN_MATCH_SCORE:
        return best
    return results[0]


class NPIRegistryRepository(PlatformClient, ProviderRegistryRepository):
    platform = "npi"

    def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
        super().__init__(client)

    async def lookup_provider_registry(
        self, criteria: ProviderSearchCriteria
    ) -> RegistryLookupResult:
        if not (criteria.last_name or criteria.organization):
            return RegistryLookupResult()
        try:
            results = await self._search(criteria)
        except IntakeError as e:
            logger.warning(
                "NPI lookup failed",
                extra={"criteria": criteria.model_dump(), "error": str(e)},
            )
            return RegistryLookupResult()

        if not results:
            logger.info(
                "No NPI match", extra={"criteria": criteria.model_dump()}
            )
            return RegistryLookupResult()

        best = to_candidate(select_best_match(results, criteria))
        return RegistryLookupResult(
            best_match=best,
            candidates=[to_candidate(r) for r in results[:MAX_CANDIDATES]],
        )

    async def _search(
        self, criteria: ProviderSearchCriteria
    ) -> List[Dict[str, Any]]:
        state = normalize_state(criteria.state)
        strategies: List[Dict[str, Optional[str]]] = [
            {
                "enumeration_type": "NPI-1",
                "first_name": criteria.first_name,
                "last_name": criteria.last_name,
                "city": criteria.city,
                "state": state,
            }
        ]
        if criteria.organization:
            strategies.append(
                {
                    "enumeration_type": "NPI-2",
                    "organization_name": criteria.organization,
                    "state": state,
                }
            )
        strategies.append(
            {
                "enumeration_type": "NPI-1",
                "first_name": wildcard(criteria.first_name or "") or None,
                "last_name": wildcard(criteria.last_name or "") or None,
                "state": state,
            }
        )

        for params in strategies:
            query = {k: v for k, v in params.items() if v}
            if not any(
                k in query
                for k in ("first_name", "last_name", "organization_name")
            ):
                continue
            query.update(version=NPI_API_VERSION, limit=str(SEARCH_LIMIT))
            response = await self.request("GET", NPI_API_URL, params=query)
            results = response.json().get("results") or []
            if results:
                return results
        return []
