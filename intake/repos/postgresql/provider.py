"""
PostgreSQL implementation of ProviderRepository.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from asyncpg import Connection, Pool

from intake.domain import (
    ExtractedProvider,
    Provider,
    VerificationRequest,
    VerificationResolution,
    VerificationState,
    VerificationStatus,
    provider_id_for,
)
from intake.repositories import ProviderRepository

logger = logging.getLogger(__name__)


class PostgreSQLProviderRepository(ProviderRepository):
    def __init__(self, pool: Pool):
        self.pool = pool
        logger.debug("Initialized PostgreSQLProviderRepository")

    async def save_providers(
        self, case_id: str, providers: List[ExtractedProvider]
    ) -> List[Provider]:
        saved = []
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                for extracted in providers:
                    provider = Provider(
                        provider_id=provider_id_for(case_id, extracted.name),
                        case_id=case_id,
                        **extracted.model_dump(),
                    )
                    await conn.execute(
                        """
                        INSERT INTO providers (
                            provider_id, case_id, verification_state,
                            provider_data
                        ) VALUES ($1, $2, $3, $4)
                        ON CONFLICT (provider_id) DO NOTHING
                        """,
                        provider.provider_id,
                        case_id,
                        provider.verification_state.value,
                        provider.model_dump_json(),
                    )
                    stored = await self._fetch_provider(
                        conn, provider.provider_id
                    )
                    saved.append(stored or provider)
        logger.info(
            "Providers saved", extra={"case_id": case_id, "count": len(saved)}
        )
        return saved

    async def get_provider(self, provider_id: str) -> Optional[Provider]:
        async with self.pool.acquire() as conn:
            return await self._fetch_provider(conn, provider_id)

    async def get_verified_providers(self, case_id: str) -> List[Provider]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT provider_data FROM providers
                WHERE case_id = $1 AND verification_state = $2
                ORDER BY provider_id
                """,
                case_id,
                VerificationState.VERIFIED.value,
            )
        return [Provider.model_validate_json(r["provider_data"]) for r in rows]

    async def create_verification_request(
        self, request: VerificationRequest
    ) -> VerificationRequest:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    SELECT request_data FROM verification_requests
                    WHERE verification_id = $1
                       OR (provider_id = $2 AND status = $3)
                    ORDER BY verification_id = $1 DESC
                    LIMIT 1
                    """,
                    request.verification_id,
                    request.provider_id,
                    VerificationStatus.PENDING.value,
                )
                if row is not None:
                    return VerificationRequest.model_validate_json(
                        row["request_data"]
                    )
                inserted = await conn.fetchrow(
                    """
                    INSERT INTO verification_requests (
                        verification_id, case_id, provider_id, status,
                        request_data
                    ) VALUES ($1, $2, $3, $4, $5)
                    ON CONFLICT (verification_id) DO NOTHING
                    RETURNING verification_id
                    """,
                    request.verification_id,
                    request.case_id,
                    request.provider_id,
                    request.status.value,
                    request.model_dump_json(),
                )
                if inserted is None:
                    # Created concurrently; the stored request wins
                    row = await conn.fetchrow(
                        """
                        SELECT request_data FROM verification_requests
                        WHERE verification_id = $1
                        """,
                        request.verification_id,
                    )
                    return VerificationRequest.model_validate_json(
                        row["request_data"]
                    )
                await self._update_provider(
                    conn,
                    request.provider_id,
                    verification_state=VerificationState.PENDING,
                )
        return request

    async def get_pending_verifications(
        self, case_id: str
    ) -> List[VerificationRequest]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT request_data FROM verification_requests
                WHERE case_id = $1 AND status = $2
                ORDER BY verification_id
                """,
                case_id,
                VerificationStatus.PENDING.value,
            )
        return [
            VerificationRequest.model_validate_json(r["request_data"])
            for r in rows
        ]

    async def resolve_verification(
        self, resolution: VerificationResolution
    ) -> Optional[VerificationRequest]:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    """
                    SELECT request_data FROM verification_requests
                    WHERE verification_id = $1 FOR UPDATE
                    """,
                    resolution.verification_id,
                )
                if row is None:
                    logger.warning(
                        "Resolution for unknown verification",
                        extra={"verification_id": resolution.verification_id},
                    )
                    return None
                request = VerificationRequest.model_validate_json(
                    row["request_data"]
                )
                if request.is_resolved:
                    return request

                contact = (
                    resolution.contact_info
                    or request.looked_up_contact
                    or request.extracted_contact
                )
                status = (
                    VerificationStatus.APPROVED
                    if resolution.approved
                    else VerificationStatus.REJECTED
                )
                resolved = request.model_copy(
                    update={
                        "status": status,
                        "verified_contact": (
                            contact if resolution.approved else None
                        ),
                        "resolved_by": resolution.resolved_by,
                        "resolved_at": datetime.now(timezone.utc),
                    }
                )
                await conn.execute(
                    """
                    UPDATE verification_requests
                    SET status = $2, request_data = $3
                    WHERE verification_id = $1
                    """,
                    resolved.verification_id,
                    status.value,
                    resolved.model_dump_json(),
                )

                if resolution.approved:
                    provider = await self._fetch_provider(
                        conn, request.provider_id
                    )
                    if provider is not None:
                        await self._update_provider(
                            conn,
                            request.provider_id,
                            verification_state=VerificationState.VERIFIED,
                            fax_number=contact.fax_number
                            or provider.fax_number,
                            email=contact.email or provider.email,
                            phone=contact.phone or provider.phone,
                        )
                else:
                    await self._update_provider(
                        conn,
                        request.provider_id,
                        verification_state=VerificationState.REJECTED,
                    )
        return resolved

    async def _fetch_provider(
        self, conn: Connection, provider_id: str
    ) -> Optional[Provider]:
        row = await conn.fetchrow(
            "SELECT provider_data FROM providers WHERE provider_id = $1",
            provider_id,
        )
        if row is None:
            return None
        return Provider.model_validate_json(row["provider_data"])

    async def _update_provider(
        self, conn: Connection, provider_id: str, **changes: object
    ) -> None:
        provider = await self._fetch_provider(conn, provider_id)
        if provider is None:
            return
        provider = provider.model_copy(update=changes)
        await conn.execute(
            """
            UPDATE providers
            SET verification_state = $2, provider_data = $3
            WHERE provider_id = $1
            """,
            provider_id,
            provider.verification_state.value,
            provider.model_dump_json(),
        )
