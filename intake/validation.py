"""
Runtime validation that injected repositories satisfy their protocols.

Use cases call the ``ensure_*`` helpers at construction time so that a
misconfigured worker or a workflow proxy missing a method fails early,
before any side effect has happened.
"""

import logging
from typing import Any, Type, TypeVar

logger = logging.getLogger(__name__)

P = TypeVar("P")


class RepositoryValidationError(Exception):
    """Raised when repository contract validation fails"""

    pass


def validate_repository_protocol(
    repository: object, protocol: Type[P]
) -> None:
    """
    Validate that a repository implementation satisfies a protocol contract.

    Uses isinstance() against @runtime_checkable protocols, which checks
    that every protocol member is present.

    Raises:
        RepositoryValidationError: If validation fails
    """
    if not isinstance(repository, protocol):
        logger.error(
            "Repository protocol validation failed",
            extra={
                "repository_type": type(repository).__name__,
                "protocol_name": protocol.__name__,
            },
        )
        raise RepositoryValidationError(
            f"Repository {type(repository).__name__} does not implement "
            f"{protocol.__name__} protocol. Missing or incorrect methods."
        )

    logger.debug(
        "Repository protocol validation passed",
        extra={
            "repository_type": type(repository).__name__,
            "protocol_name": protocol.__name__,
        },
    )


def ensure_repository_protocol(repository: object, protocol: Type[P]) -> P:
    """Validate and return a repository with proper type annotation."""
    validate_repository_protocol(repository, protocol)
    return repository  # type: ignore[return-value]


def ensure_case_repository(repo: object) -> Any:
    """Ensure an object satisfies the CaseRepository protocol"""
    from intake.repositories import CaseRepository

    return ensure_repository_protocol(repo, CaseRepository)  # type: ignore[type-abstract]


def ensure_instance_registry(repo: object) -> Any:
    """Ensure an object satisfies the InstanceRegistry protocol"""
    from intake.repositories import InstanceRegistry

    return ensure_repository_protocol(repo, InstanceRegistry)  # type: ignore[type-abstract]


def ensure_provider_repository(repo: object) -> Any:
    """Ensure an object satisfies the ProviderRepository protocol"""
    from intake.repositories import ProviderRepository

    return ensure_repository_protocol(repo, ProviderRepository)  # type: ignore[type-abstract]


def ensure_records_request_repository(repo: object) -> Any:
    """Ensure an object satisfies the RecordsRequestRepository protocol"""
    from intake.repositories import RecordsRequestRepository

    return ensure_repository_protocol(repo, RecordsRequestRepository)  # type: ignore[type-abstract]


def ensure_call_record_repository(repo: object) -> Any:
    """Ensure an object satisfies the CallRecordRepository protocol"""
    from intake.repositories import CallRecordRepository

    return ensure_repository_protocol(repo, CallRecordRepository)  # type: ignore[type-abstract]


def ensure_messaging_repository(repo: object) -> Any:
    """Ensure an object satisfies the MessagingRepository protocol"""
    from intake.repositories import MessagingRepository

    return ensure_repository_protocol(repo, MessagingRepository)  # type: ignore[type-abstract]


def ensure_voice_repository(repo: object) -> Any:
    """Ensure an object satisfies the VoiceRepository protocol"""
    from intake.repositories import VoiceRepository

    return ensure_repository_protocol(repo, VoiceRepository)  # type: ignore[type-abstract]


def ensure_signature_repository(repo: object) -> Any:
    """Ensure an object satisfies the SignatureRepository protocol"""
    from intake.repositories import SignatureRepository

    return ensure_repository_protocol(repo, SignatureRepository)  # type: ignore[type-abstract]


def ensure_fax_repository(repo: object) -> Any:
    """Ensure an object satisfies the FaxRepository protocol"""
    from intake.repositories import FaxRepository

    return ensure_repository_protocol(repo, FaxRepository)  # type: ignore[type-abstract]


def ensure_email_repository(repo: object) -> Any:
    """Ensure an object satisfies the EmailRepository protocol"""
    from intake.repositories import EmailRepository

    return ensure_repository_protocol(repo, EmailRepository)  # type: ignore[type-abstract]


def ensure_provider_registry_repository(repo: object) -> Any:
    """Ensure an object satisfies the ProviderRegistryRepository protocol"""
    from intake.repositories import ProviderRegistryRepository

    return ensure_repository_protocol(repo, ProviderRegistryRepository)  # type: ignore[type-abstract]


def ensure_transcript_analyzer(repo: object) -> Any:
    """Ensure an object satisfies the TranscriptAnalyzer protocol"""
    from intake.repositories import TranscriptAnalyzer

    return ensure_repository_protocol(repo, TranscriptAnalyzer)  # type: ignore[type-abstract]
