"""
httpx clients for the external platforms a case talks to.

Every client maps network problems and 5xx answers to ``TransportFailure``
(retryable) and 4xx answers to ``PlatformRejection`` (never retried).
"""

from intake.repos.http.elevenlabs import (
    ElevenLabsVoiceRepository,
    parse_post_call_webhook,
)
from intake.repos.http.humblefax import HumbleFaxRepository
from intake.repos.http.mailgun import MailgunEmailRepository
from intake.repos.http.npi import NPIRegistryRepository
from intake.repos.http.openphone import OpenPhoneMessagingRepository
from intake.repos.http.opensign import OpenSignSignatureRepository

__all__ = [
    "ElevenLabsVoiceRepository",
    "HumbleFaxRepository",
    "MailgunEmailRepository",
    "NPIRegistryRepository",
    "OpenPhoneMessagingRepository",
    "OpenSignSignatureRepository",
    "parse_post_call_webhook",
]
