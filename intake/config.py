"""
Process configuration read from environment variables.
"""

import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class IntakeSettings(BaseModel):
    temporal_endpoint: str = "temporal:7233"
    temporal_namespace: str = "default"
    task_queue: str = "intake-task-queue"

    database_url: Optional[str] = None

    openphone_api_key: str = ""
    openphone_from_number: str = ""

    elevenlabs_api_key: str = ""
    elevenlabs_phone_number_id: str = ""
    elevenlabs_intake_agent_id: str = ""
    elevenlabs_provider_agent_id: Optional[str] = None

    humblefax_access_key: str = ""
    humblefax_secret_key: str = ""

    mailgun_api_key: str = ""
    mailgun_domain: str = ""
    mailgun_from_email: str = ""

    opensign_base_url: str = "https://app.opensignlabs.com/api/v1"
    opensign_api_token: str = ""
    opensign_template_id: str = ""

    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "IntakeSettings":
        env = os.environ if environ is None else environ
        values = {
            "temporal_endpoint": env.get("TEMPORAL_ENDPOINT"),
            "temporal_namespace": env.get("TEMPORAL_NAMESPACE"),
            "task_queue": env.get("TEMPORAL_TASK_QUEUE"),
            "database_url": env.get("DATABASE_URL"),
            "openphone_api_key": env.get("OPENPHONE_API_KEY"),
            "openphone_from_number": env.get("OPENPHONE_FROM_NUMBER"),
            "elevenlabs_api_key": env.get("ELEVENLABS_API_KEY"),
            "elevenlabs_phone_number_id": env.get(
                "ELEVENLABS_PHONE_NUMBER_ID"
            ),
            "elevenlabs_intake_agent_id": env.get(
                "ELEVENLABS_INTAKE_AGENT_ID"
            ),
            "elevenlabs_provider_agent_id": env.get(
                "ELEVENLABS_PROVIDER_AGENT_ID"
            ),
            "humblefax_access_key": env.get("HUMBLEFAX_ACCESS_KEY"),
            "humblefax_secret_key": env.get("HUMBLEFAX_SECRET_KEY"),
            "mailgun_api_key": env.get("MAILGUN_API_KEY"),
            "mailgun_domain": env.get("MAILGUN_DOMAIN"),
            "mailgun_from_email": env.get("MAILGUN_FROM_EMAIL"),
            "opensign_base_url": env.get("OPENSIGN_BASE_URL"),
            "opensign_api_token": env.get("OPENSIGN_API_TOKEN"),
            "opensign_template_id": env.get("OPENSIGN_TEMPLATE_ID"),
            "anthropic_api_key": env.get("ANTHROPIC_API_KEY"),
            "anthropic_model": env.get("ANTHROPIC_MODEL"),
        }
        # Unset variables fall back to the field defaults.
        return cls(**{k: v for k, v in values.items() if v})


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get(
        "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    logging.basicConfig(level=numeric_level, format=log_format, force=True)
    logger.info(
        "Logging configured",
        extra={"log_level": log_level, "numeric_level": numeric_level},
    )
