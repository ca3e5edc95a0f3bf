"""
Shared activity name constants for the intake domain.

Both activities.py (worker side) and proxies.py (workflow side) import these
bases. Keeping them in their own module lets the workflow proxies avoid
importing activities.py, whose transitive imports (httpx, asyncpg,
anthropic) are not allowed inside the workflow sandbox.

Naming pattern: {domain}.{repo_name}.{backend}; the method name is
appended to form the full activity name.
"""

CASE_ACTIVITY_BASE = "intake.case_repo.store"
INSTANCE_REGISTRY_ACTIVITY_BASE = "intake.instance_registry.store"
PROVIDER_ACTIVITY_BASE = "intake.provider_repo.store"
RECORDS_REQUEST_ACTIVITY_BASE = "intake.records_request_repo.store"
CALL_RECORD_ACTIVITY_BASE = "intake.call_record_repo.store"
MESSAGING_ACTIVITY_BASE = "intake.messaging_repo.openphone"
VOICE_ACTIVITY_BASE = "intake.voice_repo.elevenlabs"
SIGNATURE_ACTIVITY_BASE = "intake.signature_repo.opensign"
FAX_ACTIVITY_BASE = "intake.fax_repo.humblefax"
EMAIL_ACTIVITY_BASE = "intake.email_repo.mailgun"
PROVIDER_REGISTRY_ACTIVITY_BASE = "intake.provider_registry_repo.npi"
TRANSCRIPT_ANALYZER_ACTIVITY_BASE = "intake.transcript_analyzer.anthropic"


__all__ = [
    "CASE_ACTIVITY_BASE",
    "INSTANCE_REGISTRY_ACTIVITY_BASE",
    "PROVIDER_ACTIVITY_BASE",
    "RECORDS_REQUEST_ACTIVITY_BASE",
    "CALL_RECORD_ACTIVITY_BASE",
    "MESSAGING_ACTIVITY_BASE",
    "VOICE_ACTIVITY_BASE",
    "SIGNATURE_ACTIVITY_BASE",
    "FAX_ACTIVITY_BASE",
    "EMAIL_ACTIVITY_BASE",
    "PROVIDER_REGISTRY_ACTIVITY_BASE",
    "TRANSCRIPT_ANALYZER_ACTIVITY_BASE",
]
