"""
Durable orchestration of legal-intake cases: patient outreach, provider
verification and medical records retrieval on Temporal.
"""
