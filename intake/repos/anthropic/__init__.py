from intake.repos.anthropic.transcript_analyzer import (
    AnthropicTranscriptAnalyzer,
)

__all__ = ["AnthropicTranscriptAnalyzer"]
