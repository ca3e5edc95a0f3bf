"""
Prompt templates for transcript analysis.
"""

EXTRACT_PROVIDERS_PROMPT = """\
Analyze this intake call transcript and extract ALL healthcare providers
mentioned. For each provider, extract as much information as possible.

TRANSCRIPT:
{transcript}

Return a JSON array with one object per provider:

[
  {{
    "name": "<full name as mentioned, e.g. 'Dr. John Smith'>",
    "organization": "<hospital or healthcare system, or null>",
    "specialty": "<medical specialty, or null>",
    "city": "<city, or null>",
    "state": "<state, or null>",
    "phone": "<phone number, or null>",
    "fax_number": "<fax number, or null>",
    "email": "<email address, or null>"
  }}
]

Rules:
1. Return ONLY the raw JSON array, starting with [ and ending with ].
2. Use null for anything not mentioned; never invent contact details.
3. Consolidate repeated mentions of the same provider into one entry.
4. When a doctor is named together with the hospital they work at, put
   the hospital in "organization" instead of adding a separate entry.
"""

ANALYZE_CASE_PROMPT = """\
You are reviewing a potential medical malpractice case from the transcript
of an intake call.

TRANSCRIPT:
{transcript}

Score the case on each scale from 0 (none) to 10 (severe or very strong)
and give a one or two sentence rationale per scale. Return ONLY a JSON
object with this structure:

{{
  "summary": "<three to five sentence summary of the case>",
  "core_scales": {{
    "economic_harm": {{"score": <0-10>, "rationale": "<text>"}},
    "pain_and_suffering": {{"score": <0-10>, "rationale": "<text>"}},
    "causation_strength": {{"score": <0-10>, "rationale": "<text>"}},
    "standard_of_care_deviation": {{"score": <0-10>, "rationale": "<text>"}}
  }}
}}
"""
