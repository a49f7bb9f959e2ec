"""
Pattern Definitions for DocuIntel

Regex tables, prompt templates and canned texts used across the engine.
Modules import from here instead of defining patterns inline.
"""

import re

# =============================================================================
# Clause Segmentation
# =============================================================================

# Applied in order; each pass refines the segments of the previous one.
SEGMENT_BOUNDARY_PATTERNS = [
    # Split before "Section 4", "Article 2", "Clause 7" lines
    re.compile(r"(?=\n\s*(?:Section|Article|Clause)\s+\d+)", re.IGNORECASE),
    # Split before "12. Termination" style lines
    re.compile(r"(?=\n\s*\d+\.\s+[A-Z])"),
    # Blank-line runs (consumed)
    re.compile(r"\n\s*\n+"),
]

# First capitalized run after an optional label/number prefix
HEADING_PATTERN = re.compile(r"^(?:Section|Article|Clause)?\s*\d*\.?\s*([A-Z][A-Za-z\s&]+)")

DEFAULT_HEADING = "Unnamed Section"

# =============================================================================
# Clause Classification (ordered: first match wins)
# =============================================================================

CLAUSE_TYPE_PATTERNS = [
    ("indemnification", re.compile(r"indemnif|hold harmless|defend and indemnify", re.IGNORECASE)),
    ("liability", re.compile(r"liability|limitation|cap|damages", re.IGNORECASE)),
    ("termination", re.compile(r"terminat|cancel|expir|renew", re.IGNORECASE)),
    ("confidentiality", re.compile(r"confidential|proprietary|non-disclosure|nda", re.IGNORECASE)),
    ("intellectual_property", re.compile(r"intellectual property|ip rights|copyright|patent|trademark", re.IGNORECASE)),
    ("payment", re.compile(r"payment|invoice|fee|compensation|pricing", re.IGNORECASE)),
    ("data_protection", re.compile(r"data protection|gdpr|ccpa|privacy|personal data", re.IGNORECASE)),
    ("governing_law", re.compile(r"governing law|jurisdiction|dispute|arbitration", re.IGNORECASE)),
    ("force_majeure", re.compile(r"force majeure|act of god|unforeseeable", re.IGNORECASE)),
    ("warranty", re.compile(r"warranty|warrant|guarantee|representation", re.IGNORECASE)),
]

GENERAL_CLAUSE_TYPE = "general"

CLAUSE_TYPES = [name for name, _ in CLAUSE_TYPE_PATTERNS] + [GENERAL_CLAUSE_TYPE]

# =============================================================================
# Citation Markers
# =============================================================================

CITATION_MARKER_PATTERN = re.compile(r"\[(\d+)\]")

# =============================================================================
# LLM Prompts
# =============================================================================

GROUNDED_SYSTEM_PROMPT = """You are DocuIntel, an expert legal AI assistant.
Answer the user's question based ONLY on the provided context.
If the context doesn't contain enough information, say so.
Always cite your sources using [1], [2], etc.

CONTEXT:
{context}"""

# Per-mode streaming parameters
STREAM_PROMPTS = {
    "analyze": {
        "system": """You are an expert legal AI assistant specializing in contract analysis.
Analyze the provided contract clause and provide:
1. Risk Assessment (score 0-100, severity: low/medium/high/critical)
2. Key Issues identified
3. Recommendations for improvement
4. Suggested redline modifications

Format your response in a clear, structured manner.""",
        "temperature": 0.3,
        "max_tokens": 2000,
        "default_input": "Analyze this sample indemnification clause...",
    },
    "chat": {
        "system": (
            "You are DocuIntel, a helpful legal AI assistant. Provide clear, accurate "
            "answers about legal documents and contracts. When numbered context passages "
            "are supplied, cite them using [1], [2], etc."
        ),
        "temperature": 0.7,
        "max_tokens": 1000,
        "default_input": "",
    },
    "summarize": {
        "system": (
            "Summarize the following legal document concisely, highlighting key terms, "
            "obligations, and potential risks."
        ),
        "temperature": 0.3,
        "max_tokens": 1500,
        "default_input": "",
    },
}

# =============================================================================
# Canned Answers
# =============================================================================

NO_CONTEXT_ANSWER = (
    "No relevant passages were found in the indexed documents, so this question "
    "cannot be answered from the available sources."
)

FALLBACK_ANSWER = (
    "Based on the provided documents, I found {count} relevant sections. "
    "However, I encountered an issue generating a detailed response. "
    "Please try again or review the source documents directly."
)

MOCK_ANALYSIS = """## Contract Analysis Report

### Risk Assessment
- **Overall Risk Score**: 75/100 (High)
- **Severity**: High

### Key Issues Identified

1. **Unlimited Liability Clause**
   - The indemnification clause lacks a liability cap
   - Potential exposure to unlimited financial risk

2. **Broad Termination Rights**
   - One-sided termination provisions favor the other party
   - Consider negotiating mutual termination rights

3. **Intellectual Property Assignment**
   - All IP created transfers to client
   - May want to retain license for internal use

### Recommendations

1. Add a liability cap (e.g., 12 months of fees)
2. Negotiate mutual termination rights with 60-day notice
3. Request carve-out for pre-existing IP

### Suggested Redlines

```diff
- The Supplier's liability under this Agreement shall be unlimited.
+ The Supplier's liability shall be limited to the total fees paid in the preceding 12 months.
```

---
*Analysis generated by DocuIntel AI (Demo Mode)*"""
