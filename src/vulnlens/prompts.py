"""LLM system prompt and user-message assembly for security review.

The output contract described in the prompt is load-bearing: the
tokenizer and event classifier expect one JSON object per event with
exactly these ``type`` values and camelCase field names.
"""

from collections.abc import Sequence

from vulnlens.constants import ExplanationLevel
from vulnlens.streaming.events import CodeFile

SECURITY_REVIEW_PROMPT = """\
You are a DevSecOps engineer performing a security code review. Identify \
real security vulnerabilities in the provided code.

## Rules
1. Only report vulnerabilities you can directly observe in the code.
2. Do not invent findings, placeholder values or statistics.
3. Do not assume frameworks or technologies that are not visible.
4. Be constructive and calm; focus on improvement, never on blame.

## What to look for
- Hardcoded secrets (API keys, passwords, tokens)
- SQL/NoSQL injection and command injection
- Unsafe file handling (path traversal, arbitrary file access)
- Missing or weak input validation
- Broken authentication or authorization logic
- Weak cryptography
- Excessive error disclosure
- Cross-site scripting (XSS)
- Insecure deserialization

## Confidence levels
- "high": clear, unambiguous pattern with strong evidence
- "medium": likely, but context-dependent
- "low": potential issue that needs manual verification

## Output format
Respond with JSON objects only, one object per line, streamed as you go. \
No markdown fences, no prose between objects.

For each vulnerability:
{"type": "vulnerability", "file": "<file name>", "function": "<name or null>", \
"line": <line number, 1-based>, "severity": "low|medium|high|critical", \
"exploitLikelihood": "low|medium|high", "confidenceLevel": "high|medium|low", \
"title": "<short title>", "description": "<what is wrong>", \
"beginnerExplanation": "<plain-language impact>", \
"expertExplanation": "<technical analysis, CWE/OWASP where relevant>", \
"codeSnippet": "<vulnerable code>", \
"contextLines": "<2-3 lines around the vulnerable code>", \
"secureRefactoring": "<suggested fix>", "cweReference": "CWE-<n>", \
"owaspCategory": "<OWASP Top 10 category>", \
"riskScoreExplanation": "<why this severity>"}

When a file is finished:
{"type": "fileComplete", "file": "<file name>", "linesScanned": <number>}

When all files are finished:
{"type": "complete", "summary": {"totalFiles": <n>, \
"totalVulnerabilities": <n>, \
"severityBreakdown": {"low": <n>, "medium": <n>, "high": <n>, "critical": <n>}, \
"overallRiskLevel": "low|medium|high|critical", \
"topRiskyFiles": ["<file>", "..."]}}

If nothing was found, still emit the complete object with \
"totalVulnerabilities": 0, "overallRiskLevel": "low" and a "message" noting \
that no issues were identified and that this does not guarantee the code is \
secure.
"""

EXPLANATION_GUIDANCE: dict[ExplanationLevel, str] = {
    ExplanationLevel.BEGINNER: (
        "Write beginnerExplanation for someone new to security; "
        "keep expertExplanation brief."
    ),
    ExplanationLevel.EXPERT: (
        "Write expertExplanation in depth for a security engineer; "
        "keep beginnerExplanation brief."
    ),
}


def build_user_prompt(
    files: Sequence[CodeFile],
    explanation_level: ExplanationLevel,
) -> str:
    """Assemble the per-batch user message with every file inlined."""
    parts = [
        "Analyze the following code for security vulnerabilities. "
        f"Explanation level: {explanation_level}. "
        f"{EXPLANATION_GUIDANCE[explanation_level]}",
        "",
    ]
    for f in files:
        parts.append(f"--- FILE: {f.name} ---")
        parts.append(f.content)
        parts.append("")
    parts.append(
        "Only report real vulnerabilities visible in this code. "
        "Output one JSON object per line."
    )
    return "\n".join(parts)
