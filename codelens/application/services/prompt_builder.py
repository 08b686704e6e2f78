"""
Prompt Builder - Sestavuje system/user prompty pro analýzu kódu
"""

from typing import Tuple, Union

from codelens.infrastructure.adapters.ai.models import AnalysisRequest, AnalysisType

BASE_PROMPT = (
    "You are a senior software engineer and code reviewer with expertise in multiple "
    "programming languages, design patterns, and best practices."
)

TYPE_SPECIFIC_PROMPTS = {
    AnalysisType.SECURITY: "Focus on security vulnerabilities, potential exploits, and secure coding practices.",
    AnalysisType.PERFORMANCE: "Analyze performance bottlenecks, optimization opportunities, and scalability concerns.",
    AnalysisType.QUALITY: "Evaluate code quality, maintainability, readability, and adherence to best practices.",
    AnalysisType.ARCHITECTURE: "Review architectural decisions, design patterns, and system design principles.",
    AnalysisType.TESTING: "Assess test coverage, test quality, and suggest testing improvements.",
    AnalysisType.COMPREHENSIVE: (
        "Provide a comprehensive review covering security, performance, quality, and architecture."
    ),
}

OUTPUT_SCHEMA_DIRECTIVE = """Return your analysis as a JSON object with the following structure:
{
  "summary": "Brief overview of findings",
  "issues": [
    {
      "severity": "critical|high|medium|low|info",
      "type": "security|performance|quality|architecture|testing|style",
      "line": number,
      "column": number,
      "message": "Description of the issue",
      "suggestion": "Recommended fix",
      "codeSnippet": "Relevant code snippet"
    }
  ],
  "suggestions": [
    {
      "type": "improvement|refactor|optimization|modernization",
      "description": "Detailed suggestion",
      "impact": "high|medium|low",
      "effort": "high|medium|low"
    }
  ],
  "metrics": {
    "complexity": number,
    "maintainability": number,
    "testability": number,
    "security": number
  }
}
Respond with the JSON object only."""

HEALTH_CHECK_PROMPT = "Health check"


class PromptBuilder:
    """Sestavuje deterministické prompty z AnalysisRequest (bez stavu, bez sítě)"""

    def build(self, request: AnalysisRequest) -> Tuple[str, str]:
        """
        Sestav oba prompty.

        Returns:
            (system_prompt, user_prompt)
        """
        return self.build_system_prompt(request.analysis_type), self.build_user_prompt(request)

    def build_system_prompt(self, analysis_type: Union[AnalysisType, str]) -> str:
        """
        System prompt podle typu analýzy; neznámý typ -> comprehensive.
        """
        try:
            analysis_type = AnalysisType(analysis_type)
        except ValueError:
            analysis_type = AnalysisType.COMPREHENSIVE

        framing = TYPE_SPECIFIC_PROMPTS[analysis_type]
        return f"{BASE_PROMPT} {framing}\n\n{OUTPUT_SCHEMA_DIRECTIVE}"

    def build_user_prompt(self, request: AnalysisRequest) -> str:
        """User prompt s kódem a volitelnými doplňky"""
        parts = [
            "Please analyze the following code:",
            "",
            f"**File:** {request.file_name}",
            f"**Language:** {request.language}",
            f"**Context:** {request.context or 'No additional context provided'}",
            "",
            f"```{request.language}",
            request.code,
            "```"
        ]

        extras = []
        if request.specific_concerns:
            extras.append(f"**Specific Concerns:** {request.specific_concerns}")
        if request.diff_context:
            extras.append(f"**Changes Made:** {request.diff_context}")

        if extras:
            parts.append("")
            parts.extend(extras)

        return "\n".join(parts)

    def build_health_prompt(self) -> str:
        """Minimal prompt for the synthetic health probe"""
        return HEALTH_CHECK_PROMPT
