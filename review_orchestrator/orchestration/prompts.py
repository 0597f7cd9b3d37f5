"""
Comprehensive review prompt.

The prompt lists the task, the requested focus, the tools the model may
call and, when a project has learned patterns, those patterns.
"""

from typing import Any, Dict, List, Mapping, Optional

from review_orchestrator.orchestration.types import ReviewOptions, ReviewTask

REVIEW_INSTRUCTIONS = """Please use the available tools to:
1. Analyze the code changes and their impact
2. Check for security vulnerabilities
3. Assess code quality and maintainability
4. Review test coverage and documentation
5. Compare with historical patterns and team standards
6. Provide actionable suggestions for improvement
"""


def build_review_prompt(
    task: ReviewTask,
    options: ReviewOptions,
    catalog: List[Dict[str, Any]],
    learned_patterns: Optional[Mapping[str, Any]] = None,
) -> str:
    lines = [
        "Perform a comprehensive code review for the following pull request:",
        "",
        f"Title: {task.title}",
        f"Author: {task.author}",
        f"Description: {task.description}",
        "",
        f"Focus Areas: {', '.join(options.focus_areas)}",
        f"Severity Threshold: {options.severity_threshold}",
        "",
        "Available tools for analysis:",
    ]
    for entry in catalog:
        lines.append(f"- {entry['name']}: {entry['description']}")

    if learned_patterns:
        lines.append("")
        lines.append("Patterns learned from earlier reviews of this project:")
        for name, value in learned_patterns.items():
            lines.append(f"- {name}: {value}")

    lines.append("")
    prompt = "\n".join(lines) + "\n" + REVIEW_INSTRUCTIONS
    if not options.include_suggestions:
        prompt += "Report findings only; do not include improvement suggestions.\n"
    return prompt


__all__ = ["build_review_prompt", "REVIEW_INSTRUCTIONS"]
