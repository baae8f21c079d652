"""Built-in system prompts and user prompt builders.

System prompts can be overridden per user (Profile.default_prompts) and per
project (Project.prompt_overrides); see model_resolver.resolve_prompt.
"""

import json
from typing import Dict, Iterable, List, Sequence

from tender_ai.schemas.enums import Operation

PROMPTS: Dict[Operation, str] = {
    Operation.ANALYSIS: """You are an expert in tender (RFP) analysis. Read the supplied document and summarise what the buyer expects from a response: scope, evaluation criteria, deadlines and any eligibility constraints. Be factual and concise.""",

    Operation.STRUCTURE: """You analyse tender documents to decide the structure of the response document.

Use the RFP content, and the response template when one is provided, to identify the sections of the response.

For each section return:
- title: section title
- description: short description of the expected content
- source: "template" (from the template), "rfp" (required by the RFP) or "ai_suggested" (recommended)
- position: ordinal position

When a template is provided, use it as the base and add the sections the RFP additionally requires.

Return a JSON array. JSON only.""",

    Operation.EXTRACTION: """You are an expert in tender analysis. Extract every requirement from the document and classify it:
- "question": needs a written answer, proposal or description (e.g. "Describe your approach...")
- "condition": an imposed requirement that only needs confirmation (e.g. "The supplier must hold ISO 9001 certification")

Prefer identifying questions. Conditions are constraints the bidder satisfies without a narrative answer.

For each item return:
- kind: "question" | "condition"
- originalText: the full text as it appears in the document
- sectionReference: section reference (e.g. "3.1.2")
- sourcePage: page number
- aiThemes: array of cross-cutting themes (e.g. ["pricing", "methodology", "team", "quality", "planning"])

Return a JSON array. JSON only.""",

    Operation.DRAFTING: """You are an expert tender response writer. Write a professional response for the indicated section.

The response must:
- Be structured and professional
- Answer the identified questions precisely
- Confirm compliance with the imposed conditions
- Highlight the bidder's strengths
- Use feedback from previous evaluations: reinforce strengths, fix weaknesses, follow recommendations
- Use a confident but not arrogant tone
- Be written in the project's language""",

    Operation.FEEDBACK: """You are an expert evaluator of tender responses. Analyse the supplied evaluation report and identify strengths, weaknesses and recommendations.

For each observation return:
- feedbackType: "strength" | "weakness" | "recommendation" | "comment"
- severity: "critical" | "major" | "minor" | "info"
- content: detailed description
- sectionReference: referenced section, if any

Return a JSON array. JSON only.""",

    Operation.COMPLIANCE: """You are a tender compliance expert. Assess how well the response covers the requirements and identify:
- unanswered requirements
- incomplete answers
- non-compliance risks
- an overall quality score

Return a JSON object with:
- warnings: array of { "itemId", "message", "severity" }
- qualityScore: number 0-100
- summary: short summary text""",

    Operation.CHAT: """You are the assistant of a tender response platform. You help users understand tender requirements, improve their answers, check compliance and give strategic advice.

Be precise, professional and helpful. Answer in the project's language.""",

    Operation.EMBEDDING: "",
}

EDIT_SUGGESTION_PROMPT = """You improve a single tender answer following the user's instruction.
Return only the rewritten answer text, without commentary."""

TEMPLATE_EXCERPT_CHARS = 5000
RFP_EXCERPT_CHARS = 8000


def build_structure_prompt(template_text: str | None, rfp_texts: Sequence[str]) -> str:
    """User prompt for outline structure analysis."""
    parts = []
    if template_text:
        parts.append(f"## Response template\n{template_text[:TEMPLATE_EXCERPT_CHARS]}")
    for index, rfp_text in enumerate(rfp_texts, start=1):
        parts.append(f"## RFP document {index}\n{rfp_text[:RFP_EXCERPT_CHARS]}")
    parts.append("Determine the sections of the response document.")
    return "\n\n".join(parts)


def build_extraction_prompt(document_text: str, section_titles: Iterable[str]) -> str:
    """User prompt for extracting questions and conditions from one RFP document."""
    titles = "\n".join(f"- {title}" for title in section_titles)
    return (
        f"## Response outline\n{titles or '- (none)'}\n\n"
        f"## RFP document\n{document_text}\n\n"
        "Extract every question and condition."
    )


def build_feedback_prompt(report_text: str) -> str:
    return f"## Evaluation report\n{report_text}\n\nExtract every observation."


def build_compliance_prompt(stats: dict, unaddressed: List[dict], open_feedback: List[dict] | None = None) -> str:
    prompt = (
        f"## Coverage statistics\n{json.dumps(stats, indent=2)}\n\n"
        f"## Unaddressed items\n{json.dumps(unaddressed, indent=2, ensure_ascii=False)}\n\n"
    )
    if open_feedback:
        prompt += (
            "## Open evaluator feedback\n"
            f"{json.dumps(open_feedback, indent=2, ensure_ascii=False)}\n\n"
        )
    return prompt + "Assess the compliance of this response."


def build_drafting_prompt(section_title: str, section_description: str | None) -> str:
    prompt = f"Write the response for the section \"{section_title}\"."
    if section_description:
        prompt += f"\n\nExpected content: {section_description}"
    return prompt


def build_edit_prompt(original_text: str, item_text: str, instruction: str) -> str:
    return (
        f"## Requirement\n{item_text}\n\n"
        f"## Current answer\n{original_text or '(empty)'}\n\n"
        f"## Instruction\n{instruction}"
    )
