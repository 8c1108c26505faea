"""Fixed judge tool schemas per arena rubric, and the judge prompt builder."""

from typing import Any

from config.config_loader import ArenaJudgeConfig

SCORE_PREFIX = "score_"
VERDICT_TOOL = "generate_verdict"
ANALYSIS_TOOL = "write_model_analysis"
HEAD_TO_HEAD_TOOL = "write_head_to_head"
OPENING_TOOL = "write_opening_remarks"
PASSAGES_TOOL = "highlight_passages"

_RATIONALE = "A punchy 5-15 word phrase explaining the score, like sports commentary"

# Extra, optional fields some criteria collect alongside the score.
_EXTRA_SCORE_FIELDS: dict[str, dict[str, dict[str, Any]]] = {
    "correctness": {
        "bugs_found": {
            "type": "array",
            "description": "List of bugs or issues found in the code",
            "items": {"type": "string", "description": "Description of a specific bug or issue"},
        },
    },
    "efficiency": {
        "complexity": {
            "type": "string",
            "description": "Big-O time/space complexity, e.g. 'O(n log n) time, O(n) space'",
        },
    },
}


def _score_tool(criterion_id: str, criterion_name: str, description: str) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "model": {"type": "string", "description": "The model identifier being scored, exactly as in its heading"},
        "score": {"type": "number", "description": f"Score from 1-10 for {criterion_name.lower()}"},
        "rationale": {"type": "string", "description": _RATIONALE},
    }
    properties.update(_EXTRA_SCORE_FIELDS.get(criterion_id, {}))
    return {
        "name": f"{SCORE_PREFIX}{criterion_id}",
        "description": f"Evaluate {criterion_name}: {description}",
        "input_schema": {
            "type": "object",
            "properties": properties,
            "required": ["model", "score", "rationale"],
        },
    }


def build_tools(arena: str, rubric: ArenaJudgeConfig) -> list[dict[str, Any]]:
    """Return the tool schema for an arena: one score tool per criterion, narrative tools, verdict."""
    tools = [_score_tool(c.id, c.name, c.description) for c in rubric.criteria]

    if arena == "writing":
        tools.append({
            "name": PASSAGES_TOOL,
            "description": "Highlight notable passages from a model's writing, both good and bad.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "model": {"type": "string", "description": "The model whose passages are highlighted"},
                    "passages": {
                        "type": "array",
                        "description": "Notable passages with commentary",
                        "items": {
                            "type": "object",
                            "properties": {
                                "quote": {"type": "string", "description": "The quoted passage"},
                                "comment": {"type": "string", "description": "Why this passage is notable"},
                            },
                            "required": ["quote", "comment"],
                        },
                    },
                },
                "required": ["model", "passages"],
            },
        })

    tools.extend([
        {
            "name": OPENING_TOOL,
            "description": "Write entertaining opening remarks to set up the judging.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "remarks": {"type": "string", "description": "1-3 sentences of opening commentary"},
                },
                "required": ["remarks"],
            },
        },
        {
            "name": ANALYSIS_TOOL,
            "description": "Write a detailed analysis of one model's overall performance.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "model": {"type": "string", "description": "The model identifier being analyzed"},
                    "analysis": {"type": "string", "description": "2-4 sentence analysis"},
                    "strongest_moment": {"type": "string", "description": "The model's best moment"},
                    "weakness": {"type": "string", "description": "The model's main weakness"},
                },
                "required": ["model", "analysis", "strongest_moment", "weakness"],
            },
        },
        {
            "name": HEAD_TO_HEAD_TOOL,
            "description": "Write a direct comparison between the competing models.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "comparison": {"type": "string", "description": "2-4 sentence head-to-head comparison"},
                },
                "required": ["comparison"],
            },
        },
        {
            "name": VERDICT_TOOL,
            "description": "Generate the final verdict after all scores are complete. Call exactly once, last.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "winner": {"type": "string", "description": "Identifier of the winning model"},
                    "verdict": {"type": "string", "description": "2-3 sentence verdict explaining the decision"},
                    "quotable_line": {"type": "string", "description": "A punchy, memorable one-liner"},
                },
                "required": ["winner", "verdict", "quotable_line"],
            },
        },
    ])
    return tools


def build_judge_prompt(
    prompt: str,
    responses: dict[str, str],
    category: str,
    rubric: ArenaJudgeConfig,
) -> str:
    parts = [
        f"# Task Category\n{category}",
        f"# Prompt\n{prompt}",
        "# Model Responses",
    ]
    for backend, content in responses.items():
        parts.append(f"## {backend}\n{content}")

    criteria = ", ".join(c.id for c in rubric.criteria)
    parts.append(
        f"Score every model on every criterion ({criteria}) with the scoring tools, "
        f"then call {VERDICT_TOOL} exactly once. "
        f"The winner must be one of: {', '.join(responses)}."
    )
    return "\n\n".join(parts)
