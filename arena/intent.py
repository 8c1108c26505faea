"""Prompt intent classification: regex patterns plus keyword cues, no I/O."""

import re

from arena.models import CATEGORIES

_PATTERN_POINTS = 10
_KEYWORD_POINTS = 2
_MIN_SCORE = 5


def _compile(*patterns: str) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


_PATTERNS: dict[str, list[re.Pattern[str]]] = {
    "writing": _compile(
        r"\b(write|draft|compose|create)\b.*\b(email|letter|post|article|blog|copy|content|message|script|story|essay|report|proposal|speech|bio|caption|headline|tagline|slogan)\b",
        r"\b(email|letter|post|article|blog)\b.*\b(about|for|to)\b",
        r"^write\b",
        r"^draft\b",
        r"^compose\b",
        r"\b(rewrite|rephrase|paraphrase|edit|proofread|improve)\b.*\b(this|my|the)\b",
        r"\b(make|help).*(sound|read|flow)\b.*\b(better|professional|casual|formal)\b",
        r"\b(tone|voice|style)\b.*\b(change|adjust|modify)\b",
        r"\b(marketing|sales|cold)\b.*\b(copy|email|outreach)\b",
        r"\b(linkedin|twitter|instagram|social media)\b.*\b(post|content|bio)\b",
    ),
    "code": _compile(
        r"\b(code|implement|function|class|method|script|algorithm|program)\b",
        r"\b(debug|fix|error|bug|issue|crash|exception)\b.*\b(code|function|script|program|app)\b",
        r"\b(code|function|script|program|app)\b.*\b(debug|fix|error|bug|issue)\b",
        r"\b(python|javascript|typescript|react|nextjs|vue|angular|sql|html|css|java|rust|go|golang|ruby|php|swift|kotlin|c\+\+|csharp|c#)\b",
        r"\b(api|endpoint|database|query|schema|migration|orm|rest|graphql|webhook)\b",
        r"\b(component|hook|state|props|context|reducer|middleware)\b",
        r"\b(docker|kubernetes|aws|deployment|ci/cd|devops)\b",
        r"\b(regex|regular expression|pattern matching)\b",
        r"\b(npm|yarn|pip|package|dependency|module|import)\b",
        r"```[\s\S]*```",
        r"`[^`]+`",
        r"\b(refactor|optimize|performance|test|unit test|integration)\b",
        r"\b(build|create|set up|configure)\b.*\b(app|application|server|backend|frontend)\b",
    ),
    "research": _compile(
        r"^what (is|are|was|were|does|do|did)\b",
        r"^who (is|are|was|were)\b",
        r"^when (did|was|is|are|will)\b",
        r"^where (is|are|was|were|can|do)\b",
        r"^why (is|are|was|were|do|does|did)\b",
        r"^how (does|do|did|is|are|was|were|can|to)\b",
        r"\b(research|find out|look up|search for|learn about)\b",
        r"\b(explain|summarize|summary|overview|breakdown|primer)\b",
        r"\b(tell me about|what do you know about|information on|facts about)\b",
        r"\b(history of|background on|origin of)\b",
        r"\b(define|definition|meaning of)\b",
        r"\b(list|enumerate|name)\b.*\b(types|kinds|examples|categories)\b",
    ),
    "analysis": _compile(
        r"\b(analyze|analyse|evaluate|assess|review|critique|examine)\b",
        r"\b(pros and cons|trade-offs|tradeoffs|advantages|disadvantages|benefits|drawbacks)\b",
        r"\b(should I|would you recommend|what do you think|what's your opinion|which is better)\b",
        r"\b(compare|comparison|versus|vs\.?|between)\b",
        r"\b(decision|choose|pick|select|decide)\b.*\b(between|which|what)\b",
        r"\b(help me decide|help me choose)\b",
        r"\b(strategy|approach|plan|roadmap)\b.*\b(for|to)\b",
        r"\b(evaluate|assess)\b.*\b(risk|opportunity|option|possibility)\b",
        r"\b(break down|breakdown|dissect)\b.*\b(problem|issue|situation)\b",
        r"\b(feedback on|thoughts on|opinion on|take on)\b",
    ),
    "general": [],
}

_KEYWORDS: dict[str, tuple[str, ...]] = {
    "writing": ("write", "draft", "compose", "email", "blog", "article", "copy", "content",
                "message", "letter", "story", "essay", "tone", "voice"),
    "code": ("code", "function", "bug", "error", "api", "database", "implement", "debug",
             "script", "programming", "developer", "software"),
    "research": ("what", "explain", "research", "learn", "find", "tell me", "how does", "why",
                 "history", "define", "meaning"),
    "analysis": ("analyze", "compare", "evaluate", "pros", "cons", "should", "decide", "choose",
                 "better", "versus", "opinion", "recommend"),
    "general": (),
}

_LABELS = {
    "writing": "Writing",
    "code": "Code",
    "research": "Research",
    "analysis": "Analysis",
    "general": "General",
}


def score_categories(prompt: str) -> dict[str, int]:
    """Return the raw score per category, in priority order."""
    normalized = prompt.lower().strip()
    scores = {category: 0 for category in CATEGORIES}
    for category in CATEGORIES:
        scores[category] += _PATTERN_POINTS * sum(1 for p in _PATTERNS[category] if p.search(prompt))
        scores[category] += _KEYWORD_POINTS * sum(1 for k in _KEYWORDS[category] if k in normalized)
    return scores


def classify(prompt: str) -> str:
    """Classify a prompt into one of writing, code, research, analysis, general.

    The strictly highest score wins; ties resolve to the earlier category in
    priority order. A best score under the threshold falls back to general.
    """
    best_category = "general"
    best_score = 0
    for category, score in score_categories(prompt).items():
        if score > best_score:
            best_category, best_score = category, score
    if best_score < _MIN_SCORE:
        return "general"
    return best_category


def category_label(category: str) -> str:
    return _LABELS.get(category, category.title())


def arena_for_category(category: str) -> str:
    """Pick the judging rubric that fits a task category."""
    if category in ("code", "writing"):
        return category
    return "debate"
