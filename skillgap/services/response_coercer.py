"""
Response coercion: unstructured provider text → GapAnalysisResult, or a
diagnostic explaining why not.

Pipeline (pure, no I/O):
  1. unwrap   : first fenced code block if any, else the trimmed text
  2. parse    : JSON object; syntax errors stop here
  3. sanitize : strip markup tags and surrounding whitespace from every string
  4. validate : explicit structural pass that lists every violation

The diagnostic of a failure is written so it can be pasted verbatim into the
next correction prompt. A failure never carries a partial result.
"""
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from skillgap.schemas.analysis import (
    INTERVIEW_QUESTIONS,
    LEARNING_PATH_STEPS,
    GapAnalysisResult,
)

# ```json\n ... ```, ``` ... ```, ```json {...}```; non-greedy so the first block wins
_FENCE_RE = re.compile(r"```(?:[\w+-]*[ \t]*\r?\n|json\b)?(.*?)```", re.DOTALL | re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")

_RESULT_STATUSES = ("COMPLETED", "FAILED")


@dataclass(frozen=True)
class CoercionSuccess:
    result: GapAnalysisResult

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class CoercionFailure:
    diagnostic: str

    @property
    def ok(self) -> bool:
        return False


CoercionResult = Union[CoercionSuccess, CoercionFailure]


# ── Steps ────────────────────────────────────────────────────────────────────

def extract_json_block(text: str) -> str:
    """Contents of the first fenced block, or the trimmed text when unfenced."""
    trimmed = text.strip()
    match = _FENCE_RE.search(trimmed)
    if match:
        return match.group(1).strip()
    return trimmed


def sanitize(value: Any) -> Any:
    """Recursively strip tags and trim strings; other scalars pass through."""
    if isinstance(value, str):
        return _TAG_RE.sub("", value).strip()
    if isinstance(value, list):
        return [sanitize(item) for item in value]
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    return value


def _is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _check_string_list(
    doc: Dict[str, Any],
    field: str,
    issues: List[str],
    exact: Optional[int] = None,
    empty_message: str = "",
) -> List[str]:
    value = doc.get(field)
    if value is None:
        issues.append(f"{field}: Required")
        return []
    if not isinstance(value, list):
        issues.append(f"{field}: Expected an array of strings")
        return []
    if exact is not None and len(value) != exact:
        issues.append(f"{field}: Exactly {exact} {empty_message} required (got {len(value)})")
    elif exact is None and not value:
        issues.append(f"{field}: {empty_message}")

    items = []
    for index, item in enumerate(value):
        if not _is_non_empty_str(item):
            issues.append(f"{field}.{index}: Expected a non-empty string")
        else:
            items.append(item)
    return items


def _check_learning_path(doc: Dict[str, Any], issues: List[str]) -> List[Dict[str, Any]]:
    value = doc.get("learningPath")
    if value is None:
        issues.append("learningPath: Required")
        return []
    if not isinstance(value, list):
        issues.append("learningPath: Expected an array of step objects")
        return []
    if len(value) != LEARNING_PATH_STEPS:
        issues.append(
            f"learningPath: Exactly {LEARNING_PATH_STEPS} learning steps required (got {len(value)})"
        )

    steps = []
    for index, item in enumerate(value):
        if not isinstance(item, dict):
            issues.append(f"learningPath.{index}: Expected an object")
            continue
        # "step" is what earlier prompt revisions asked for
        description = item.get("description", item.get("step"))
        if not _is_non_empty_str(description):
            issues.append(f"learningPath.{index}.description: Step description is required")
            continue
        resource = item.get("resource")
        if resource is not None and not isinstance(resource, str):
            issues.append(f"learningPath.{index}.resource: Expected a string")
            continue
        steps.append({"description": description, "resource": resource or None})
    return steps


def validate_document(doc: Any) -> Tuple[Optional[Dict[str, Any]], List[str]]:
    """
    Structural validation over a parsed document.

    Returns (normalized document, []) on success or (None, issues) listing
    every violated field.
    """
    if not isinstance(doc, dict):
        return None, ["root: Expected a JSON object"]

    issues: List[str] = []
    skills = _check_string_list(
        doc, "missingSkills", issues, empty_message="At least one missing skill required"
    )
    steps = _check_learning_path(doc, issues)
    questions = _check_string_list(
        doc, "interviewQuestions", issues, exact=INTERVIEW_QUESTIONS,
        empty_message="interview questions",
    )

    status = doc.get("status")
    if status not in _RESULT_STATUSES:
        issues.append("status: Must be 'COMPLETED' or 'FAILED'")

    if issues:
        return None, issues

    return {
        "missingSkills": skills,
        "learningPath": steps,
        "interviewQuestions": questions,
        "status": status,
    }, []


# ── Entry point ──────────────────────────────────────────────────────────────

def coerce_response(raw: str) -> CoercionResult:
    """Run unwrap → parse → sanitize → validate over one provider response."""
    if not isinstance(raw, str) or not raw.strip():
        return CoercionFailure("Empty response: expected a JSON object")

    candidate = extract_json_block(raw)

    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return CoercionFailure("JSON parse error: Invalid JSON syntax")
    except RecursionError:
        return CoercionFailure("JSON parse error: Document is nested too deeply")

    try:
        cleaned = sanitize(parsed)
    except RecursionError:
        return CoercionFailure("JSON parse error: Document is nested too deeply")

    document, issues = validate_document(cleaned)
    if issues:
        return CoercionFailure("Schema validation failed: " + "; ".join(issues))

    try:
        return CoercionSuccess(GapAnalysisResult.model_validate(document))
    except ValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return CoercionFailure(f"Schema validation failed: {details}")
