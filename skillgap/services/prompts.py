"""
Prompt construction for gap analysis.

Attempt 1 uses the primary prompt. Every later attempt uses a correction
prompt that quotes the previous diagnostic and restates the exact shape.
Inputs are truncated before embedding to keep provider cost bounded.
"""
from skillgap.core.config import settings

SYSTEM_PROMPT = """You are a senior technical career coach and expert recruiter. Your task is to perform a precise "Gap Analysis" between a candidate's Resume and a Target Job Description.

INSTRUCTIONS:
1. Carefully analyze both the Resume and Job Description
2. Identify missing skills: technical skills/technologies mentioned in the JD but NOT present in the Resume
3. Create 3 CONCRETE, ACTIONABLE learning steps to acquire the missing skills
4. Generate 3 targeted interview questions that could expose the identified gaps

OUTPUT FORMAT - Return ONLY valid JSON (no markdown, no explanation):
{
  "missingSkills": ["skill1", "skill2", "skill3"],
  "learningPath": [
    { "description": "Build a specific project using X", "resource": "https://example.com" },
    { "description": "Complete Y certification or tutorial", "resource": "optional url" },
    { "description": "Practice Z through hands-on exercises" }
  ],
  "interviewQuestions": [
    "Technical question targeting gap 1",
    "Technical question targeting gap 2",
    "Technical question targeting gap 3"
  ],
  "status": "COMPLETED"
}

RULES:
- missingSkills: list ALL skills from the JD not found in the Resume (at least 1)
- learningPath: EXACTLY 3 steps, each concrete (not generic like "learn Docker")
- interviewQuestions: EXACTLY 3 questions, targeting the specific gaps
- status: always "COMPLETED" for a successful analysis
- resource URLs are optional but recommended"""

REQUIRED_SHAPE = """{
  "missingSkills": ["skill1", "skill2"],
  "learningPath": [
    { "description": "concrete action", "resource": "optional url" },
    { "description": "concrete action" },
    { "description": "concrete action" }
  ],
  "interviewQuestions": ["question1", "question2", "question3"],
  "status": "COMPLETED"
}"""

_TRUNCATION_MARKER = "\n... [truncated]"


def _truncate(text: str, max_chars: int) -> str:
    """Truncate text to max_chars, appending indicator if truncated."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + _TRUNCATION_MARKER


def _inputs_block(resume_text: str, job_description: str) -> str:
    resume = _truncate(resume_text.strip(), settings.resume_max_chars)
    job = _truncate(job_description.strip(), settings.job_description_max_chars)
    return (
        "===== RESUME =====\n"
        f"{resume}\n\n"
        "===== JOB DESCRIPTION =====\n"
        f"{job}"
    )


def build_analysis_prompt(resume_text: str, job_description: str) -> str:
    """Primary prompt: system instructions plus both inputs."""
    return (
        f"{SYSTEM_PROMPT}\n\n"
        f"{_inputs_block(resume_text, job_description)}\n\n"
        "Analyze and return the JSON response:"
    )


def build_correction_prompt(resume_text: str, job_description: str, previous_error: str) -> str:
    """Follow-up prompt quoting the previous diagnostic verbatim."""
    return (
        f"Your previous response was invalid. Error: {previous_error}\n\n"
        "Please provide a corrected response following the EXACT JSON format:\n"
        f"{REQUIRED_SHAPE}\n\n"
        "CRITICAL REQUIREMENTS:\n"
        "- missingSkills: at least 1 skill (array of strings)\n"
        "- learningPath: EXACTLY 3 objects, each with a non-empty \"description\"\n"
        "- interviewQuestions: EXACTLY 3 non-empty strings\n"
        "- status: must be \"COMPLETED\" or \"FAILED\"\n"
        "- Return ONLY valid JSON, no markdown blocks\n\n"
        f"{_inputs_block(resume_text, job_description)}\n\n"
        "Return ONLY the JSON:"
    )
