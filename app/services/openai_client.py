"""
OpenAI API Client

Thin wrapper around the openai library used by every AI feature:
- Interview question generation (MCQ, coding, behavioral, combo)
- Resume parsing
- Talent-fit parameter scoring
- Job description and skill suggestions

Prompts ask for strict JSON; `_extract_json` / `_extract_json_array`
tolerate markdown code fences and leading or trailing chatter.
"""
import json
from typing import Any, List

from openai import OpenAI

from app.core.config import get_settings
from app.core.logging_config import get_logger

settings = get_settings()
logger = get_logger(__name__)


class OpenAIClient:
    """
    Wrapper for the OpenAI chat completions API.
    """

    def __init__(self):
        self.client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url
        )
        self.model = settings.openai_model

    def _call_api(self, system_prompt: str, user_content: str, max_tokens: int = 1000,
                  temperature: float = 0.1) -> str:
        """
        Internal method to call the chat completions API.
        Returns raw text response.
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content}
            ],
            max_tokens=max_tokens,
            temperature=temperature
        )
        return response.choices[0].message.content or ""

    @staticmethod
    def _strip_fences(text: str) -> str:
        text = text.strip()
        if text.startswith("```json"):
            text = text[7:]
        elif text.startswith("```"):
            text = text[3:]
        if text.endswith("```"):
            text = text[:-3]
        return text.strip()

    def _extract_json(self, text: str) -> Any:
        """
        Extract a JSON object from API response.
        Handles cases where model wraps JSON in markdown code blocks.
        """
        text = self._strip_fences(text)
        start, end = text.find("{"), text.rfind("}")
        if text and text[0] != "[" and start != -1 and end > start:
            text = text[start:end + 1]
        return json.loads(text)

    def _extract_json_array(self, text: str) -> list:
        """Extract a JSON array (first '[' to last ']') from API response."""
        text = self._strip_fences(text)
        start, end = text.find("["), text.rfind("]")
        if start != -1 and end > start:
            text = text[start:end + 1]
        data = json.loads(text)
        if not isinstance(data, list):
            raise ValueError("Response is not a JSON array")
        return data

    def generate_questions(self, system_prompt: str, prompt: str, max_tokens: int = 4000) -> list:
        """Run a question-generation prompt and return the parsed JSON array."""
        response = self._call_api(system_prompt, prompt, max_tokens=max_tokens, temperature=0.7)
        return self._extract_json_array(response)

    def parse_resume(self, resume_text: str) -> dict:
        """
        Parse resume text and extract structured data.
        """
        system_prompt = """You are a resume parser. Extract information and return ONLY valid JSON.
Output format:
{
  "name": "string",
  "email": "string or null",
  "phone": "string or null",
  "skills": ["skill1", "skill2"],
  "experience_years": number,
  "education": [{"degree": "string", "field": "string", "institution": "string"}],
  "experience": [{"company": "string", "role": "string", "duration": "string"}],
  "summary": "string"
}
Return ONLY the JSON, no explanation."""

        response = self._call_api(system_prompt, resume_text, max_tokens=1200)
        return self._extract_json(response)

    def score_parameter(self, resume_data: dict, parameter: dict) -> dict:
        """
        Score resume data against a single campaign scoring parameter (0-100).
        """
        system_prompt = """You are an expert HR analyst. Score the resume against ONE parameter.
Guidelines:
- skill: exact match 80-100, related technology 60-79, transferable 40-59, no evidence 0-39
- competency: clear examples 80-100, some evidence 60-79, implied 40-59, none 0-39
- experience: perfect match 90-100, good 70-89, partial 50-69, none 0-49
- education: exact degree 85-100, related 65-84, transferable 45-64, none 0-44
Most candidates score between 30 and 80.
Respond with ONLY valid JSON:
{"score": 75, "evidence": "string", "reasoning": "string", "matchQuality": "Excellent|Good|Fair|Poor"}"""

        user_content = (
            f"Resume Data:\n{json.dumps(resume_data, default=str)}\n\n"
            f"Parameter:\n- Type: {parameter['parameter_type']}\n- Name: {parameter['parameter_name']}\n"
            f"- Required Proficiency: {parameter.get('proficiency_level') or 'Not specified'}\n"
            f"- Weight: {parameter['weight']}\n- Is Required: {bool(parameter.get('is_required'))}\n"
            f"- Description: {parameter.get('description') or 'No description provided'}"
        )
        response = self._call_api(system_prompt, user_content, max_tokens=400)
        return self._extract_json(response)

    def generate_job_description(self, details: dict) -> dict:
        system_prompt = """You write job descriptions. Return ONLY valid JSON:
{"job_description": "string", "requirements": ["string"], "responsibilities": ["string"], "benefits": ["string"]}"""
        user_content = "\n".join(f"{key}: {value}" for key, value in details.items() if value)
        response = self._call_api(system_prompt, user_content, max_tokens=1500, temperature=0.7)
        return self._extract_json(response)

    def suggest_skills(self, job_title: str, job_description: str = None, experience_level: str = None) -> List[dict]:
        system_prompt = """Suggest the skills a hiring team should assess for this role.
Return ONLY a JSON array: [{"name": "string", "category": "technical|soft", "weight": number, "proficiency_level": "beginner|intermediate|advanced|expert"}]"""
        user_content = (
            f"Job title: {job_title}\n"
            f"Experience level: {experience_level or 'Not specified'}\n"
            f"Description: {job_description or 'Not provided'}"
        )
        response = self._call_api(system_prompt, user_content, max_tokens=800, temperature=0.3)
        return self._extract_json_array(response)


# Singleton instance
_openai_client: OpenAIClient = None


def get_openai_client() -> OpenAIClient:
    """Get or create OpenAI client (singleton pattern)"""
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAIClient()
    return _openai_client
