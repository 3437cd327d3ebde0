"""
Question Generation Service - AI interview questions.

Two request modes for every question type:
1. Topic mode (question bank): a topic string, default 3 questions
2. Job mode (standalone interview): job position + description,
   default 10 MCQ / 5 coding / 5 behavioral questions

The fallback generator serves campaign interviews when the question bank
cannot fill an interview setup.
"""

import time
from typing import Dict, List, Optional

from app.core.logging_config import get_logger
from app.services.openai_client import get_openai_client, OpenAIClient
from app.services.mongo_service import AIGenerationService

logger = get_logger(__name__)


class QuestionGenerationError(Exception):
    """The model response could not be turned into valid questions."""


QUESTION_TYPES = ("mcq", "coding", "behavioral", "combo")

JOB_MODE_DEFAULTS = {"mcq": 10, "coding": 5, "behavioral": 5, "combo": 10}
TOPIC_MODE_DEFAULT = 3

SUPPORTED_LANGUAGES = {
    "python": "Python",
    "javascript": "JavaScript",
    "typescript": "TypeScript",
    "java": "Java",
    "cpp": "C++",
    "php": "PHP",
    "html": "HTML",
    "css": "CSS",
    "sql": "SQL",
    "rust": "Rust",
}

LANGUAGE_KEYWORDS = {
    "python": ["python", "django", "flask", "pandas", "numpy", "fastapi", "py"],
    "javascript": ["javascript", "js", "node", "react", "vue", "angular", "express", "next"],
    "typescript": ["typescript", "ts", "angular", "next.js", "nest"],
    "java": ["java", "spring", "hibernate", "maven", "gradle", "jvm"],
    "cpp": ["c++", "cpp", "c plus", "unreal", "qt"],
    "php": ["php", "laravel", "symfony", "wordpress", "drupal"],
    "rust": ["rust", "cargo", "rustc"],
    "sql": ["sql", "mysql", "postgresql", "oracle", "database", "mongodb", "nosql"],
    "html": ["html", "html5", "web development", "frontend", "markup"],
    "css": ["css", "css3", "sass", "scss", "less", "styling", "bootstrap"],
}

MAX_LANGUAGES = 3


# ============================================================
# HELPERS
# ============================================================

def detect_languages(job_position: str, job_description: str = "") -> List[str]:
    """
    Pick programming languages for coding questions from the job text.
    Falls back to role-based defaults when no keyword matches.
    """
    text = f"{job_position} {job_description or ''}".lower()
    detected = [lang for lang, keywords in LANGUAGE_KEYWORDS.items() if any(k in text for k in keywords)]

    if not detected:
        if "frontend" in text or "front-end" in text:
            detected = ["javascript", "typescript", "html", "css"]
        elif "backend" in text or "back-end" in text:
            detected = ["python", "javascript", "java"]
        elif "fullstack" in text or "full-stack" in text:
            detected = ["javascript", "typescript", "python"]
        elif "data" in text:
            detected = ["python", "sql"]
        else:
            detected = ["python", "javascript"]

    return detected[:MAX_LANGUAGES]


def validate_mcq_questions(questions: list) -> None:
    """
    Every MCQ needs question text, exactly 4 options and exactly one correct option.
    Raises QuestionGenerationError otherwise.
    """
    for question in questions:
        if not isinstance(question, dict):
            raise QuestionGenerationError("Question entry is not an object")
        if not (question.get("question") or question.get("Question")):
            raise QuestionGenerationError("Invalid structure - missing question")
        options = question.get("options")
        if not isinstance(options, list) or len(options) != 4:
            raise QuestionGenerationError("Each MCQ must have exactly 4 options")
        correct = [o for o in options if isinstance(o, dict) and o.get("isCorrect")]
        if len(correct) != 1:
            raise QuestionGenerationError("Exactly one correct answer is required per MCQ")


def combo_split(total: int) -> Dict[str, int]:
    """40% behavioral and 30% coding (both rounded up), the rest MCQ."""
    behavioral = -(-total * 4 // 10)
    coding = -(-total * 3 // 10)
    return {"behavioral": behavioral, "coding": coding, "mcq": max(0, total - behavioral - coding)}


def _ensure_ids(questions: list, prefix: str) -> list:
    stamp = int(time.time() * 1000)
    for index, question in enumerate(questions):
        if isinstance(question, dict) and not question.get("id"):
            question["id"] = f"{prefix}_{stamp}_{index}"
    return questions


# ============================================================
# PROMPTS
# ============================================================

MCQ_SYSTEM = (
    "You are a multiple choice question generator bot that produces high-quality JSON-formatted "
    "technical and conceptual questions with clear, unambiguous answers."
)
CODING_SYSTEM = (
    "You are a senior software engineer who creates practical coding challenges with reference "
    "solutions and test cases. You answer with JSON only."
)
BEHAVIORAL_SYSTEM = (
    "You are an expert HR interviewer who creates insightful behavioral questions that assess "
    "soft skills and job-specific competencies. You answer with JSON only."
)

MCQ_FORMAT = """[{"id":"q1","question":"...","type":"mcq","options":[{"id":"A","text":"...","isCorrect":false},{"id":"B","text":"...","isCorrect":true},{"id":"C","text":"...","isCorrect":false},{"id":"D","text":"...","isCorrect":false}],"correctAnswer":"B","explanation":"...","difficulty":"Easy|Medium|Hard","category":"..."}]"""

CODING_FORMAT = """[{"id":"q1","question":"title","description":"...","type":"coding","examples":[{"input":"...","output":"...","explanation":"..."}],"solution":{LANGS},"testCases":[{"input":"...","expectedOutput":"..."}],"difficulty":"Easy|Medium|Hard","primaryLanguage":"PRIMARY"}]"""

BEHAVIORAL_FORMAT = """[{"id":"q1","question":"...","type":"behavioral","keyPoints":["..."],"expectedKeywords":["..."],"category":"Leadership|Teamwork|Problem-solving|Communication|Adaptability"}]"""


def _context_block(req: dict) -> str:
    if req.get("topic"):
        return f'Topic: "{req["topic"]}"'
    return (
        f"Position: {req['job_position']}\n"
        f"Description: {req['job_description']}\n"
        f"Experience Level: {req.get('years_of_experience') or 'Not specified'}\n"
        f"Resume Context: {req.get('resume_text') or 'No additional context'}"
    )


def build_prompt(question_type: str, req: dict, total: int) -> str:
    difficulty = req.get("difficulty", "medium")
    header = (
        f"Generate exactly {total} {question_type} interview questions.\n"
        f"CRITICAL: Return ONLY a valid JSON array. No markdown, no explanations.\n\n"
        f"{_context_block(req)}\nDifficulty: {difficulty}\n\n"
    )
    if question_type == "mcq":
        return header + (
            "Requirements:\n1. Exactly 4 options per question\n2. Exactly one correct answer\n"
            f"3. Include an explanation\n\nFormat:\n{MCQ_FORMAT}"
        )
    if question_type == "coding":
        languages = req["languages"]
        solution_fields = "{" + ",".join(f'"{lang}":"..."' for lang in languages) + "}"
        names = ", ".join(SUPPORTED_LANGUAGES.get(lang, lang) for lang in languages)
        fmt = CODING_FORMAT.replace("{LANGS}", solution_fields).replace("PRIMARY", languages[0])
        return header + f"Provide reference solutions in: {names}\n\nFormat:\n{fmt}"
    return header + (
        "Mix situational, competency-based and experience questions.\n\n"
        f"Format:\n{BEHAVIORAL_FORMAT}"
    )


# ============================================================
# SERVICE
# ============================================================

class QuestionGenerationService:
    """
    Generates, validates and archives interview questions.
    """

    def __init__(self, ai_client: OpenAIClient = None):
        self.ai_client = ai_client or get_openai_client()

    def _archive(self, company_id: Optional[str], generation_type: str, params: dict, questions: list) -> None:
        # Archiving is best-effort; generation already succeeded
        try:
            AIGenerationService().insert(company_id, generation_type, params, questions)
        except Exception as e:
            logger.warning(f"Could not archive {generation_type} generation: {e}")

    def _generate(self, question_type: str, req: dict, total: int) -> list:
        system = {"mcq": MCQ_SYSTEM, "coding": CODING_SYSTEM}.get(question_type, BEHAVIORAL_SYSTEM)
        try:
            questions = self.ai_client.generate_questions(system, build_prompt(question_type, req, total))
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            raise QuestionGenerationError(f"The AI response was malformed: {e}") from e

        if question_type == "mcq":
            validate_mcq_questions(questions)
        for question in questions:
            if isinstance(question, dict):
                question.setdefault("type", question_type)
        return _ensure_ids(questions, question_type)

    def generate(self, question_type: str, req: dict, company_id: Optional[str] = None) -> dict:
        """
        Generate questions for one of mcq / coding / behavioral / combo.

        Args:
            req: topic OR job_position + job_description, plus optional
                 total_questions, difficulty, languages, years_of_experience,
                 resume_text

        Returns:
            {"questions": [...], "metadata": {...}}
        """
        if question_type not in QUESTION_TYPES:
            raise ValueError(f"Unsupported question type: {question_type}")
        if not req.get("topic") and not (req.get("job_position") and req.get("job_description")):
            raise ValueError(
                "Either 'topic' (for question bank) or 'job_position' and 'job_description' "
                "(for standalone interview) are required"
            )

        mode = "question-bank" if req.get("topic") else "standalone-interview"
        default_total = TOPIC_MODE_DEFAULT if req.get("topic") else JOB_MODE_DEFAULTS[question_type]
        total = req.get("total_questions") or default_total
        req = dict(req, difficulty=req.get("difficulty") or "medium")

        if question_type in ("coding", "combo"):
            languages = [lang for lang in (req.get("languages") or []) if lang in SUPPORTED_LANGUAGES]
            if not languages:
                languages = detect_languages(req.get("job_position") or req.get("topic") or "",
                                             req.get("job_description") or "")
            req["languages"] = languages[:MAX_LANGUAGES]

        if question_type == "combo":
            split = combo_split(total)
            questions = []
            for part_type, count in split.items():
                if count > 0:
                    questions.extend(self._generate(part_type, req, count))
        else:
            questions = self._generate(question_type, req, total)

        logger.info(f"Generated {len(questions)} {question_type} questions ({mode})")
        self._archive(company_id, question_type, req, questions)

        return {
            "questions": questions,
            "metadata": {
                "mode": mode,
                "question_type": question_type,
                "difficulty": req["difficulty"],
                "requested": total,
                "generated": len(questions),
                "languages": req.get("languages"),
            },
        }

    def generate_fallback(self, interview_type: str, job_title: str, number_of_questions: int,
                          job_description: str = "", company_name: str = "the company",
                          difficulty_level: str = "medium", company_id: Optional[str] = None) -> List[dict]:
        """
        Generate questions for a campaign interview when the question bank
        has none, normalised to the question-bank shape.
        """
        interview_type = interview_type.lower()
        if interview_type not in QUESTION_TYPES:
            raise ValueError(
                f"Unsupported interview type: {interview_type}. Supported types: behavioral, mcq, coding, combo"
            )

        result = self.generate(
            interview_type,
            {
                "job_position": job_title,
                "job_description": job_description or f"{job_title} at {company_name}",
                "total_questions": number_of_questions,
                "difficulty": difficulty_level,
            },
            company_id=company_id,
        )
        return [normalize_generated_question(q, interview_type, difficulty_level, i)
                for i, q in enumerate(result["questions"])]


def normalize_generated_question(question: dict, interview_type: str, difficulty: str, index: int) -> dict:
    """Shape an AI question like a question-bank row (keeps the scoring fields)."""
    normalized = dict(question)
    normalized["id"] = question.get("id") or f"ai_generated_{int(time.time() * 1000)}_{index}"
    normalized["questionType"] = question.get("questionType") or question.get("type") or interview_type
    normalized["question"] = question.get("question") or f"Generated question {index + 1}"
    normalized["expectedAnswer"] = question.get("expectedAnswer") or "Evaluate based on relevance and depth of response"
    normalized["correctAnswer"] = question.get("correctAnswer")
    normalized["explanation"] = question.get("explanation")
    normalized["category"] = question.get("category") or "General"
    normalized["difficultyLevel"] = question.get("difficultyLevel") or question.get("difficulty") or difficulty
    normalized["aiGenerated"] = True
    return normalized


def get_question_service() -> QuestionGenerationService:
    return QuestionGenerationService()
