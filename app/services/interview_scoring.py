"""
Interview Scoring Service

Heuristic scoring for every interview answer type:
- MCQ: option matching plus a time bonus
- Coding: syntax, logic, efficiency, completeness and time management
- Behavioral: STAR structure, specificity, relevance, impact and communication

All functions are pure: they take the stored question dict and the
candidate's answer and return a result dict with score, max_score,
feedback and a breakdown. No AI calls happen here.
"""

import re
from typing import Dict, List, Any, Optional

from app.utils.numbers import round_half_up


MCQ_MAX_SCORE = 1.2
CODING_MAX_SCORE = 10
BEHAVIORAL_MAX_SCORE = 5

DEFAULT_MCQ_TIME_LIMIT = 120  # seconds

# Seconds allowed per coding question by difficulty
CODING_TIME_LIMITS = {"easy": 900, "medium": 1800, "hard": 2700}


# ============================================================
# MCQ
# ============================================================

def _correct_option(question: dict) -> Optional[dict]:
    for option in question.get("options") or []:
        if option.get("isCorrect"):
            return option
    return None


def _is_correct_mcq(question: dict, submitted: str) -> bool:
    """The answer may be an option id, or the option text."""
    correct = _correct_option(question)
    candidates = {str(question.get("correctAnswer") or question.get("correct_answer") or "")}
    if correct:
        candidates.add(str(correct.get("id", "")))
        candidates.add(str(correct.get("text", "")))
    candidates.discard("")
    return submitted in candidates


def score_mcq_answer(question: dict, submitted_answer: str, time_spent: int) -> dict:
    is_correct = _is_correct_mcq(question, submitted_answer)
    base_score = 1 if is_correct else 0

    time_limit = question.get("timeLimit") or question.get("time_limit") or DEFAULT_MCQ_TIME_LIMIT
    time_bonus = 0.0
    if is_correct and time_spent <= 60:
        time_bonus = 0.2
    elif is_correct and time_spent <= time_limit * 0.75:
        time_bonus = 0.1

    options = question.get("options") or []
    selected = next(
        (o for o in options if o.get("id") == submitted_answer or o.get("text") == submitted_answer),
        None
    )
    correct = _correct_option(question)
    explanation = question.get("explanation") or ""
    if isinstance(explanation, dict):
        explanation = explanation.get("correct", "")

    if is_correct:
        feedback = f"Correct! {explanation}"
        if time_bonus > 0:
            feedback += f" Great time management (+{round_half_up(time_bonus * 100)}% bonus)!"
    else:
        selected_text = selected.get("text") if selected else "Unknown"
        correct_text = correct.get("text") if correct else question.get("correctAnswer")
        feedback = f'Incorrect. You selected "{selected_text}" but the correct answer is "{correct_text}". {explanation}'

    return {
        "is_correct": is_correct,
        "score": base_score + time_bonus,
        "max_score": MCQ_MAX_SCORE,
        "time_bonus": time_bonus,
        "feedback": feedback.strip(),
        "analysis": {
            "selected_option": selected.get("text") if selected else "No answer selected",
            "correct_option": correct.get("text") if correct else "Unknown",
            "explanation": explanation,
        },
    }


# ============================================================
# CODING
# ============================================================

def analyze_syntax(code: str, language: str) -> dict:
    errors: List[str] = []
    score = 2.0

    if language == "python":
        if "def " not in code and "lambda " not in code:
            errors.append("No function definition found")
            score -= 0.5
        if "\t" in code and "    " in code:
            errors.append("Mixed tabs and spaces (use consistent indentation)")
            score -= 0.3
    elif language in ("typescript", "javascript"):
        if not any(token in code for token in ("function ", "=>", "const ", "let ")):
            errors.append("No clear function or variable definition found")
            score -= 0.5
        if code.count("{") != code.count("}"):
            errors.append("Mismatched braces")
            score -= 0.4

    if len(code.strip()) < 20:
        errors.append("Solution appears incomplete or too short")
        score -= 1

    return {
        "score": max(0.0, score),
        "errors": errors,
        "suggestions": [f"Review syntax basics for {language}", "Use consistent formatting"] if score < 2 else [],
    }


def _reference_solution(question: dict) -> str:
    solution = question.get("solution") or {}
    if isinstance(solution, str):
        return solution
    return solution.get("python") or solution.get("typescript") or solution.get("javascript") or solution.get("php") or ""


def analyze_logic(code: str, question: dict) -> dict:
    score = 4.0
    has_main_logic = False
    approach = "Unknown"
    suggestions: List[str] = []
    lower_code = code.lower()

    if "for " in lower_code or "while " in lower_code or "foreach" in lower_code:
        has_main_logic = True
        approach = "Iterative approach detected"

    if "return " in lower_code or "echo " in lower_code or "print" in lower_code:
        has_main_logic = True

    expected = _reference_solution(question).lower()
    if "sort" in expected and "sort" in lower_code:
        score += 0.5
    if "binary" in expected and ("binary" in lower_code or ("left" in lower_code and "right" in lower_code)):
        score += 0.5

    if not has_main_logic:
        score -= 2
        suggestions.append("Include main algorithmic logic")
        suggestions.append("Ensure your solution returns or outputs a result")

    if len(code) < 50:
        score -= 1
        suggestions.append("Solution may be incomplete - add more implementation details")

    return {
        "score": max(0.0, min(4.0, score)),
        "has_main_logic": has_main_logic,
        "approach": approach,
        "suggestions": suggestions,
    }


def analyze_efficiency(code: str, difficulty: str) -> dict:
    score = 2.0
    suggestions: List[str] = []
    lower_code = code.lower()

    total_loops = lower_code.count("for ") + lower_code.count("while ")

    if total_loops > 2 and difficulty == "easy":
        score -= 0.5
        suggestions.append("Consider a more efficient approach with fewer nested loops")

    if total_loops > 3:
        score -= 1
        suggestions.append("Algorithm may be inefficient - review time complexity")

    if "sort" in lower_code or "binary" in lower_code:
        score += 0.2

    return {"score": max(0.0, min(2.0, score)), "suggestions": suggestions}


def analyze_completeness(code: str) -> dict:
    score = 1.5

    has_return = re.search(r"return ", code, re.IGNORECASE) is not None
    if not has_return and "print" not in code and "echo" not in code:
        score -= 0.5

    if len(code) <= 30:
        score -= 0.5

    if not re.search(r"\b(var|let|const|=)\b", code, re.IGNORECASE):
        score -= 0.3

    if "if " in code or "else" in code:
        score += 0.2

    return {"score": max(0.0, min(1.5, score))}


def _time_management_score(time_spent: int, difficulty: str) -> float:
    limit = CODING_TIME_LIMITS.get(difficulty, CODING_TIME_LIMITS["hard"])
    if time_spent <= limit:
        return 0.5
    return max(0.0, 0.5 - (time_spent - limit) / limit * 0.5)


def _coding_feedback(breakdown: dict, syntax: dict, logic: dict) -> str:
    percentage = round_half_up(sum(breakdown.values()) / CODING_MAX_SCORE * 100)

    lines = [
        f"Code Analysis Result: {percentage}%",
        "",
        "Breakdown:",
        f"• Syntax & Structure: {breakdown['syntax']}/2 points",
        f"• Logic & Algorithm: {breakdown['logic']}/4 points",
        f"• Efficiency: {breakdown['efficiency']}/2 points",
        f"• Completeness: {breakdown['completeness']}/1.5 points",
        f"• Time Management: {breakdown['time_management']}/0.5 points",
        "",
    ]
    if syntax["errors"]:
        lines += ["Syntax Issues:"] + [f"• {e}" for e in syntax["errors"]] + [""]
    if logic["suggestions"]:
        lines += ["Suggestions:"] + [f"• {s}" for s in logic["suggestions"]] + [""]

    if percentage >= 80:
        lines.append("Excellent work! Your solution demonstrates strong programming skills.")
    elif percentage >= 60:
        lines.append("Good effort! Review the suggestions to improve your solution.")
    else:
        lines.append("Keep practicing! Focus on the areas highlighted for improvement.")
    return "\n".join(lines)


def score_coding_answer(question: dict, submitted_code: str, language: str, time_spent: int) -> dict:
    difficulty = str(question.get("difficulty") or question.get("difficultyLevel") or "medium").lower()
    language = (language or "python").lower()

    syntax = analyze_syntax(submitted_code, language)
    logic = analyze_logic(submitted_code, question)
    efficiency = analyze_efficiency(submitted_code, difficulty)
    completeness = analyze_completeness(submitted_code)

    breakdown = {
        "syntax": syntax["score"],
        "logic": logic["score"],
        "efficiency": efficiency["score"],
        "completeness": completeness["score"],
        "time_management": _time_management_score(time_spent, difficulty),
    }
    total = sum(breakdown.values())

    return {
        "score": round(total, 2),
        "max_score": CODING_MAX_SCORE,
        "breakdown": breakdown,
        "feedback": _coding_feedback(breakdown, syntax, logic),
        "analysis": {
            "lines_of_code": len([line for line in submitted_code.split("\n") if line.strip()]),
            "has_main_logic": logic["has_main_logic"],
            "syntax_errors": syntax["errors"],
            "algorithmic_approach": logic["approach"],
            "suggestions": syntax["suggestions"] + logic["suggestions"] + efficiency["suggestions"],
        },
    }


# ============================================================
# BEHAVIORAL
# ============================================================

SITUATION_WORDS = ["situation", "when", "time", "project", "company", "team", "role"]
TASK_WORDS = ["task", "responsibility", "needed", "required", "goal", "objective"]
ACTION_WORDS = ["did", "implemented", "created", "developed", "managed", "led", "organized"]
RESULT_WORDS = ["result", "outcome", "achieved", "improved", "increased", "decreased", "successful"]
SPECIFIC_WORDS = ["example", "instance", "specifically", "particular", "exactly"]
IMPACT_WORDS = [
    "improved", "increased", "decreased", "reduced", "saved", "earned", "achieved",
    "successful", "exceeded", "delivered", "completed", "resolved", "solved",
]
STRUCTURE_WORDS = ["first", "second", "then", "finally", "initially", "subsequently"]
INFORMAL_WORDS = ["like", "um", "uh", "kinda", "sorta", "yeah"]
RELEVANCE_STOPWORDS = {"when", "time", "tell", "about", "describe", "what", "how"}


def _contains_any(text: str, words: List[str]) -> bool:
    return any(word in text for word in words)


def analyze_star_structure(answer: str) -> dict:
    lower = answer.lower()
    score = 0.0
    suggestions: List[str] = []

    has_situation = _contains_any(lower, SITUATION_WORDS)
    has_task = _contains_any(lower, TASK_WORDS)
    has_action = _contains_any(lower, ACTION_WORDS)
    has_result = _contains_any(lower, RESULT_WORDS)

    if has_situation:
        score += 0.25
    else:
        suggestions.append("Include more context about the situation or setting")
    if has_task:
        score += 0.25
    else:
        suggestions.append("Clearly describe your specific task or challenge")
    if has_action:
        score += 0.3
    else:
        suggestions.append("Detail the specific actions you took")
    if has_result:
        score += 0.2
    else:
        suggestions.append("Explain the results or outcomes of your actions")

    return {"score": round(score, 2), "suggestions": suggestions}


def analyze_specificity(answer: str, expected_keywords: List[str]) -> dict:
    lower = answer.lower()
    score = 0.0
    suggestions: List[str] = []

    if _contains_any(lower, SPECIFIC_WORDS):
        score += 0.3
    if re.search(r"\d+", answer) or re.search(r"%|percent", lower):
        score += 0.3
    if re.search(r"week|month|day|year|hour", lower):
        score += 0.2

    matches = len([k for k in expected_keywords if k.lower() in lower])
    score += min(0.2, matches * 0.05)

    if score < 0.5:
        suggestions.append("Provide more specific examples and details")
        suggestions.append("Include quantifiable results where possible")

    return {"score": round(min(1.0, score), 2), "suggestions": suggestions}


def analyze_relevance(answer: str, question_text: str) -> dict:
    lower = answer.lower()
    question_words = [
        word for word in question_text.lower().split()
        if len(word) > 3 and word not in RELEVANCE_STOPWORDS
    ]
    # Prefix match tolerates plural/tense differences
    matches = len([word for word in question_words if word[:-1] in lower])
    ratio = matches / len(question_words) if question_words else 0.5
    return {"score": round(min(1.0, ratio + 0.2), 2)}


def analyze_impact(answer: str) -> dict:
    lower = answer.lower()
    score = 0.0
    suggestions: List[str] = []

    has_impact = _contains_any(lower, IMPACT_WORDS)
    has_quantifiable = re.search(r"\d+%|\$\d+|\d+\s*(hours?|days?|weeks?|months?)", answer) is not None

    if has_impact:
        score += 0.5
    else:
        suggestions.append("Describe the impact or results of your actions")
    if has_quantifiable:
        score += 0.5

    return {"score": score, "has_impact": has_impact, "suggestions": suggestions}


def analyze_communication(answer: str, word_count: int) -> dict:
    lower = answer.lower()
    score = 1.0
    suggestions: List[str] = []

    if word_count < 50:
        score -= 0.3
        suggestions.append("Provide more detailed responses (aim for 100-200 words)")
    elif word_count > 300:
        score -= 0.2
        suggestions.append("Try to be more concise while maintaining detail")

    if _contains_any(lower, STRUCTURE_WORDS):
        score += 0.1

    if _contains_any(lower, INFORMAL_WORDS):
        score -= 0.2
        suggestions.append("Use more professional language")

    return {"score": round(max(0.0, min(1.0, score)), 2), "suggestions": suggestions}


def _behavioral_feedback(breakdown: dict, suggestions: List[str], category: str) -> str:
    percentage = round_half_up(sum(breakdown.values()) / BEHAVIORAL_MAX_SCORE * 100)
    category = category.lower()

    lines = [
        f"Behavioral Response Analysis: {percentage}%",
        "",
        "Assessment Areas:",
        f"• Structure (STAR method): {breakdown['structure']}/1 point",
        f"• Specificity & Examples: {breakdown['specificity']}/1 point",
        f"• Relevance to Question: {breakdown['relevance']}/1 point",
        f"• Impact & Results: {breakdown['impact']}/1 point",
        f"• Communication Quality: {breakdown['communication']}/1 point",
        "",
    ]
    if suggestions:
        lines += ["Improvement Suggestions:"] + [f"• {s}" for s in suggestions] + [""]

    if percentage >= 80:
        lines.append(
            f"Outstanding response! You effectively demonstrated {category} competency "
            f"with specific examples and clear results."
        )
    elif percentage >= 60:
        lines.append(
            f"Good response showing {category} awareness. Consider adding more specific "
            f"details and quantifiable outcomes."
        )
    else:
        lines.append(
            "Your response shows potential. Focus on providing specific examples using "
            "the STAR method and highlighting measurable results."
        )
    return "\n".join(lines)


def score_behavioral_answer(question: dict, submitted_answer: str, time_spent: int = 0) -> dict:
    lower = submitted_answer.lower()
    word_count = len(submitted_answer.split())
    expected_keywords = question.get("expectedKeywords") or question.get("keyPoints") or []
    category = question.get("category") or "General"

    star = analyze_star_structure(submitted_answer)
    specificity = analyze_specificity(submitted_answer, expected_keywords)
    relevance = analyze_relevance(submitted_answer, question.get("question", ""))
    impact = analyze_impact(submitted_answer)
    communication = analyze_communication(submitted_answer, word_count)

    breakdown = {
        "structure": star["score"],
        "specificity": specificity["score"],
        "relevance": relevance["score"],
        "impact": impact["score"],
        "communication": communication["score"],
    }
    total = sum(breakdown.values())

    feedback_suggestions = star["suggestions"] + specificity["suggestions"] + impact["suggestions"]

    return {
        "score": round(total, 2),
        "max_score": BEHAVIORAL_MAX_SCORE,
        "breakdown": breakdown,
        "feedback": _behavioral_feedback(breakdown, feedback_suggestions, category),
        "analysis": {
            "word_count": word_count,
            "keyword_matches": [k for k in expected_keywords if k.lower() in lower],
            "star_method_score": star["score"],
            "specificity_score": specificity["score"],
            "impact_mentioned": impact["has_impact"],
            "suggestions": feedback_suggestions + communication["suggestions"],
        },
    }


# ============================================================
# AGGREGATION
# ============================================================

def score_answer(question: dict, answer: dict, default_type: str) -> dict:
    """
    Score one submitted answer against its stored question.
    The question's own type wins over the interview type (combo interviews
    mix all three).
    """
    qtype = str(question.get("questionType") or question.get("type") or default_type).lower()
    text_answer = answer.get("answer") or ""
    time_spent = answer.get("timeSpent") or 0

    if not text_answer.strip():
        max_score = {"mcq": MCQ_MAX_SCORE, "coding": CODING_MAX_SCORE}.get(qtype, BEHAVIORAL_MAX_SCORE)
        return {"question_type": qtype, "score": 0, "max_score": max_score, "feedback": "No answer provided"}

    if qtype == "mcq":
        result = score_mcq_answer(question, text_answer, time_spent)
    elif qtype == "coding":
        language = answer.get("language") or question.get("primaryLanguage") or "python"
        result = score_coding_answer(question, text_answer, language, time_spent)
    else:
        result = score_behavioral_answer(question, text_answer, time_spent)

    result["question_type"] = qtype
    return result


class AnswerMismatchError(ValueError):
    """Submitted answers do not line up with the interview's questions."""


def check_answer_ids(questions: List[dict], answers: List[dict]) -> None:
    """Every answer must name a stored question, and at most once."""
    known = {str(q.get("id")) for q in questions}
    seen = set()
    for answer in answers:
        question_id = str(answer.get("questionId"))
        if question_id not in known:
            raise AnswerMismatchError(f"Unknown questionId: {question_id}")
        if question_id in seen:
            raise AnswerMismatchError(f"Duplicate answer for questionId: {question_id}")
        seen.add(question_id)


def score_interview(questions: List[dict], answers: List[dict], interview_type: str,
                    passing_score: int) -> Dict[str, Any]:
    """
    Score the interview question by question and aggregate.

    Every stored question contributes its max score; a question with no
    submitted answer scores 0. Answers are matched by questionId, so callers
    run check_answer_ids first.
    """
    by_id = {str(a.get("questionId")): a for a in answers}
    details = []
    total = 0.0
    max_total = 0.0

    for question in questions:
        question_id = question.get("id")
        answer = by_id.get(str(question_id)) or {"questionId": question_id, "answer": ""}
        result = score_answer(question, answer, interview_type)
        result["question_id"] = question_id
        details.append(result)
        total += result["score"]
        max_total += result["max_score"]

    percentage = round(total / max_total * 100, 2) if max_total > 0 else 0.0
    return {
        "score": round(total, 2),
        "max_score": round(max_total, 2),
        "percentage": percentage,
        "passed": percentage >= passing_score,
        "details": details,
    }
