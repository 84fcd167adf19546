"""
Local answer scoring used when the AI provider is not configured or fails.

Scores are heuristic: a base score adjusted by answer length and keyword
signals, a little jitter, clamped to [50, 95].
"""
import random
import re
from typing import Optional

BASE_SCORE = 65
EMPTY_ANSWER_SCORE = 70
MIN_SCORE = 50
MAX_SCORE = 95

STRUCTURE_RE = re.compile(r"\b(first|then|finally)\b", re.IGNORECASE)
SPECIFICS_RE = re.compile(r"\d+|%|months?|years?|team|project", re.IGNORECASE)
RESULT_RE = re.compile(r"result|outcome|achieved|improved|increased|decreased", re.IGNORECASE)
ACTION_RE = re.compile(r"\b(I|my|we|our)\b", re.IGNORECASE)
DIGIT_RE = re.compile(r"\d+")
TEAMWORK_RE = re.compile(r"team|collaborate|together", re.IGNORECASE)
PROBLEM_RE = re.compile(r"challenge|problem|solution", re.IGNORECASE)
OUTCOME_RE = re.compile(r"result|outcome|achieved", re.IGNORECASE)
FIRST_PERSON_RE = re.compile(r"\b(I|my)\b", re.IGNORECASE)

# Mock interview categories and the question type that feeds each one
CATEGORY_BY_TYPE = {
    "behavioral": "communication",
    "technical": "technical",
    "situational": "problem_solving",
    "cultural": "cultural",
}


def clamp(value: float, low: int = MIN_SCORE, high: int = MAX_SCORE) -> int:
    return int(max(low, min(high, value)))


def length_delta(length: int) -> int:
    if length >= 300:
        return 10
    if length >= 200:
        return 5
    if length < 100:
        return -10
    return 0


def raw_score(answer: str, question_type: Optional[str]) -> int:
    """Score before jitter and clamping."""
    length = len(answer)
    has_structure = bool(STRUCTURE_RE.search(answer))
    has_specifics = bool(SPECIFICS_RE.search(answer))
    has_result = bool(RESULT_RE.search(answer))
    has_action = bool(ACTION_RE.search(answer))

    score = BASE_SCORE + length_delta(length)
    if has_structure:
        score += 8
    if has_specifics:
        score += 10
    if has_result:
        score += 8
    if has_action:
        score += 4

    if question_type == "behavioral" and has_specifics:
        score += 5
    if question_type == "technical" and length > 400:
        score += 5
    if question_type == "situational" and has_result:
        score += 5
    return score


def score_answer(answer: Optional[str], question_type: Optional[str], rng: Optional[random.Random] = None) -> int:
    """
    Heuristic 50..95 score for a free-text answer.
    An empty answer, or no question type, scores the 70 baseline.
    """
    if not answer or not answer.strip() or not question_type:
        return EMPTY_ANSWER_SCORE
    rng = rng or random.Random()
    return clamp(raw_score(answer, question_type) + rng.randint(-5, 4))


def build_strengths(score: int, answer: str, question_type: Optional[str]) -> list[str]:
    if score >= 85:
        strengths = [
            "Exceptional answer structure using clear framework",
            "Outstanding use of specific, quantifiable examples",
            "Demonstrated strong alignment with role requirements",
        ]
    elif score >= 75:
        strengths = [
            "Good answer structure with logical flow",
            "Effective use of relevant examples from experience",
            "Clear communication of key points",
        ]
    elif score >= 65:
        strengths = [
            "Adequate response to the question asked",
            "Attempted to provide specific examples",
            "Maintained professional tone",
        ]
    else:
        strengths = [
            "Showed effort to answer the question",
            "Demonstrated willingness to share experiences",
        ]

    if len(answer) > 300:
        strengths.append("Comprehensive coverage of the topic")
    if DIGIT_RE.search(answer):
        strengths.append("Included quantifiable metrics and data")
    if TEAMWORK_RE.search(answer):
        strengths.append("Highlighted teamwork and collaboration skills")
    if PROBLEM_RE.search(answer):
        strengths.append("Demonstrated problem-solving approach")

    if question_type == "behavioral":
        strengths.append("Provided concrete behavioral examples")
    elif question_type == "technical":
        strengths.append("Showed technical understanding")
    elif question_type == "situational":
        strengths.append("Good situational judgment")

    return strengths[:4]


def build_improvements(score: int, answer: str) -> list[str]:
    if score < 65:
        improvements = [
            "Structure your answer using the STAR method",
            "Provide more specific examples from your experience",
            "Expand on the results and impact of your actions",
        ]
    elif score < 75:
        improvements = [
            "Add more quantifiable metrics to demonstrate impact",
            "Provide more context about the situation",
            "Explain your decision-making process more clearly",
        ]
    elif score < 85:
        improvements = [
            "Fine-tune your examples for stronger relevance",
            "Highlight leadership and initiative more prominently",
            "Connect your answer more directly to the role",
        ]
    else:
        improvements = [
            "Consider adding industry-specific insights",
            "Demonstrate strategic thinking at a higher level",
        ]

    if len(answer) < 200:
        improvements.append("Provide more detail to fully showcase your experience")
    elif len(answer) > 700:
        improvements.append("Be more concise while maintaining key points")

    if not DIGIT_RE.search(answer):
        improvements.append("Include specific numbers, percentages, or timeframes")
    if not OUTCOME_RE.search(answer):
        improvements.append("Clearly state the outcome and impact of your actions")
    if not FIRST_PERSON_RE.search(answer):
        improvements.append('Use more "I" statements to highlight your personal contribution')

    return improvements[:3]


def build_tips(score: int, question_type: Optional[str]) -> list[str]:
    if score < 70:
        tips = [
            "Practice answering this question 3-5 times to improve fluency",
            "Write down your answer first, then practice speaking it",
            "Record yourself and listen for areas to improve",
        ]
    elif score < 80:
        tips = [
            "Research common follow-up questions for this topic",
            "Prepare 2-3 alternative examples for variety",
            "Time yourself to ensure 1-2 minute responses",
        ]
    else:
        tips = [
            "Practice delivering with confident body language",
            "Prepare insightful questions to ask the interviewer",
            "Research company-specific angles for this answer",
        ]

    if question_type == "behavioral":
        tips.append("Build a story bank of 8-10 diverse experiences")
    elif question_type == "technical":
        tips.append("Review technical concepts related to this topic")
    elif question_type == "situational":
        tips.append("Practice more hypothetical scenario questions")

    return tips[:3]


def overall_assessment(score: int) -> str:
    if score >= 80:
        return "Excellent response! You demonstrated strong understanding and communication skills."
    if score >= 60:
        return "Good effort with some areas for improvement. Keep practicing!"
    return "This is a good start. Focus on the improvement areas for a stronger response."


def performance_level(score: int) -> str:
    if score >= 85:
        return "Advanced"
    if score >= 75:
        return "Proficient"
    if score >= 65:
        return "Developing"
    return "Beginner"


def fallback_feedback(answer: Optional[str], question_type: Optional[str], rng: Optional[random.Random] = None) -> dict:
    """Full feedback payload produced without the AI provider."""
    answer = answer or ""
    score = score_answer(answer, question_type, rng)
    return {
        "score": score,
        "strengths": build_strengths(score, answer, question_type),
        "improvements": build_improvements(score, answer),
        "tips": build_tips(score, question_type),
        "overall_assessment": overall_assessment(score),
        "performance_level": performance_level(score),
        "suggested_follow_up": "Can you provide a specific example of how you applied this in your previous role?",
    }


# ---------------------------------------------------------------------------
# Mock interview report
# ---------------------------------------------------------------------------

def _average_length(answers: list[str]) -> float:
    if not answers:
        return 0.0
    return sum(len(a) for a in answers) / len(answers)


def interview_strengths(score: int, answers: list[str]) -> list[str]:
    if score >= 85:
        strengths = [
            "Exceptional clarity and structure in responses",
            "Strong use of specific, relevant examples",
            "Excellent demonstration of industry knowledge",
            "Confident and professional communication style",
        ]
    elif score >= 75:
        strengths = [
            "Good communication with clear examples",
            "Structured approach to answering questions",
            "Demonstrated relevant experience effectively",
            "Maintained professional tone throughout",
        ]
    elif score >= 65:
        strengths = [
            "Adequate response structure",
            "Provided relevant examples when asked",
            "Showed understanding of role requirements",
        ]
    else:
        strengths = [
            "Attempted to provide relevant examples",
            "Showed willingness to learn and improve",
            "Maintained respectful communication",
        ]

    avg_length = _average_length(answers)
    if avg_length > 500:
        strengths.append("Comprehensive and detailed responses")
    elif avg_length > 200:
        strengths.append("Concise yet informative answers")
    return strengths[:4]


def interview_improvements(score: int, answers: list[str]) -> list[str]:
    if score < 70:
        improvements = [
            "Provide more specific examples from your experience",
            "Structure answers using STAR method consistently",
            "Quantify achievements with metrics when possible",
        ]
    elif score < 80:
        improvements = [
            "Add more measurable outcomes to your examples",
            "Demonstrate deeper understanding of industry trends",
            "Connect your experience more directly to job requirements",
        ]
    elif score < 90:
        improvements = [
            "Fine-tune storytelling for maximum impact",
            "Show more strategic thinking in problem-solving examples",
            "Highlight leadership qualities more prominently",
        ]
    else:
        improvements = [
            "Consider adding more innovative solutions in examples",
            "Demonstrate thought leadership in your field",
            "Show how you drive organizational change",
        ]

    avg_length = _average_length(answers)
    if avg_length < 150:
        improvements.append("Provide more detailed responses to fully showcase your experience")
    elif avg_length > 800:
        improvements.append("Focus on being more concise while maintaining key details")
    return improvements[:3]


def interview_recommendations(score: int, category_scores: dict) -> list[str]:
    if score < 70:
        recommendations = [
            "Practice 10-15 common interview questions daily for next 2 weeks",
            "Record yourself answering questions to improve delivery",
            "Create a portfolio of 5-7 strong STAR stories",
        ]
    elif score < 85:
        recommendations = [
            "Focus on industry-specific preparation for your target companies",
            "Practice with mock interviews 2-3 times per week",
            "Research each company's culture and values deeply",
        ]
    else:
        recommendations = [
            "Fine-tune answers for executive presence",
            "Prepare thoughtful questions that show strategic thinking",
            "Practice handling curveball questions smoothly",
        ]

    if category_scores.get("communication", 100) < 75:
        recommendations.append("Work on verbal clarity and reducing filler words")
    if category_scores.get("technical", 100) < 75:
        recommendations.append("Strengthen technical knowledge for your specific role")
    if category_scores.get("problem_solving", 100) < 75:
        recommendations.append("Practice case studies and problem-solving scenarios")
    if category_scores.get("cultural", 100) < 75:
        recommendations.append("Research company values and align your responses accordingly")
    return recommendations


def _dedupe(items: list[str]) -> list[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def build_interview_report(results: list[dict]) -> dict:
    """
    Aggregate per-answer results into a mock interview report.

    Each result is {"question_type", "answer", "score", "strengths", "improvements", "tips"}.
    """
    if not results:
        raise ValueError("Cannot build a report without answers")

    answers = [r.get("answer") or "" for r in results]
    overall = round(sum(r["score"] for r in results) / len(results))

    category_scores = {
        "communication": overall,
        "technical": max(65, overall - 8),
        "problem_solving": max(70, overall - 5),
        "cultural": min(95, overall + 5),
    }
    by_category: dict[str, list[int]] = {}
    for result in results:
        category = CATEGORY_BY_TYPE.get(result.get("question_type"))
        if category:
            by_category.setdefault(category, []).append(result["score"])
    for category, scores in by_category.items():
        category_scores[category] = round(sum(scores) / len(scores))

    all_strengths = _dedupe([s for r in results for s in r.get("strengths", [])])
    all_improvements = _dedupe([s for r in results for s in r.get("improvements", [])])

    return {
        "overall_score": overall,
        "category_scores": category_scores,
        "strengths": all_strengths[:4] or interview_strengths(overall, answers),
        "improvements": all_improvements[:3] or interview_improvements(overall, answers),
        "recommendations": interview_recommendations(overall, category_scores),
        "performance_level": performance_level(overall),
        "question_count": len(results),
    }


def fallback_interview_report(answers: list[str], rng: Optional[random.Random] = None) -> dict:
    """Report with randomized category variance, used when per-answer scoring failed."""
    rng = rng or random.Random()
    base = rng.randint(70, 94)
    length_bonus = min(10, int(_average_length(answers) // 100))
    overall = min(95, base + length_bonus)

    def variance() -> int:
        return rng.randint(-7, 7)

    category_scores = {
        "communication": clamp(overall + variance(), 60, 95),
        "technical": clamp(overall - 5 + variance(), 60, 95),
        "problem_solving": clamp(overall - 2 + variance(), 60, 95),
        "cultural": clamp(overall + 3 + variance(), 60, 95),
    }
    return {
        "overall_score": overall,
        "category_scores": category_scores,
        "strengths": interview_strengths(overall, answers),
        "improvements": interview_improvements(overall, answers),
        "recommendations": interview_recommendations(overall, category_scores),
        "performance_level": performance_level(overall),
        "question_count": len(answers),
    }
