"""
Template question bank used when the AI provider is unavailable,
plus the per-type/per-difficulty tips, criteria and follow-ups.
"""
import random
from typing import Optional

QUESTION_TYPES = ("behavioral", "technical", "situational", "cultural")
DIFFICULTIES = ("easy", "medium", "hard")
EXPERIENCE_LEVELS = ("entry", "mid", "senior", "executive")

TIME_TO_ANSWER = {"easy": 90, "medium": 120, "hard": 180}
MOCK_INTERVIEW_TIME_LIMIT = 120

CATEGORIES = [
    {"id": "leadership", "name": "Leadership", "question_type": "behavioral"},
    {"id": "problem-solving", "name": "Problem Solving", "question_type": "behavioral"},
    {"id": "adaptability", "name": "Adaptability", "question_type": "behavioral"},
    {"id": "teamwork", "name": "Teamwork", "question_type": "behavioral"},
    {"id": "technical-knowledge", "name": "Technical Knowledge", "question_type": "technical"},
    {"id": "technical-problem-solving", "name": "Technical Problem Solving", "question_type": "technical"},
    {"id": "industry-expertise", "name": "Industry Expertise", "question_type": "technical"},
    {"id": "technical-experience", "name": "Technical Experience", "question_type": "technical"},
    {"id": "time-management", "name": "Time Management", "question_type": "situational"},
    {"id": "client-relations", "name": "Client Relations", "question_type": "situational"},
    {"id": "crisis-management", "name": "Crisis Management", "question_type": "situational"},
    {"id": "prioritization", "name": "Prioritization", "question_type": "situational"},
    {"id": "work-environment", "name": "Work Environment", "question_type": "cultural"},
    {"id": "motivation", "name": "Motivation", "question_type": "cultural"},
    {"id": "career-goals", "name": "Career Goals", "question_type": "cultural"},
    {"id": "growth-mindset", "name": "Growth Mindset", "question_type": "cultural"},
]

INDUSTRIES = ["technology", "healthcare", "finance", "education", "retail", "manufacturing", "marketing", "consulting"]

_TEMPLATES = {
    "behavioral": [
        ("Tell me about a time when you had to lead a {prefix}project in {industry}.", "Leadership"),
        ("Describe a challenging situation you faced as a {role} and how you resolved it.", "Problem Solving"),
        ("Give an example of when you had to adapt to significant changes in your {industry} role.", "Adaptability"),
        ("Tell me about a time you had to collaborate with difficult team members on a {role} project.", "Teamwork"),
    ],
    "technical": [
        ("What {prefix}technologies and tools are essential for a {role} in {industry}?", "Technical Knowledge"),
        ("How would you approach solving a {prefix}technical challenge specific to {industry}?", "Technical Problem Solving"),
        ("Explain your experience with industry-standard practices in {industry} for {role} positions.", "Industry Expertise"),
        ("Describe the most {prefix}technical project you've worked on as a {role}.", "Technical Experience"),
    ],
    "situational": [
        ("What would you do if you were assigned a {prefix}project in {industry} with an unrealistic deadline?", "Time Management"),
        ("How would you handle a situation where a key client in {industry} was dissatisfied with your {role} work?", "Client Relations"),
        ("If you discovered a significant error in a {role} deliverable just before the deadline, how would you handle it?", "Crisis Management"),
        ("How would you prioritize multiple {prefix}tasks as a {level} level {role}?", "Prioritization"),
    ],
    "cultural": [
        ("What type of {industry} work environment allows you to perform best as a {role}?", "Work Environment"),
        ("How do you stay motivated during challenging periods in {industry}?", "Motivation"),
        ("What are your long-term career goals as a {role} in the {industry} industry?", "Career Goals"),
        ("How do you approach continuous learning and development in your {role} career?", "Growth Mindset"),
    ],
}

_TIPS = {
    "easy": [
        "Keep your answer simple and direct",
        "Use one clear example from your experience",
        "Focus on the basics and what you learned",
    ],
    "medium": [
        "Structure your answer using the STAR method",
        "Provide specific examples and metrics where possible",
        "Show your problem-solving process clearly",
    ],
    "hard": [
        "Demonstrate strategic thinking and complex analysis",
        "Include multiple perspectives and considerations",
        "Show leadership and decision-making under pressure",
    ],
}

_FOLLOW_UPS = {
    "behavioral": ["What specific steps did you take?", "What would you do differently next time?"],
    "technical": ["Can you explain the technical details?", "How would you scale this solution?"],
    "situational": ["What factors would influence your decision?", "How would you measure success?"],
    "cultural": ["Can you give me a specific example?", "How does this align with your values?"],
}


def time_to_answer(difficulty: str) -> int:
    return TIME_TO_ANSWER.get(difficulty, 120)


def tips_for(difficulty: str) -> list[str]:
    return list(_TIPS.get(difficulty, _TIPS["medium"]))


def evaluation_criteria(question_type: str, role: str) -> list[str]:
    criteria = {
        "behavioral": ["Past behavior patterns", "Soft skills demonstration", "Problem-solving approach"],
        "technical": [f"{role}-specific technical knowledge", "Industry best practices", "Practical application"],
        "situational": ["Decision-making process", "Analytical thinking", "Practical solutions"],
        "cultural": ["Team fit", "Company values alignment", "Communication style"],
    }
    return criteria.get(question_type, ["Communication skills", "Relevant experience"])


def follow_up_questions(question_type: str) -> list[str]:
    return list(_FOLLOW_UPS.get(question_type, ["Can you elaborate on that?", "What was the outcome?"]))


def _difficulty_prefix(difficulty: str) -> str:
    if difficulty == "hard":
        return "complex "
    if difficulty == "easy":
        return "basic "
    return ""


def template_question(
    question_type: str,
    industry: str,
    role: str,
    difficulty: str,
    experience_level: str,
    rng: Optional[random.Random] = None,
    exclude: Optional[set] = None,
) -> dict:
    """Pick one template question of question_type, avoiding texts in exclude when possible."""
    rng = rng or random.Random()
    options = [
        (text.format(prefix=_difficulty_prefix(difficulty), industry=industry, role=role, level=experience_level), category)
        for text, category in _TEMPLATES.get(question_type, [])
    ]
    if not options:
        options = [(f"Tell me about your experience as a {role} in {industry}.", "General Experience")]

    fresh = [option for option in options if not exclude or option[0] not in exclude]
    text, category = rng.choice(fresh or options)
    return {
        "question_text": text,
        "question_type": question_type,
        "difficulty": difficulty,
        "category": category,
        "industry": industry,
        "role": role,
        "tips": tips_for(difficulty),
        "evaluation_criteria": evaluation_criteria(question_type, role),
        "follow_up_questions": follow_up_questions(question_type),
        "time_to_answer": time_to_answer(difficulty),
        "is_ai_generated": False,
    }


def template_questions(
    count: int,
    industry: str,
    role: str,
    difficulty: str,
    experience_level: str,
    question_type: Optional[str] = None,
    previous: Optional[list[str]] = None,
    rng: Optional[random.Random] = None,
) -> list[dict]:
    """count questions; without question_type they rotate through the four types."""
    rng = rng or random.Random()
    used = set(previous or [])
    questions = []
    for index in range(count):
        qtype = question_type or QUESTION_TYPES[index % len(QUESTION_TYPES)]
        question = template_question(qtype, industry, role, difficulty, experience_level, rng, used)
        used.add(question["question_text"])
        questions.append(question)
    return questions
