"""
AI Service - question generation, answer analysis and practice buddy replies.
Uses OpenAI when configured and the local question bank / scoring heuristic otherwise.
"""
import asyncio
import json
import logging
import random
import re
from typing import Optional, Dict, Any, List

from openai import OpenAI

from config import settings
from services import question_bank
from services.scoring_service import fallback_feedback, clamp, overall_assessment, performance_level

logger = logging.getLogger(__name__)

PROVIDER_OPENAI = "openai"
PROVIDER_FALLBACK = "fallback"

_JSON_ARRAY_OR_OBJECT = re.compile(r"\[[\s\S]*\]|\{[\s\S]*\}")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

_ROLE_GUIDES = {
    "software engineer": "Focus on coding, algorithms, system design, debugging, code review processes",
    "marketing manager": "Focus on campaign strategy, analytics, ROI, customer acquisition, brand management",
    "sales representative": "Focus on sales process, objection handling, relationship building, quota achievement",
    "data scientist": "Focus on statistical analysis, machine learning, data visualization, business insights",
    "product manager": "Focus on product strategy, user research, roadmap planning, stakeholder management",
    "financial analyst": "Focus on financial modeling, risk assessment, market analysis, reporting",
    "nurse": "Focus on patient care, medical procedures, emergency response, healthcare protocols",
    "teacher": "Focus on lesson planning, classroom management, student engagement, curriculum development",
    "designer": "Focus on design process, user experience, visual communication, creative problem-solving",
}

_INDUSTRY_GUIDES = {
    "technology": "Include questions about innovation, scalability, agile methodologies, technical trends",
    "healthcare": "Include questions about patient safety, compliance, healthcare regulations, medical ethics",
    "finance": "Include questions about risk management, regulatory compliance, financial markets, analysis",
    "education": "Include questions about learning outcomes, student development, educational standards",
    "retail": "Include questions about customer service, inventory management, sales metrics, market trends",
    "manufacturing": "Include questions about quality control, process optimization, safety protocols",
}

_DIFFICULTY_GUIDES = {
    "easy": (
        "- Ask fundamental, entry-level questions\n"
        "- Focus on basic concepts and straightforward scenarios\n"
        "- Avoid complex technical details or advanced problem-solving"
    ),
    "medium": (
        "- Ask questions requiring some experience and deeper thinking\n"
        "- Include scenario-based questions with moderate complexity\n"
        "- Questions should differentiate between junior and mid-level candidates"
    ),
    "hard": (
        "- Ask advanced, complex questions requiring significant experience\n"
        "- Include multi-layered scenarios and edge cases\n"
        "- Test decision-making under pressure and ambiguous situations"
    ),
}

_TYPE_GUIDES = {
    "behavioral": "Use the STAR framework and ask about past experiences with specific examples.",
    "technical": "Ask about tools, technologies and methodologies, with practical problem-solving scenarios.",
    "situational": "Present hypothetical scenarios relevant to the role and ask what they would do.",
    "cultural": "Ask about work style, values, motivation and team fit.",
}


def extract_json(text: str, pattern: re.Pattern = _JSON_ARRAY_OR_OBJECT) -> Optional[Any]:
    """Pull the first JSON array/object out of model output. None when there is none or it is invalid."""
    if not text:
        return None
    match = pattern.search(text)
    if not match:
        return None
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError:
        return None


class AIService:
    """Service class for AI-backed interview content"""

    def __init__(self, api_key: Optional[str] = None, rng: Optional[random.Random] = None):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.model = settings.openai_model
        self.rng = rng or random.Random()

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _complete(self, messages: List[Dict[str, str]], temperature: float = 0.7) -> str:
        client = OpenAI(api_key=self.api_key)
        response = client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )
        content = response.choices[0].message.content
        return content.strip() if content else ""

    async def _chat(self, messages: List[Dict[str, str]], temperature: float = 0.7) -> str:
        return await asyncio.to_thread(self._complete, messages, temperature)

    # ------------------------------------------------------------------
    # Question generation
    # ------------------------------------------------------------------

    def build_question_prompt(self, params: Dict[str, Any]) -> str:
        role = params["role"]
        industry = params["industry"]
        difficulty = params["difficulty"]
        question_type = params.get("question_type")
        count = params["count"]

        role_guide = _ROLE_GUIDES.get(role.lower(), "Focus on role-specific skills and responsibilities")
        industry_guide = _INDUSTRY_GUIDES.get(industry.lower(), "Consider industry-specific challenges and requirements")
        type_guide = _TYPE_GUIDES.get(question_type, "Generate a mix of question types to assess different competencies")

        prompt = (
            f"Generate {count} realistic interview question(s) for a {params['experience_level']} level "
            f"{role} position in the {industry} industry.\n\n"
            f"DIFFICULTY ({difficulty.upper()}):\n{_DIFFICULTY_GUIDES.get(difficulty, '')}\n\n"
            f"ROLE & INDUSTRY CONTEXT:\n{role_guide}\n{industry_guide}\n\n"
            f"QUESTION TYPE FOCUS:\n{type_guide}\n\n"
        )
        if params.get("previous_questions"):
            prompt += f"AVOID THESE QUESTIONS: {', '.join(params['previous_questions'])}\n\n"
        prompt += (
            "Respond with a JSON array. Each item must have exactly these keys:\n"
            '{"question": str, "type": "behavioral|technical|situational|cultural", '
            f'"difficulty": "{difficulty}", "category": str, "tips": [str], '
            '"evaluationCriteria": [str], "followUpQuestions": [str], '
            f'"timeToAnswer": {question_bank.time_to_answer(difficulty)}}}'
        )
        return prompt

    def parse_question_response(self, content: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Normalise model output into question dicts; empty list when unusable."""
        parsed = extract_json(content)
        if parsed is None:
            return []
        items = parsed if isinstance(parsed, list) else [parsed]

        questions = []
        for item in items:
            if not isinstance(item, dict) or not item.get("question"):
                continue
            qtype = item.get("type") if item.get("type") in question_bank.QUESTION_TYPES else (
                params.get("question_type") or "behavioral"
            )
            difficulty = item.get("difficulty") if item.get("difficulty") in question_bank.DIFFICULTIES else params["difficulty"]
            questions.append({
                "question_text": str(item["question"]).strip(),
                "question_type": qtype,
                "difficulty": difficulty,
                "category": item.get("category") or "General",
                "industry": params["industry"],
                "role": params["role"],
                "tips": list(item.get("tips") or question_bank.tips_for(difficulty)),
                "evaluation_criteria": list(item.get("evaluationCriteria") or question_bank.evaluation_criteria(qtype, params["role"])),
                "follow_up_questions": list(item.get("followUpQuestions") or question_bank.follow_up_questions(qtype)),
                "time_to_answer": question_bank.time_to_answer(difficulty),
                "is_ai_generated": True,
            })
        return questions[:params["count"]]

    async def generate_questions(self, params: Dict[str, Any]) -> tuple[List[Dict[str, Any]], str]:
        """
        Generate params["count"] questions.

        Returns:
            (questions, provider) where provider is "openai" or "fallback"
        """
        def fallback():
            return question_bank.template_questions(
                count=params["count"],
                industry=params["industry"],
                role=params["role"],
                difficulty=params["difficulty"],
                experience_level=params["experience_level"],
                question_type=params.get("question_type"),
                previous=params.get("previous_questions"),
                rng=self.rng,
            )

        if not self.enabled:
            logger.warning("OpenAI API key not configured - using question bank")
            return fallback(), PROVIDER_FALLBACK

        try:
            content = await self._chat([
                {"role": "system", "content": "You are an expert interview coach who writes realistic interview questions."},
                {"role": "user", "content": self.build_question_prompt(params)},
            ], temperature=0.8)
        except Exception as e:
            logger.warning(f"OpenAI question generation failed: {e} - using question bank")
            return fallback(), PROVIDER_FALLBACK

        questions = self.parse_question_response(content, params)
        if len(questions) < params["count"]:
            logger.warning(
                f"OpenAI returned {len(questions)} usable question(s) of {params['count']} - topping up from question bank"
            )
            extra = dict(params, count=params["count"] - len(questions),
                         previous_questions=(params.get("previous_questions") or []) + [q["question_text"] for q in questions])
            questions += question_bank.template_questions(
                count=extra["count"],
                industry=params["industry"],
                role=params["role"],
                difficulty=params["difficulty"],
                experience_level=params["experience_level"],
                question_type=params.get("question_type"),
                previous=extra["previous_questions"],
                rng=self.rng,
            )
            if not any(q["is_ai_generated"] for q in questions):
                return questions, PROVIDER_FALLBACK
        return questions, PROVIDER_OPENAI

    # ------------------------------------------------------------------
    # Answer analysis
    # ------------------------------------------------------------------

    def build_feedback_prompt(self, params: Dict[str, Any]) -> str:
        return (
            "Analyze this interview answer and provide constructive feedback.\n\n"
            f"Question: {params['question']}\n"
            f"Question Type: {params.get('question_type') or 'behavioral'}\n"
            f"Industry: {params.get('industry') or 'general'}\n"
            f"Role: {params.get('role') or 'professional'}\n\n"
            f"User's Answer: {params['answer']}\n\n"
            "Respond with JSON only:\n"
            '{"score": 0-100, "strengths": [str], "improvements": [str], "tips": [str], '
            '"overallAssessment": str, "suggestedFollowUp": str}\n\n'
            "Consider relevance, specific examples, clarity, industry knowledge and structure "
            "(e.g. STAR for behavioral questions)."
        )

    def parse_feedback_response(self, content: str) -> Optional[Dict[str, Any]]:
        parsed = extract_json(content, _JSON_OBJECT)
        if not isinstance(parsed, dict) or "score" not in parsed:
            return None
        try:
            score = clamp(float(parsed["score"]), 0, 100)
        except (TypeError, ValueError):
            return None
        return {
            "score": score,
            "strengths": list(parsed.get("strengths") or [])[:4],
            "improvements": list(parsed.get("improvements") or [])[:3],
            "tips": list(parsed.get("tips") or [])[:3],
            "overall_assessment": parsed.get("overallAssessment") or overall_assessment(score),
            "performance_level": performance_level(score),
            "suggested_follow_up": parsed.get("suggestedFollowUp"),
        }

    async def analyze_answer(self, params: Dict[str, Any]) -> tuple[Dict[str, Any], str]:
        """
        Score an answer.

        Returns:
            (feedback, provider). Empty answers skip the provider and take the baseline score.
        """
        answer = params.get("answer") or ""
        question_type = params.get("question_type")

        if not self.enabled or not answer.strip():
            if not self.enabled:
                logger.warning("OpenAI API key not configured - using local scoring")
            return fallback_feedback(answer, question_type, self.rng), PROVIDER_FALLBACK

        try:
            content = await self._chat([
                {"role": "system", "content": "You are an experienced interviewer giving structured, honest feedback."},
                {"role": "user", "content": self.build_feedback_prompt(params)},
            ], temperature=0.3)
        except Exception as e:
            logger.warning(f"OpenAI answer analysis failed: {e} - using local scoring")
            return fallback_feedback(answer, question_type, self.rng), PROVIDER_FALLBACK

        feedback = self.parse_feedback_response(content)
        if feedback is None:
            logger.warning("OpenAI answer analysis returned unparseable output - using local scoring")
            return fallback_feedback(answer, question_type, self.rng), PROVIDER_FALLBACK
        return feedback, PROVIDER_OPENAI

    # ------------------------------------------------------------------
    # Practice buddy
    # ------------------------------------------------------------------

    async def generate_buddy_response(self, context: str, message: str) -> tuple[str, str]:
        if not self.enabled:
            return "Great point! Let me think about that...", PROVIDER_FALLBACK
        try:
            reply = await self._chat([
                {"role": "system", "content": "You are a friendly practice interview partner. Be helpful and encouraging."},
                {"role": "user", "content": f"Context: {context}\n\nUser said: {message}"},
            ], temperature=0.9)
        except Exception as e:
            logger.warning(f"OpenAI buddy response failed: {e} - using canned reply")
            return "That's interesting! Can you elaborate more on that?", PROVIDER_FALLBACK
        return reply or "That's interesting! Can you elaborate more on that?", PROVIDER_OPENAI


def get_ai_service() -> AIService:
    """FastAPI dependency; tests override it with a seeded or keyless instance."""
    return AIService()
