from typing import Optional, List, Literal
from pydantic import BaseModel, Field

ExperienceLevel = Literal["entry", "mid", "senior", "executive"]
Difficulty = Literal["easy", "medium", "hard"]


class ProfileCreate(BaseModel):
    industry: Optional[str] = Field(default=None, max_length=100)
    role: Optional[str] = Field(default=None, max_length=100)
    experience_level: Optional[ExperienceLevel] = None
    target_companies: List[str] = Field(default_factory=list)
    preferred_difficulty: Difficulty = "medium"
    timezone: str = Field(default="UTC", max_length=64)


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=255)
    industry: Optional[str] = Field(default=None, max_length=100)
    role: Optional[str] = Field(default=None, max_length=100)
    experience_level: Optional[ExperienceLevel] = None
    target_companies: Optional[List[str]] = None
    preferred_difficulty: Optional[Difficulty] = None
    timezone: Optional[str] = Field(default=None, max_length=64)
