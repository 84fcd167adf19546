from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class AchievementCreate(BaseModel):
    achievement_type: str = Field(min_length=1, max_length=50)
    achievement_name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    icon_name: Optional[str] = Field(default=None, max_length=50)
    metadata: Dict[str, Any] = Field(default_factory=dict)
