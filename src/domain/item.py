"""Goal and routine domain models."""

from pydantic import BaseModel, ConfigDict, Field


class Goal(BaseModel):
    """Long-term goal; a completed goal counts as one implicit completion."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., alias="_id", description="Unique goal ID from the API")
    title: str = Field(..., description="Goal title (e.g., 'Run a marathon')")
    description: str = Field(default="", description="Detailed goal description")
    completed: bool = Field(default=False, description="Whether the goal has been completed")
    completed_at: str | None = Field(default=None, alias="completedAt", description="Completion time (ISO format)")
    created_at: str | None = Field(default=None, alias="createdAt", description="Creation time (ISO format)")


class Routine(BaseModel):
    """Recurring daily routine; completions are explicit activity records."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(..., alias="_id", description="Unique routine ID from the API")
    title: str = Field(..., description="Routine title (e.g., 'Morning stretch')")
    start_time: str | None = Field(default=None, alias="startTime", description="Start time as 'HH:MM'")
    duration_minutes: int = Field(default=0, alias="durationMinutes", description="Planned duration in minutes")
