"""Request and response models for the insight endpoint."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class InsightRequest(BaseModel):
    """A natural-language question about the athlete's activity history."""

    question: str = Field(min_length=1)

    @field_validator("question")
    @classmethod
    def validate_question(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("question must not be blank")
        return value.strip()


class SupportingActivity(BaseModel):
    """An activity the answer draws on."""

    id: int
    name: str
    start_date: str


class InsightPayload(BaseModel):
    """Answer to one question plus the activities it cites."""

    model_config = ConfigDict(populate_by_name=True)

    question: str
    answer: str
    supporting_activities: list[SupportingActivity] = Field(default_factory=list, alias="supportingActivities")


class ErrorResponse(BaseModel):
    """Structured error envelope returned by the HTTP API."""

    status: int
    message: str
    details: str | list | dict | None = None
