# survey_bot/models.py
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

MAX_ANSWERS = 5


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# ---------- Stored records ----------

class Survey(BaseModel):
    """One posted question and the respondents per answer."""
    form_id: str
    item_id: str
    conv_id: str
    question: str
    answers: List[str] = Field(..., min_length=1, max_length=MAX_ANSWERS)
    answer_user_ids: List[List[str]]
    created_at: str = Field(default_factory=utc_now_iso)

    @model_validator(mode="after")
    def _one_slot_per_answer(self) -> "Survey":
        if len(self.answer_user_ids) != len(self.answers):
            raise ValueError(
                f"{len(self.answers)} answers but {len(self.answer_user_ids)} respondent lists"
            )
        return self

    def tally(self) -> List[int]:
        return [len(ids) for ids in self.answer_user_ids]

    @property
    def total_responses(self) -> int:
        return sum(self.tally())


# ---------- Inbound ----------

class SurveyIn(BaseModel):
    """Fields of the "post survey" web form."""
    conv_id: str = Field(..., alias="convId")
    question: str
    answer1: Optional[str] = None
    answer2: Optional[str] = None
    answer3: Optional[str] = None
    answer4: Optional[str] = None
    answer5: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    def answers(self) -> List[Optional[str]]:
        return [self.answer1, self.answer2, self.answer3, self.answer4, self.answer5]


class FormDataField(BaseModel):
    name: Optional[str] = None
    value: str


class SubmittedForm(BaseModel):
    id: str
    data: List[FormDataField] = Field(default_factory=list)


class FormSubmissionEvent(BaseModel):
    """
    A respondent clicked an answer button, e.g.
      {"form": {"id": "ecah0uic6u7w", "data": [{"name": "answers", "value": "1"}]},
       "itemId": "87010568-...", "submitterId": "0e372ae0-..."}
    """
    form: SubmittedForm
    item_id: Optional[str] = Field(None, alias="itemId")
    submitter_id: str = Field(..., alias="submitterId")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def selected_value(self) -> Optional[str]:
        return self.form.data[0].value if self.form.data else None


class WebhookDelivery(BaseModel):
    """Envelope Circuit posts to a registered webhook URL."""
    type: str
    submit_form_data: Optional[Dict[str, Any]] = Field(None, alias="submitFormData")
    user: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")
