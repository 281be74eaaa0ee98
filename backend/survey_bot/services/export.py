# survey_bot/services/export.py
"""Survey downloads (JSON and Excel)."""
import io
import json
from typing import List

import pandas as pd

from survey_bot.models import MAX_ANSWERS, Survey


COLUMNS = ["created_at", "conv_id", "item_id", "form_id", "question"] + [
    f"answer{n}{suffix}" for n in range(1, MAX_ANSWERS + 1) for suffix in ("", "UserIds", "Count")
]


def surveys_to_json(surveys: List[Survey]) -> str:
    return json.dumps([s.model_dump() for s in surveys], ensure_ascii=False, indent=4)


def surveys_to_frame(surveys: List[Survey]) -> pd.DataFrame:
    """One row per survey with answerN / answerNUserIds / answerNCount columns."""
    rows = []
    for s in surveys:
        row = {
            "created_at": s.created_at,
            "conv_id": s.conv_id,
            "item_id": s.item_id,
            "form_id": s.form_id,
            "question": s.question,
        }
        for i in range(MAX_ANSWERS):
            n = i + 1
            if i < len(s.answers):
                row[f"answer{n}"] = s.answers[i]
                row[f"answer{n}UserIds"] = ", ".join(s.answer_user_ids[i])
                row[f"answer{n}Count"] = len(s.answer_user_ids[i])
            else:
                row[f"answer{n}"] = None
                row[f"answer{n}UserIds"] = None
                row[f"answer{n}Count"] = None
        rows.append(row)
    return pd.DataFrame(rows, columns=COLUMNS)


def surveys_to_xlsx(surveys: List[Survey]) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        surveys_to_frame(surveys).to_excel(writer, sheet_name="surveys", index=False)
    return buf.getvalue()
