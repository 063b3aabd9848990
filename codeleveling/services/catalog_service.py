"""Content Catalog - quests, lessons and next-question selection"""
import json
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from codeleveling import crud
from codeleveling.schemas import QuestionOut, QuestSummary

logger = logging.getLogger(__name__)


def parse_choices(choices_json: Optional[str]) -> List[str]:
    """Decode a stored JSON array of choices; anything else gives []"""
    try:
        data = json.loads(choices_json or "")
    except (TypeError, ValueError):
        logger.warning(f"Malformed choices_json: {choices_json!r}")
        return []

    if not isinstance(data, list):
        return []
    return [item if isinstance(item, str) else json.dumps(item) for item in data]


class CatalogService:
    """Read-only access to the quest catalog for one session"""

    def __init__(self, db: Session):
        self.db = db

    def get_next_question(self, user_id: int, quest_id: int) -> Optional[QuestionOut]:
        """
        Lowest-id question in the quest the user has not answered correctly.

        None means the quest is mastered (or has no questions).
        """
        question = crud.get_next_unanswered_question(self.db, user_id, quest_id)
        if question is None:
            logger.info(f"No unanswered questions left for user {user_id} in quest {quest_id}")
            return None

        return QuestionOut(
            id=question.id,
            quest_id=question.quest_id,
            type=question.type,
            prompt=question.prompt,
            choices=parse_choices(question.choices_json),
            xp=question.xp_value,
        )

    def get_lesson(self, quest_id: int) -> str:
        lesson = crud.get_lesson(self.db, quest_id)
        return lesson.body if lesson else ""

    def list_quests(self, user_id: int) -> List[QuestSummary]:
        rows = crud.get_quests_with_progress(self.db, user_id)
        return [QuestSummary(**row) for row in rows]
