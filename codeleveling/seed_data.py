"""
Idempotent catalog seeding

Fills the quest, question, lesson and daily task tables when they are empty.
Safe to run on every startup: tables that already have rows are left alone.
"""
import json
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from codeleveling import crud, models

logger = logging.getLogger(__name__)


QUESTS: List[Dict[str, Any]] = [
    {"title": "Arrays I: Basics", "topic": "arrays", "difficulty": 1},
    {"title": "Pointers I: Addresses", "topic": "pointers", "difficulty": 2},
    {"title": "Recursion I: Base Case", "topic": "recursion", "difficulty": 2},
]

QUESTIONS: List[Dict[str, Any]] = [
    {
        "topic": "arrays",
        "prompt": "What is the index of the first element in a C++ array?",
        "choices": ["0", "1", "Depends on array size", "-1"],
        "correct_index": 0,
        "xp": 20,
    },
    {
        "topic": "arrays",
        "prompt": "If int a[5]; what is the last valid index?",
        "choices": ["5", "4", "3", "1"],
        "correct_index": 1,
        "xp": 25,
    },
    {
        "topic": "pointers",
        "prompt": "What does the operator '&' usually mean in 'int* p = &x;' ?",
        "choices": ["Address-of", "Dereference", "Bitwise NOT", "Modulo"],
        "correct_index": 0,
        "xp": 25,
    },
    {
        "topic": "pointers",
        "prompt": "If p is an int*, what does *p represent?",
        "choices": ["The pointer address", "The value pointed to", "A reference type", "An array"],
        "correct_index": 1,
        "xp": 25,
    },
    {
        "topic": "recursion",
        "prompt": "In recursion, what is the purpose of the base case?",
        "choices": ["Make it faster", "Stop infinite recursion", "Use loops", "Allocate memory"],
        "correct_index": 1,
        "xp": 30,
    },
    {
        "topic": "recursion",
        "prompt": "Which is most likely recursive? (Pick the best answer)",
        "choices": [
            "Printing 1..n using a loop",
            "Binary search implementation",
            "Sorting by swapping neighbors once",
            "Assigning variables",
        ],
        "correct_index": 1,
        "xp": 30,
    },
]

LESSONS: Dict[str, str] = {
    "arrays": (
        "### Arrays (C++)\n"
        "- Arrays store elements contiguously in memory.\n"
        "- Indexing starts at **0**.\n"
        "- If `int a[5];` valid indices are `0..4`.\n"
        "- Access: `a[i]`.\n"
    ),
    "pointers": (
        "### Pointers (C++)\n"
        "- `&x` means **address of x**.\n"
        "- `int* p = &x;` stores x's address in p.\n"
        "- `*p` means **the value at that address** (dereference).\n"
    ),
    "recursion": (
        "### Recursion\n"
        "- A recursive function calls itself on a smaller problem.\n"
        "- The **base case** stops recursion.\n"
        "- Without a base case, you usually get infinite recursion.\n"
    ),
}

DAILY_TASKS: List[Dict[str, Any]] = [
    {"title": "Answer 1 quiz question", "xp": 15},
    {"title": "Complete 1 quest attempt", "xp": 20},
    {"title": "Review a lesson", "xp": 10},
]


def choices_json(choices: List[str]) -> str:
    return json.dumps(choices, separators=(",", ":"), ensure_ascii=False)


def answer_json(correct_index: int) -> str:
    return json.dumps({"correctIndex": correct_index}, separators=(",", ":"))


def _quest_ids_by_topic(db: Session) -> Dict[str, int]:
    quests = db.query(models.Quest).all()
    return {quest.topic: quest.id for quest in quests}


def seed_quests(db: Session) -> int:
    if crud.count_rows(db, models.Quest) > 0:
        return 0
    for quest_data in QUESTS:
        db.add(models.Quest(**quest_data))
    db.flush()
    return len(QUESTS)


def seed_questions(db: Session) -> int:
    if crud.count_rows(db, models.Question) > 0:
        return 0

    quest_ids = _quest_ids_by_topic(db)
    created = 0
    for question_data in QUESTIONS:
        quest_id = quest_ids.get(question_data["topic"])
        if quest_id is None:
            logger.warning(f"Quest for topic {question_data['topic']} not found, skipping question")
            continue
        db.add(models.Question(
            quest_id=quest_id,
            type=models.QuestionType.MCQ.value,
            prompt=question_data["prompt"],
            choices_json=choices_json(question_data["choices"]),
            answer_json=answer_json(question_data["correct_index"]),
            xp_value=question_data["xp"],
        ))
        created += 1
    db.flush()
    return created


def seed_lessons(db: Session) -> int:
    if crud.count_rows(db, models.Lesson) > 0:
        return 0

    quest_ids = _quest_ids_by_topic(db)
    created = 0
    for topic, body in LESSONS.items():
        quest_id = quest_ids.get(topic)
        if quest_id is None:
            continue
        db.add(models.Lesson(quest_id=quest_id, body=body))
        created += 1
    db.flush()
    return created


def seed_daily_tasks(db: Session) -> int:
    if crud.count_rows(db, models.DailyTask) > 0:
        return 0
    for task_data in DAILY_TASKS:
        db.add(models.DailyTask(title=task_data["title"], xp_value=task_data["xp"], active=True))
    db.flush()
    return len(DAILY_TASKS)


def seed_catalog(db: Session) -> Dict[str, int]:
    """
    Seed every catalog table that is still empty and commit.

    Returns:
        Rows created per table
    """
    try:
        stats = {
            "quests": seed_quests(db),
            "questions": seed_questions(db),
            "lessons": seed_lessons(db),
            "daily_tasks": seed_daily_tasks(db),
        }
        db.commit()
    except Exception:
        db.rollback()
        logger.error("Catalog seeding failed, rolled back")
        raise

    logger.info(f"Catalog seeded: {stats}")
    return stats
