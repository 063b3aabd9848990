"""
Tests para ProgressService

Valida:
- Completar quests (best score, unlock del siguiente, XP)
- Respuestas con XP una sola vez por pregunta
- Auto-completado al dominar todas las preguntas
- Level up y mensajes
- Errores de base de datos como eventos
"""
import pytest
from sqlalchemy import select

from codeleveling import crud, models
from codeleveling.models import QuestStatus
from codeleveling.schemas import NotificationKind
from codeleveling.services.progress_service import ProgressService, parse_correct_index


# ========== FIXTURES ==========

@pytest.fixture
def service(db, settings, clock):
    return ProgressService(db, settings, clock)


@pytest.fixture
def quest_ids(db):
    return crud.get_quest_ids(db)


def questions_of(db, quest_id):
    return db.execute(
        select(models.Question).where(models.Question.quest_id == quest_id).order_by(models.Question.id)
    ).scalars().all()


def status_of(db, user_id, quest_id):
    return crud.get_progress(db, user_id, quest_id).status


def set_xp(db, user_id, total_xp, level):
    stats = crud.get_stats(db, user_id)
    crud.update_stats(db, stats, total_xp, level, stats.last_active)
    db.commit()


# ========== PARSING ==========

class TestParseCorrectIndex:

    def test_valid(self):
        assert parse_correct_index('{"correctIndex":2}') == 2

    @pytest.mark.parametrize("raw", [
        None,
        "",
        "not json",
        "[1, 2]",
        '{"other": 1}',
        '{"correctIndex": "1"}',
        '{"correctIndex": true}',
    ])
    def test_malformed_gives_minus_one(self, raw):
        assert parse_correct_index(raw) == -1


# ========== QUEST COMPLETION ==========

class TestCompleteQuest:
    """Tests para completar quests manualmente"""

    def test_compute_level_uses_settings(self, db, settings, clock):
        settings.XP_PER_LEVEL = 100
        service = ProgressService(db, settings, clock)

        assert service.compute_level(0) == 1
        assert service.compute_level(250) == 3

    def test_new_user_has_first_quest_unlocked(self, db, user, quest_ids):
        assert status_of(db, user.id, quest_ids[0]) == QuestStatus.UNLOCKED.value
        assert status_of(db, user.id, quest_ids[1]) == QuestStatus.LOCKED.value
        assert status_of(db, user.id, quest_ids[2]) == QuestStatus.LOCKED.value

    def test_complete_unlocks_next_and_adds_xp(self, db, service, user, quest_ids):
        result = service.complete_quest(user.id, quest_ids[0], 50, 60)

        assert result.success is True
        assert result.total_xp == 50
        assert result.level == 1
        assert result.level_up is False
        assert result.best_score == 60
        assert result.next_unlocked_quest_id == quest_ids[1]
        assert result.event_kinds() == [NotificationKind.QUEST_COMPLETED]
        assert result.events[0].message == "Quest completed +XP"

        assert status_of(db, user.id, quest_ids[0]) == QuestStatus.COMPLETED.value
        assert status_of(db, user.id, quest_ids[1]) == QuestStatus.UNLOCKED.value
        assert status_of(db, user.id, quest_ids[2]) == QuestStatus.LOCKED.value

    def test_best_score_keeps_maximum(self, db, service, user, quest_ids):
        service.complete_quest(user.id, quest_ids[0], 10, 60)
        result = service.complete_quest(user.id, quest_ids[0], 10, 40)

        assert result.best_score == 60
        assert crud.get_progress(db, user.id, quest_ids[0]).best_score == 60

        result = service.complete_quest(user.id, quest_ids[0], 10, 90)
        assert result.best_score == 90

    def test_xp_added_on_every_completion(self, service, user, quest_ids):
        service.complete_quest(user.id, quest_ids[0], 50, 60)
        result = service.complete_quest(user.id, quest_ids[0], 50, 60)

        assert result.total_xp == 100

    def test_level_up_event_precedes_completion(self, service, user, quest_ids):
        result = service.complete_quest(user.id, quest_ids[0], 250, 100)

        assert result.level == 2
        assert result.level_up is True
        assert result.event_kinds() == [NotificationKind.LEVEL_UP, NotificationKind.QUEST_COMPLETED]
        assert result.events[0].message == "Level up!"

    def test_last_quest_unlocks_nothing(self, db, service, user, quest_ids):
        result = service.complete_quest(user.id, quest_ids[-1], 10, 50)

        assert result.success is True
        assert result.next_unlocked_quest_id is None

    def test_completed_successor_is_not_downgraded(self, db, service, user, quest_ids):
        service.complete_quest(user.id, quest_ids[0], 0, 50)
        service.complete_quest(user.id, quest_ids[1], 0, 50)

        result = service.complete_quest(user.id, quest_ids[0], 0, 70)

        assert result.next_unlocked_quest_id is None
        assert status_of(db, user.id, quest_ids[1]) == QuestStatus.COMPLETED.value

    def test_completing_locked_quest_is_allowed(self, db, service, user, quest_ids):
        result = service.complete_quest(user.id, quest_ids[2], 0, 30)

        assert result.success is True
        assert status_of(db, user.id, quest_ids[2]) == QuestStatus.COMPLETED.value

    def test_unknown_user_reports_progress_failure(self, db, service, quest_ids):
        result = service.complete_quest(9999, quest_ids[0], 50, 60)

        assert result.success is False
        assert result.total_xp is None
        assert result.event_kinds() == [NotificationKind.PROGRESS_SAVE_FAILED]
        assert crud.get_progress(db, 9999, quest_ids[0]) is None

    def test_updates_last_active(self, db, service, user, clock, quest_ids):
        clock.advance(days=2)
        service.complete_quest(user.id, quest_ids[0], 10, 10)

        assert crud.get_stats(db, user.id).last_active == clock.now


# ========== ANSWERS ==========

class TestSubmitAnswer:
    """Tests para respuestas de opción múltiple"""

    def test_unknown_question(self, service, user):
        result = service.submit_answer(user.id, 9999, 0)

        assert result.success is False
        assert result.event_kinds() == [NotificationKind.QUESTION_NOT_FOUND]

    def test_incorrect_answer_records_attempt_without_xp(self, db, service, user, quest_ids):
        question = questions_of(db, quest_ids[0])[0]

        result = service.submit_answer(user.id, question.id, 3)

        assert result.success is True
        assert result.correct is False
        assert result.xp_awarded == 0
        assert result.total_xp == 0
        assert result.event_kinds() == [NotificationKind.ANSWER_INCORRECT]
        assert crud.count_rows(db, models.Attempt) == 1
        assert crud.has_correct_attempt(db, user.id, question.id) is False

    def test_correct_answer_awards_question_xp(self, db, service, user, quest_ids):
        question = questions_of(db, quest_ids[0])[0]

        result = service.submit_answer(user.id, question.id, 0)

        assert result.correct is True
        assert result.xp_awarded == question.xp_value
        assert result.total_xp == question.xp_value
        assert result.event_kinds() == [NotificationKind.ANSWER_CORRECT]
        assert result.events[0].message == f"Correct! +{question.xp_value} XP"

    def test_xp_awarded_only_once(self, db, service, user, quest_ids):
        """Responder bien dos veces no duplica XP"""
        question = questions_of(db, quest_ids[0])[0]

        service.submit_answer(user.id, question.id, 0)
        result = service.submit_answer(user.id, question.id, 0)

        assert result.correct is True
        assert result.already_mastered is True
        assert result.xp_awarded == 0
        assert result.total_xp == question.xp_value
        assert result.event_kinds() == [NotificationKind.ALREADY_MASTERED]
        assert crud.count_rows(db, models.Attempt) == 2

    def test_wrong_then_right_still_awards_xp(self, service, db, user, quest_ids):
        question = questions_of(db, quest_ids[0])[0]

        service.submit_answer(user.id, question.id, 2)
        result = service.submit_answer(user.id, question.id, 0)

        assert result.xp_awarded == question.xp_value

    def test_level_up_message_on_answer(self, db, service, user, quest_ids):
        set_xp(db, user.id, 190, 1)
        question = questions_of(db, quest_ids[0])[0]

        result = service.submit_answer(user.id, question.id, 0)

        assert result.level == 2
        assert result.level_up is True
        assert result.event_kinds() == [NotificationKind.LEVEL_UP]
        assert result.events[0].message == "Correct! Level up!"

    def test_malformed_answer_spec_never_matches(self, db, service, user, quest_ids):
        question = questions_of(db, quest_ids[0])[0]
        question.answer_json = "oops"
        db.commit()

        for index in range(4):
            result = service.submit_answer(user.id, question.id, index)
            assert result.correct is False

    def test_mastering_quest_completes_it(self, db, service, user, quest_ids):
        """Al dominar todas las preguntas el quest se completa con score 100 y 0 XP extra"""
        first, second = questions_of(db, quest_ids[0])

        service.submit_answer(user.id, first.id, 0)
        result = service.submit_answer(user.id, second.id, 1)

        assert result.quest_completed is True
        assert result.total_xp == first.xp_value + second.xp_value
        assert result.event_kinds() == [NotificationKind.ANSWER_CORRECT, NotificationKind.QUEST_COMPLETED]

        progress = crud.get_progress(db, user.id, quest_ids[0])
        assert progress.status == QuestStatus.COMPLETED.value
        assert progress.best_score == 100
        assert status_of(db, user.id, quest_ids[1]) == QuestStatus.UNLOCKED.value

    def test_partial_mastery_does_not_complete(self, db, service, user, quest_ids):
        first, _ = questions_of(db, quest_ids[0])

        result = service.submit_answer(user.id, first.id, 0)

        assert result.quest_completed is False
        assert status_of(db, user.id, quest_ids[0]) == QuestStatus.UNLOCKED.value

    def test_incorrect_answer_never_completes(self, db, service, user, quest_ids):
        first, second = questions_of(db, quest_ids[0])
        service.submit_answer(user.id, first.id, 0)

        result = service.submit_answer(user.id, second.id, 3)

        assert result.quest_completed is False
        assert status_of(db, user.id, quest_ids[0]) == QuestStatus.UNLOCKED.value


class TestEndToEndScenario:
    """Recorrido completo de un usuario nuevo"""

    def test_full_progression(self, db, settings, clock, user, quest_ids):
        service = ProgressService(db, settings, clock)

        for quest_id in quest_ids:
            for question in questions_of(db, quest_id):
                correct_index = parse_correct_index(question.answer_json)
                service.submit_answer(user.id, question.id, (correct_index + 1) % 4)
                service.submit_answer(user.id, question.id, correct_index)

        stats = crud.get_stats(db, user.id)
        total = sum(q.xp_value for q in db.execute(select(models.Question)).scalars().all())
        assert stats.total_xp == total == 155
        assert stats.level == 1

        for quest_id in quest_ids:
            progress = crud.get_progress(db, user.id, quest_id)
            assert progress.status == QuestStatus.COMPLETED.value
            assert progress.best_score == 100

        assert crud.count_rows(db, models.Attempt) == 12


# ========== STORE FAILURES ==========

def drop_stats(db, user_id):
    db.query(models.UserStats).filter(models.UserStats.user_id == user_id).delete()
    db.commit()


class TestStoreFailures:
    """Fallos de la base de datos se devuelven como eventos, sin cambios parciales"""

    def test_complete_quest_without_stats_rolls_back(self, db, service, user, quest_ids):
        drop_stats(db, user.id)

        result = service.complete_quest(user.id, quest_ids[0], 50, 60)

        assert result.success is False
        assert result.total_xp is None
        assert result.event_kinds() == [NotificationKind.STATS_UPDATE_FAILED]
        assert result.events[0].message == "DB error: failed to update XP"
        assert status_of(db, user.id, quest_ids[0]) == QuestStatus.UNLOCKED.value
        assert status_of(db, user.id, quest_ids[1]) == QuestStatus.LOCKED.value

    def test_correct_answer_without_stats_discards_attempt(self, db, service, user, quest_ids):
        question = questions_of(db, quest_ids[0])[0]
        drop_stats(db, user.id)

        result = service.submit_answer(user.id, question.id, 0)

        assert result.success is False
        assert result.xp_awarded == 0
        assert result.event_kinds() == [NotificationKind.STATS_UPDATE_FAILED]
        assert crud.count_rows(db, models.Attempt) == 0

    def test_question_lookup_error(self, db, service, user, quest_ids, monkeypatch, store_error):
        question = questions_of(db, quest_ids[0])[0]
        monkeypatch.setattr(crud, "get_question", store_error)

        result = service.submit_answer(user.id, question.id, 0)

        assert result.success is False
        assert result.event_kinds() == [NotificationKind.ATTEMPT_SAVE_FAILED]
        assert crud.count_rows(db, models.Attempt) == 0

    def test_previous_attempt_lookup_error(self, db, service, user, quest_ids, monkeypatch, store_error):
        question = questions_of(db, quest_ids[0])[0]
        monkeypatch.setattr(crud, "has_correct_attempt", store_error)

        result = service.submit_answer(user.id, question.id, 0)

        assert result.success is False
        assert result.event_kinds() == [NotificationKind.ATTEMPT_SAVE_FAILED]
        assert crud.get_stats(db, user.id).total_xp == 0

    def test_mastery_check_error_keeps_awarded_xp(self, db, service, user, quest_ids, monkeypatch, store_error):
        """La respuesta ya está guardada; solo falla el auto-completado"""
        question = questions_of(db, quest_ids[0])[0]
        monkeypatch.setattr(crud, "count_mastered_questions", store_error)

        result = service.submit_answer(user.id, question.id, 0)

        assert result.success is True
        assert result.quest_completed is False
        assert result.event_kinds() == [NotificationKind.ANSWER_CORRECT, NotificationKind.PROGRESS_SAVE_FAILED]
        assert crud.get_stats(db, user.id).total_xp == question.xp_value
        assert crud.count_rows(db, models.Attempt) == 1
