"""Tests for the conversational intake sequence."""

from __future__ import annotations

import pytest

from ahara.domains.ayurveda.display.intake import INTAKE_QUESTIONS, IntakeError, IntakeSession
from ahara.domains.ayurveda.display.normalizer import CollectedPatient, as_record


class TestIntakeQuestions:
    def test_fixed_order(self):
        assert [q.key for q in INTAKE_QUESTIONS] == [
            "prakriti",
            "vikruti",
            "roga",
            "climate",
            "age",
            "weight",
            "height",
            "gender",
            "agni",
            "foodPreferences",
            "dietaryHabits",
            "mealFrequency",
            "targetCalories",
        ]

    def test_every_question_has_text(self):
        assert all(q.question and q.placeholder for q in INTAKE_QUESTIONS)


class TestIntakeSession:
    def test_walks_every_question(self):
        session = IntakeSession()
        assert session.step == 0
        assert session.total == 13
        assert session.current_question.key == "prakriti"

        nxt = session.submit("  Vata: 1, Pitta: 1, Kapha: 3  ")
        assert nxt.key == "vikruti"
        assert session.answers["prakriti"] == "Vata: 1, Pitta: 1, Kapha: 3"

        for _ in range(session.total - 1):
            session.submit("x")
        assert session.is_complete
        assert session.current_question is None

    def test_submit_after_complete_raises(self):
        session = IntakeSession(questions=INTAKE_QUESTIONS[:1])
        assert session.submit("Pitta") is None
        with pytest.raises(IntakeError):
            session.submit("again")

    def test_collected_answers(self):
        session = IntakeSession()
        for question in INTAKE_QUESTIONS:
            session.submit("35" if question.key == "age" else f"{question.key} answer")
        collected = session.collected()
        assert isinstance(collected, CollectedPatient)
        assert collected.answers["age"] == "35"
        collected.answers["age"] = "99"
        assert session.answers["age"] == "35"

    def test_collected_feeds_record_projection(self):
        session = IntakeSession()
        answers = {"prakriti": "Vata: 1, Pitta: 1, Kapha: 3", "age": "35", "roga": "Congestion"}
        for question in INTAKE_QUESTIONS:
            session.submit(answers.get(question.key, ""))
        record = as_record(session.collected())
        assert record["age"] == 35
        assert record["prakriti"] == {"vata": 1, "pitta": 1, "kapha": 3}
