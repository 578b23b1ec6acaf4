"""Chat-style patient intake: a fixed, strictly ordered question sequence."""

from __future__ import annotations

from dataclasses import dataclass

from ahara.core.errors import AharaError
from ahara.domains.ayurveda.display.normalizer import CollectedPatient


class IntakeError(AharaError):
    """Raised when an answer is submitted after the last question."""


@dataclass(frozen=True)
class IntakeQuestion:
    key: str
    question: str
    placeholder: str


INTAKE_QUESTIONS: tuple[IntakeQuestion, ...] = (
    IntakeQuestion(
        "prakriti",
        "What is the patient's natural constitution (Prakriti)? Please specify dominant dosha from birth:",
        "e.g., Vata-Pitta dominant, Kapha secondary",
    ),
    IntakeQuestion(
        "vikruti",
        "What is the current imbalanced state (Vikruti)? Please provide current dosha levels:",
        "e.g., Vata: 3.5, Pitta: 2.5, Kapha: 1",
    ),
    IntakeQuestion(
        "roga",
        "What are the patient's main health concerns or symptoms (Roga)?",
        "e.g., Abdominal Gas, Heat in body, Digestive issues",
    ),
    IntakeQuestion(
        "climate",
        "What is the patient's current climate and season?",
        "e.g., Hot and humid summer, Cold winter, Rainy season",
    ),
    IntakeQuestion("age", "What is the patient's age?", "e.g., 29"),
    IntakeQuestion("weight", "What is the patient's weight?", "e.g., 50kg"),
    IntakeQuestion("height", "What is the patient's height?", "e.g., 5'5\""),
    IntakeQuestion("gender", "What is the patient's gender?", "e.g., Female"),
    IntakeQuestion(
        "agni",
        "How is the patient's digestive fire (Agni)? Describe appetite and digestion:",
        "e.g., Strong appetite, slow digestion, irregular hunger",
    ),
    IntakeQuestion(
        "foodPreferences",
        "What are the patient's taste preferences (Rasa)? Which tastes do they crave or avoid?",
        "e.g., Loves sweet and salty, avoids bitter, craves spicy",
    ),
    IntakeQuestion(
        "dietaryHabits",
        "What are the patient's current dietary habits and lifestyle?",
        "e.g., Vegetarian, moderate appetite, prefers warm foods, exercises regularly",
    ),
    IntakeQuestion(
        "mealFrequency",
        "What is the patient's preferred meal frequency and timing?",
        "e.g., 3 main meals + 1 snack, dinner by 7 PM",
    ),
    IntakeQuestion(
        "targetCalories",
        "What is the target daily calorie intake based on activity level?",
        "e.g., 2200 kcal/day for moderate activity",
    ),
)


class IntakeSession:
    """Walks the intake questions in order; no going back and no skipping.

    Usage::

        session = IntakeSession()
        while not session.is_complete:
            session.submit(input(session.current_question.question))
        patient = session.collected()
    """

    def __init__(self, questions: tuple[IntakeQuestion, ...] = INTAKE_QUESTIONS) -> None:
        self._questions = questions
        self._step = 0
        self.answers: dict[str, str] = {}

    @property
    def step(self) -> int:
        return self._step

    @property
    def total(self) -> int:
        return len(self._questions)

    @property
    def is_complete(self) -> bool:
        return self._step >= len(self._questions)

    @property
    def current_question(self) -> IntakeQuestion | None:
        return None if self.is_complete else self._questions[self._step]

    def submit(self, answer: str) -> IntakeQuestion | None:
        """Record the answer to the current question and return the next one.

        Raises:
            IntakeError: If every question has already been answered.
        """
        question = self.current_question
        if question is None:
            raise IntakeError("Intake is already complete")
        self.answers[question.key] = str(answer).strip()
        self._step += 1
        return self.current_question

    def collected(self) -> CollectedPatient:
        return CollectedPatient(answers=dict(self.answers))
