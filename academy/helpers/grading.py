import math
import uuid


def round_half_up(value):
    return int(math.floor(value + 0.5))


def percentage(part, whole):
    """Whole-number percentage, rounded half up; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    return round_half_up(part / whole * 100)


def normalize_quiz_data(raw, default_passing_score=70):
    """Validate quiz data coming from the course editor.

    Returns ``(quiz_data, error)``; exactly one of them is None.
    """
    if not isinstance(raw, dict):
        return None, "Quiz data must be an object"

    questions = raw.get("questions")
    if not isinstance(questions, list) or not questions:
        return None, "A quiz needs at least one question"

    passing_score = raw.get("passing_score", default_passing_score)
    if passing_score is None:
        passing_score = default_passing_score
    if not isinstance(passing_score, (int, float)) or not 0 <= passing_score <= 100:
        return None, "Passing score must be between 0 and 100"

    cleaned = []
    for i, q in enumerate(questions, start=1):
        if not isinstance(q, dict) or not str(q.get("question", "")).strip():
            return None, f"Question {i} has no text"
        options = q.get("options")
        if not isinstance(options, list) or len(options) < 2:
            return None, f"Question {i} needs at least two options"
        correct_index = q.get("correct_index")
        if not isinstance(correct_index, int) or isinstance(correct_index, bool) \
                or not 0 <= correct_index < len(options):
            return None, f"Question {i} has an invalid correct answer"
        cleaned.append({
            "id": str(q.get("id") or uuid.uuid4()),
            "question": q["question"].strip(),
            "options": [str(o) for o in options],
            "correct_index": correct_index,
        })

    return {"questions": cleaned, "passing_score": int(passing_score)}, None


def grade_quiz(quiz_data, answers, default_passing_score=70):
    """Grade ``answers`` (question id -> selected option index).

    Every question must be answered. Raises ValueError otherwise.
    """
    questions = (quiz_data or {}).get("questions") or []
    if not questions:
        raise ValueError("This quiz has no questions")
    if not isinstance(answers, dict):
        raise ValueError("Answers must map question ids to option indices")

    answers = {str(k): v for k, v in answers.items()}
    missing = [q["id"] for q in questions if answers.get(str(q["id"])) is None]
    if missing:
        raise ValueError("Please answer all questions before submitting.")

    results = []
    correct_count = 0
    selected = []
    for q in questions:
        choice = answers[str(q["id"])]
        try:
            choice = int(choice)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid answer for question {q['id']}")
        if not 0 <= choice < len(q.get("options") or []):
            raise ValueError(f"Invalid answer for question {q['id']}")
        is_correct = choice == q["correct_index"]
        correct_count += is_correct
        selected.append(choice)
        results.append({
            "question_id": q["id"],
            "selected_index": choice,
            "correct_index": q["correct_index"],
            "is_correct": is_correct,
        })

    passing_score = quiz_data.get("passing_score")
    if passing_score is None:
        passing_score = default_passing_score
    score = percentage(correct_count, len(questions))
    return {
        "score": score,
        "passing_score": passing_score,
        "passed": score >= passing_score,
        "correct": correct_count,
        "total": len(questions),
        "answers": selected,
        "results": results,
    }
