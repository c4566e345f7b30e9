"""Reference snapshot used to seed an empty store and in tests.

Two years weighted 0.2 / 0.8:

- Year 1: CS101 (Exam 60% scored 75 and done, Coursework 40% pending) and
  MA101 (Exam 100% with a score of 68 that is not marked done, so it does
  not count yet).
- Year 2: CS201 (Exam 70% scored 78 and done, Project 30% pending).
"""

from __future__ import annotations

from src.models.grades import GradeSnapshot

SAMPLE_DATA: dict = {
    "years": [
        {
            "id": "year-1",
            "name": "Year 1",
            "weight": 0.2,
            "modules": [
                {
                    "id": "mod-1",
                    "code": "CS101",
                    "name": "Intro to Programming",
                    "credits": 20,
                    "assignments": [
                        {"id": "a-1", "name": "Exam", "weight": 60, "score": 75, "done": True},
                        {"id": "a-2", "name": "Coursework", "weight": 40, "done": False},
                    ],
                },
                {
                    "id": "mod-2",
                    "code": "MA101",
                    "name": "Calculus",
                    "credits": 20,
                    "assignments": [
                        {"id": "a-3", "name": "Exam", "weight": 100, "score": 68},
                    ],
                },
            ],
        },
        {
            "id": "year-2",
            "name": "Year 2",
            "weight": 0.8,
            "modules": [
                {
                    "id": "mod-3",
                    "code": "CS201",
                    "name": "Data Structures",
                    "credits": 20,
                    "assignments": [
                        {"id": "a-4", "name": "Exam", "weight": 70, "score": 78, "done": True},
                        {"id": "a-5", "name": "Project", "weight": 30, "done": False},
                    ],
                },
            ],
        },
    ],
}


def sample_snapshot() -> GradeSnapshot:
    return GradeSnapshot.model_validate(SAMPLE_DATA)
