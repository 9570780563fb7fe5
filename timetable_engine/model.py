# timetable_engine/model.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SlotIdx = int


class InvalidInputData(ValueError):
    """Entidad de entrada con valores imposibles (capacidad o tamaño < 1)."""


class MissingInputData(ValueError):
    """No hay aulas pero sí cursos: no se puede construir ningún candidato."""


@dataclass(frozen=True)
class Room:
    room_id: str
    capacity: int
    type: str

    def __post_init__(self):
        if int(self.capacity) < 1:
            raise InvalidInputData(f"Aula {self.room_id}: capacidad {self.capacity} < 1")


@dataclass(frozen=True)
class Teacher:
    teacher_id: str
    name: str


@dataclass(frozen=True)
class Course:
    course_id: str
    subject: str
    teacher_id: str
    group_id: str
    group_size: int
    room_type_req: str

    def __post_init__(self):
        if int(self.group_size) < 1:
            raise InvalidInputData(f"Curso {self.course_id}: group_size {self.group_size} < 1")


@dataclass
class Gene:
    # Un "gen" = la ubicación (franja, aula) de un curso
    course_id: str
    slot: SlotIdx
    room: str

    def to_dict(self) -> Dict[str, Any]:
        return {"course_id": self.course_id, "slot": self.slot, "room": self.room}


class Schedule:
    """Candidato: una asignación por curso, en el mismo orden que los cursos."""

    def __init__(self, assignments: Optional[List[Gene]] = None):
        self.assignments: List[Gene] = assignments if assignments is not None else []
        self.fitness: float = float("inf")
        self.hard_count: int = 0
        self.soft_score: float = 0.0
        self.conflicts: List[int] = []

    def copy(self) -> "Schedule":
        clone = Schedule([Gene(g.course_id, g.slot, g.room) for g in self.assignments])
        clone.fitness = self.fitness
        clone.hard_count = self.hard_count
        clone.soft_score = self.soft_score
        clone.conflicts = list(self.conflicts)
        return clone

    def __len__(self) -> int:
        return len(self.assignments)

    def __repr__(self) -> str:
        return (
            f"Schedule(n={len(self.assignments)}, fitness={self.fitness}, "
            f"hard={self.hard_count}, soft={self.soft_score})"
        )


@dataclass
class RunSummary:
    run: int
    fitness: float
    hard_violations: int
    soft_score: float
    seconds: float

    @property
    def clean(self) -> bool:
        return self.hard_violations == 0


@dataclass
class ScheduleResult:
    name: str
    assignments: List[Gene]
    fitness: float
    hard_violations: int
    soft_score: float
    runs: List[RunSummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "assignments": [g.to_dict() for g in self.assignments],
            "fitness": self.fitness,
            "hard_violations": self.hard_violations,
            "soft_score": self.soft_score,
        }
