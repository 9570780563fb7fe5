# timetable_engine/domains.py
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Sequence

from .model import Course, Room, Teacher
from .config import OptimizerConfig


@dataclass(frozen=True)
class TimeGrid:
    """
    Rejilla semanal fija. Una franja es un entero plano:
    slot = day_idx * periods_per_day + period_idx
    """
    n_days: int
    periods_per_day: int
    day_names: Sequence[str] = ()
    period_labels: Sequence[str] = ()

    @classmethod
    def from_config(cls, cfg: OptimizerConfig) -> "TimeGrid":
        return cls(
            n_days=cfg.n_days,
            periods_per_day=cfg.periods_per_day,
            day_names=tuple(cfg.day_names),
            period_labels=tuple(cfg.period_labels),
        )

    @property
    def slot_ids(self) -> List[int]:
        return list(range(self.n_days * self.periods_per_day))

    def day_of(self, slot: int) -> int:
        return slot // self.periods_per_day

    def period_of(self, slot: int) -> int:
        return slot % self.periods_per_day

    def day_name(self, day: int) -> str:
        return self.day_names[day] if day < len(self.day_names) else f"Dia {day}"

    def period_label(self, period: int) -> str:
        return self.period_labels[period] if period < len(self.period_labels) else f"P{period}"

    def label(self, slot: int) -> str:
        return f"{self.day_name(self.day_of(slot))} {self.period_label(self.period_of(slot))}"


def accepts_room_type(required: str, room_type: str, upgrades: Dict[str, List[str]]) -> bool:
    if required == room_type:
        return True
    return room_type in upgrades.get(required, ())


def compatible_rooms(course: Course, rooms: Sequence[Room], cfg: OptimizerConfig) -> List[str]:
    """
    Aulas con capacidad suficiente y tipo compatible. Si ninguna cumple se
    devuelve el conjunto completo: la inviabilidad la castiga el fitness.
    """
    valid = [
        r.room_id
        for r in rooms
        if r.capacity >= course.group_size
        and accepts_room_type(course.room_type_req, r.type, cfg.room_upgrades)
    ]
    return valid if valid else [r.room_id for r in rooms]


def build_room_domains(
    courses: Sequence[Course],
    rooms: Sequence[Room],
    cfg: OptimizerConfig,
) -> Dict[int, List[str]]:
    return {idx: compatible_rooms(c, rooms, cfg) for idx, c in enumerate(courses)}


def validate_dataset(
    rooms: Sequence[Room],
    teachers: Sequence[Teacher],
    courses: Sequence[Course],
) -> List[str]:
    """Revisa coherencia referencial; devuelve avisos, no lanza."""
    warnings: List[str] = []
    for kind, ids in (
        ("aula", [r.room_id for r in rooms]),
        ("docente", [t.teacher_id for t in teachers]),
        ("curso", [c.course_id for c in courses]),
    ):
        for dup, n in Counter(ids).items():
            if n > 1:
                warnings.append(f"Id de {kind} duplicado: {dup} ({n} veces)")

    if teachers:
        known = {t.teacher_id for t in teachers}
        for c in courses:
            if c.teacher_id not in known:
                warnings.append(f"Curso {c.course_id} referencia docente inexistente {c.teacher_id}")

    if rooms:
        max_cap = max(r.capacity for r in rooms)
        for c in courses:
            if c.group_size > max_cap:
                warnings.append(
                    f"Curso {c.course_id}: grupo de {c.group_size} excede la mayor capacidad ({max_cap})"
                )
    return warnings


@dataclass(frozen=True)
class Problem:
    """Datos estáticos de una instancia, compartidos por el AG y la búsqueda tabú."""
    courses: Sequence[Course]
    rooms_by_id: Dict[str, Room]
    courses_by_id: Dict[str, Course]
    room_domains: Dict[int, List[str]]
    grid: TimeGrid

    @classmethod
    def build(cls, courses: Sequence[Course], rooms: Sequence[Room], cfg: OptimizerConfig) -> "Problem":
        return cls(
            courses=list(courses),
            rooms_by_id={r.room_id: r for r in rooms},
            courses_by_id={c.course_id: c for c in courses},
            room_domains=build_room_domains(courses, rooms, cfg),
            grid=TimeGrid.from_config(cfg),
        )

    @property
    def slot_ids(self) -> List[int]:
        return self.grid.slot_ids
