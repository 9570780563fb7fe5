# timetable_engine/initial_population.py
import random
from typing import List

from .model import Gene, Schedule
from .domains import Problem


def random_gene(problem: Problem, idx: int, rng: random.Random) -> Gene:
    course = problem.courses[idx]
    return Gene(
        course_id=course.course_id,
        slot=rng.choice(problem.slot_ids),
        room=rng.choice(problem.room_domains[idx]),
    )


def build_random_schedule(problem: Problem, rng: random.Random) -> Schedule:
    # Sin reparación: la presión hacia la factibilidad viene de selección y mutación
    return Schedule([random_gene(problem, i, rng) for i in range(len(problem.courses))])


def build_initial_population(problem: Problem, pop_size: int, rng: random.Random) -> List[Schedule]:
    return [build_random_schedule(problem, rng) for _ in range(pop_size)]
