import random
from typing import List, Sequence

from .model import Gene, Schedule
from .domains import Problem
from .config import OptimizerConfig


def tournament_selection(
    population: Sequence[Schedule],
    size: int,
    rng: random.Random,
    pool: int = 0,
) -> Schedule:
    """
    Muestrea ``size`` candidatos (con reemplazo) y devuelve el de menor fitness.
    Con ``pool`` > 0 se muestrea solo entre los ``pool`` primeros de una
    población ya ordenada.
    """
    candidates = population[:pool] if pool > 0 else population
    sample = [rng.choice(candidates) for _ in range(max(1, size))]
    return min(sample, key=lambda s: s.fitness)


def smart_mutation(schedule: Schedule, problem: Problem, cfg: OptimizerConfig, rng: random.Random) -> None:
    """Mutación dirigida: el gen objetivo sale, si existe, del conjunto de conflictos."""
    if not schedule.assignments:
        return
    if schedule.conflicts:
        idx = rng.choice(schedule.conflicts)
    else:
        idx = rng.randrange(len(schedule.assignments))

    gene = schedule.assignments[idx]
    if rng.random() < cfg.slot_mutation_prob:
        gene.slot = rng.choice(problem.slot_ids)
    else:
        gene.room = rng.choice(problem.room_domains[idx])


def two_point_crossover(p1: Schedule, p2: Schedule, rng: random.Random) -> Schedule:
    """Cruce de dos puntos sobre la secuencia ordenada por curso."""
    n = len(p1.assignments)
    if n == 0:
        return Schedule([])
    c1, c2 = rng.randrange(n), rng.randrange(n)
    cut1, cut2 = min(c1, c2), max(c1, c2)
    genes: List[Gene] = []
    for i in range(n):
        src = p2 if cut1 <= i < cut2 else p1
        g = src.assignments[i]
        genes.append(Gene(g.course_id, g.slot, g.room))
    return Schedule(genes)


def mutate_genes(schedule: Schedule, problem: Problem, rate: float, rng: random.Random) -> None:
    """Mutación por gen a tasa fija: mitad franja, mitad aula."""
    for idx, gene in enumerate(schedule.assignments):
        if rng.random() < rate:
            if rng.random() < 0.5:
                gene.slot = rng.choice(problem.slot_ids)
            else:
                gene.room = rng.choice(problem.room_domains[idx])
