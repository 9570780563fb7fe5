import logging
import random
from typing import Dict, List, Optional

from .model import Schedule
from .domains import Problem
from .config import OptimizerConfig
from .checkpoint import Checkpoint
from .evaluation import evaluate
from .initial_population import build_initial_population
from .operators import tournament_selection, smart_mutation, two_point_crossover, mutate_genes

logger = logging.getLogger(__name__)


class GeneticSolver:
    def __init__(
        self,
        problem: Problem,
        cfg: OptimizerConfig,
        rng: random.Random,
        checkpoint: Optional[Checkpoint] = None,
    ):
        self.problem = problem
        self.cfg = cfg
        self.rng = rng
        self.checkpoint = checkpoint or Checkpoint()
        self.history: List[Dict] = []

    def evaluate(self, schedule: Schedule) -> float:
        return evaluate(schedule, self.problem.rooms_by_id, self.problem.courses_by_id, self.cfg).fitness

    def _reproduce_smart(self, population: List[Schedule]) -> Schedule:
        # Reproducción asexual: clon del ganador del torneo + reparación dirigida
        parent = tournament_selection(
            population, self.cfg.tournament_size, self.rng, pool=self.cfg.tournament_pool
        )
        child = parent.copy()
        if self.rng.random() < self.cfg.mutation_rate:
            repeats = self.cfg.conflict_mutation_repeats if child.hard_count > 0 else 1
            for _ in range(repeats):
                smart_mutation(child, self.problem, self.cfg, self.rng)
        return child

    def _reproduce_crossover(self, population: List[Schedule], stagnation: int) -> Schedule:
        rate = self.cfg.mutation_rate
        if stagnation > self.cfg.stagnation_window:
            rate = min(1.0, rate * 2)
        p1 = tournament_selection(population, self.cfg.tournament_size, self.rng)
        p2 = tournament_selection(population, self.cfg.tournament_size, self.rng)
        child = two_point_crossover(p1, p2, self.rng)
        mutate_genes(child, self.problem, rate, self.rng)
        return child

    def _track(self, gen: int, population: List[Schedule], best: Optional[Schedule]) -> Schedule:
        population.sort(key=lambda s: s.fitness)
        if best is None or population[0].fitness < best.fitness:
            best = population[0].copy()
        avg = sum(s.fitness for s in population) / len(population)
        self.history.append(
            {"gen": gen, "best_fitness": best.fitness, "avg_fitness": avg, "best_hard": best.hard_count}
        )
        return best

    def next_generation(self, population: List[Schedule], stagnation: int = 0) -> List[Schedule]:
        """Élite sin cambios + reproducción; ``population`` debe venir ordenada."""
        cfg = self.cfg
        new_pop: List[Schedule] = [s.copy() for s in population[: cfg.elite_count]]
        while len(new_pop) < cfg.population_size:
            if cfg.variation == "crossover":
                child = self._reproduce_crossover(population, stagnation)
            else:
                child = self._reproduce_smart(population)
            new_pop.append(child)

        for ind in new_pop:
            self.evaluate(ind)
        return new_pop

    def evolve(self, population: Optional[List[Schedule]] = None) -> Schedule:
        cfg = self.cfg
        if population is None:
            population = build_initial_population(self.problem, cfg.population_size, self.rng)
        for ind in population:
            self.evaluate(ind)

        best: Optional[Schedule] = None
        stagnation = 0

        for gen in range(cfg.generations):
            self.checkpoint.tick("generation", gen, cfg.yield_every_generations)

            previous = best.fitness if best is not None else None
            best = self._track(gen, population, best)
            if previous is not None and best.fitness >= previous:
                stagnation += 1
            else:
                stagnation = 0

            if cfg.log_every_generations and (gen % cfg.log_every_generations == 0 or gen == cfg.generations - 1):
                logger.debug(
                    "Gen %d: mejor fitness=%.1f duras=%d promedio=%.1f",
                    gen, best.fitness, best.hard_count, self.history[-1]["avg_fitness"],
                )

            # Parada anticipada: solución suficientemente buena
            if best.hard_count == 0 and best.soft_score < cfg.early_stop_soft_threshold:
                return best

            population = self.next_generation(population, stagnation)

        # La última población generada también compite por el mejor
        return self._track(cfg.generations, population, best)
