# timetable_engine/tabu.py
import logging
import random
from collections import deque
from typing import Deque, List, Optional, Tuple

from .model import Schedule
from .domains import Problem
from .config import OptimizerConfig
from .checkpoint import Checkpoint
from .evaluation import evaluate

logger = logging.getLogger(__name__)


def move_key(course_id: str, slot: int) -> str:
    return f"{course_id}_{slot}"


class TabuSearch:
    """
    Refinamiento local del mejor individuo del AG.

    Acepta siempre el mejor vecino, aunque empeore la solución actual; la
    lista tabú (FIFO acotada) impide volver a movimientos recientes. La clave
    registrada es la del movimiento que generó el vecino aceptado.
    """

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
        self.tabu_list: Deque[str] = deque(maxlen=cfg.tabu_size)
        self.history: List[float] = []
        self.current_history: List[float] = []

    def _score(self, schedule: Schedule) -> None:
        evaluate(schedule, self.problem.rooms_by_id, self.problem.courses_by_id, self.cfg)

    def _targets(self, current: Schedule) -> List[int]:
        if current.conflicts:
            return current.conflicts[: self.cfg.tabu_conflict_targets]
        n = len(current.assignments)
        return self.rng.sample(range(n), min(self.cfg.tabu_random_targets, n))

    def _neighbors(self, current: Schedule, targets: List[int]) -> List[Tuple[Schedule, str]]:
        neighborhood: List[Tuple[Schedule, str]] = []
        for idx in targets:
            course_id = current.assignments[idx].course_id
            for _ in range(self.cfg.tabu_neighbors_per_target):
                new_slot = self.rng.choice(self.problem.slot_ids)
                key = move_key(course_id, new_slot)
                if key in self.tabu_list:
                    continue
                nb = current.copy()
                nb.assignments[idx].slot = new_slot
                if self.rng.random() < self.cfg.tabu_room_change_prob:
                    nb.assignments[idx].room = self.rng.choice(self.problem.room_domains[idx])
                self._score(nb)
                neighborhood.append((nb, key))
        return neighborhood

    def _finished(self, best: Schedule) -> bool:
        return best.hard_count == 0 and best.soft_score <= self.cfg.tabu_stop_soft_threshold

    def run(self, initial: Schedule) -> Schedule:
        current = initial.copy()
        self._score(current)
        best = current.copy()

        for it in range(self.cfg.tabu_max_iters):
            self.checkpoint.tick("tabu", it, self.cfg.yield_every_iterations)
            if self._finished(best) or not current.assignments:
                break

            neighborhood = self._neighbors(current, self._targets(current))
            if not neighborhood:
                continue

            current, key = min(neighborhood, key=lambda pair: pair[0].fitness)
            if current.fitness < best.fitness:
                best = current.copy()
            self.tabu_list.append(key)
            self.history.append(best.fitness)
            self.current_history.append(current.fitness)

        logger.debug("Tabú: mejor fitness=%.1f duras=%d", best.fitness, best.hard_count)
        return best
