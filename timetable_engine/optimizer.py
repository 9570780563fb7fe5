"""
Orquestador multi-corrida: AG -> tabú, repetido ``n_runs`` veces desde cero.

Cada corrida usa su propio ``random.Random`` derivado de la semilla y del
número de corrida, por lo que el resultado es el mismo en secuencial o en
paralelo (``n_jobs`` > 1, procesos).
"""
import logging
import multiprocessing
import random
import time
from collections import Counter
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, wait
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from .model import (
    Course, Room, Teacher, Schedule, ScheduleResult, RunSummary, MissingInputData, InvalidInputData,
)
from .domains import Problem, validate_dataset
from .config import OptimizerConfig
from .checkpoint import Checkpoint, OptimizationCancelled
from .ga import GeneticSolver
from .tabu import TabuSearch

logger = logging.getLogger(__name__)

# Frecuencia con la que el proceso principal revisa la cancelación del llamador
CANCEL_POLL_SECONDS = 0.05


def run_rng(cfg: OptimizerConfig, run: int) -> random.Random:
    return random.Random(cfg.seed * 1000 + run)


def run_trial(
    run: int,
    problem: Problem,
    cfg: OptimizerConfig,
    checkpoint: Optional[Checkpoint] = None,
    cancel_event=None,
) -> Tuple[Schedule, RunSummary]:
    """
    Una corrida completa AG -> tabú. En un proceso trabajador se pasa
    ``cancel_event`` (un Event compartido) en lugar del checkpoint.
    """
    if checkpoint is None and cancel_event is not None:
        checkpoint = Checkpoint(cancel_event=cancel_event)
    rng = run_rng(cfg, run)
    start = time.perf_counter()
    ga_best = GeneticSolver(problem, cfg, rng, checkpoint).evolve()
    final = TabuSearch(problem, cfg, rng, checkpoint).run(ga_best)
    summary = RunSummary(
        run=run,
        fitness=final.fitness,
        hard_violations=final.hard_count,
        soft_score=final.soft_score,
        seconds=time.perf_counter() - start,
    )
    status = "LIMPIO" if summary.clean else f"{summary.hard_violations} ERR"
    logger.info("Run %02d | %s | Fitness: %.0f | Tiempo: %.1fs", run, status, final.fitness, summary.seconds)
    return final, summary


def _run_sequential(problem: Problem, cfg: OptimizerConfig, checkpoint: Checkpoint) -> List[Tuple[Schedule, RunSummary]]:
    results = []
    for run in range(1, cfg.n_runs + 1):
        checkpoint.tick("run", run)
        results.append(run_trial(run, problem, cfg, checkpoint))
    return results


def _run_parallel(problem: Problem, cfg: OptimizerConfig, checkpoint: Checkpoint) -> List[Tuple[Schedule, RunSummary]]:
    # Los trabajadores revisan un Event compartido en cada generación e iteración
    results: Dict[int, Tuple[Schedule, RunSummary]] = {}
    with multiprocessing.Manager() as manager:
        shared_cancel = manager.Event()
        pool = ProcessPoolExecutor(max_workers=cfg.n_jobs)
        try:
            futures = {
                pool.submit(run_trial, run, problem, cfg, None, shared_cancel): run
                for run in range(1, cfg.n_runs + 1)
            }
            pending = set(futures)
            while pending:
                if checkpoint.cancelled:
                    raise OptimizationCancelled("Cancelado durante las corridas en paralelo")
                done, pending = wait(pending, timeout=CANCEL_POLL_SECONDS, return_when=FIRST_COMPLETED)
                for fut in sorted(done, key=futures.get):
                    run = futures[fut]
                    checkpoint.tick("run", run)
                    results[run] = fut.result()
        except BaseException:
            shared_cancel.set()
            # Las corridas en curso se detienen en su próxima frontera de generación/iteración
            pool.shutdown(wait=True, cancel_futures=True)
            raise
        pool.shutdown(wait=True)
    return [results[run] for run in sorted(results)]


def result_name() -> str:
    return f"Schedule (Optimized) {datetime.now():%Y-%m-%d %H:%M:%S}"


def optimize_schedule(
    rooms: Sequence[Room],
    teachers: Sequence[Teacher],
    courses: Sequence[Course],
    cfg: Optional[OptimizerConfig] = None,
    checkpoint: Optional[Checkpoint] = None,
) -> ScheduleResult:
    cfg = cfg or OptimizerConfig()
    checkpoint = checkpoint or Checkpoint()

    if courses and not rooms:
        raise MissingInputData(f"{len(courses)} cursos requieren aula pero no hay aulas")
    for warning in validate_dataset(rooms, teachers, courses):
        logger.warning(warning)
    # Cada gen se resuelve por course_id: un id repetido puntuaría el curso equivocado
    duplicated = sorted(cid for cid, n in Counter(c.course_id for c in courses).items() if n > 1)
    if duplicated:
        raise InvalidInputData(f"Ids de curso duplicados: {', '.join(duplicated)}")

    if not courses:
        return ScheduleResult(name=result_name(), assignments=[], fitness=0.0, hard_violations=0, soft_score=0.0)

    problem = Problem.build(courses, rooms, cfg)
    logger.info(
        "Optimizando %d cursos, %d aulas, %d franjas (%d corridas, variante=%s)",
        len(courses), len(rooms), len(problem.slot_ids), cfg.n_runs, cfg.variation,
    )

    if cfg.n_jobs > 1 and cfg.n_runs > 1:
        results = _run_parallel(problem, cfg, checkpoint)
    else:
        results = _run_sequential(problem, cfg, checkpoint)

    # Menor fitness; empates a favor de la corrida más temprana
    best, _ = min(results, key=lambda pair: (pair[0].fitness, pair[1].run))
    logger.info("Mejor fitness: %.0f (duras=%d, blandas=%.0f)", best.fitness, best.hard_count, best.soft_score)

    return ScheduleResult(
        name=result_name(),
        assignments=best.copy().assignments,
        fitness=best.fitness,
        hard_violations=best.hard_count,
        soft_score=best.soft_score,
        runs=[summary for _, summary in results],
    )
