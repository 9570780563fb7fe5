import random
import tempfile
import threading
import time
import unittest
from pathlib import Path
from unittest import mock

from timetable_engine.config import OptimizerConfig, load_config
from timetable_engine.model import Room, Teacher, Course, Gene, Schedule, MissingInputData, InvalidInputData
from timetable_engine.domains import Problem, TimeGrid
from timetable_engine.checkpoint import Checkpoint, OptimizationCancelled
from timetable_engine.ga import GeneticSolver
from timetable_engine.initial_population import build_initial_population
from timetable_engine.tabu import TabuSearch, move_key
from timetable_engine.optimizer import optimize_schedule
from timetable_engine.data_loader import load_data, rooms_from_frame, teachers_from_frame, courses_from_frame
from timetable_engine.persistence import export_result, schedule_to_dataframe


ROOMS = [Room("A101", 30, "TD"), Room("B201", 50, "AMPHI")]
TEACHERS = [Teacher("T001", "Ana")]
COURSES = [
    Course("C1", "Analyse", "T001", "G1", 25, "TD"),
    Course("C2", "Algèbre", "T001", "G2", 25, "TD"),
]


def small_config(**overrides):
    base = dict(
        population_size=30,
        elite_count=3,
        generations=40,
        tournament_pool=10,
        n_runs=2,
        tabu_max_iters=60,
        seed=11,
    )
    base.update(overrides)
    return OptimizerConfig(**base)


def crowded_courses(n=8):
    # Un solo docente y un solo grupo: fuerza choques iniciales
    return [Course(f"C{i}", "X", "T001", "G1", 20, "TD") for i in range(n)]


class GeneticSolverTests(unittest.TestCase):
    def test_best_fitness_never_increases(self):
        cfg = small_config(early_stop_soft_threshold=-1, generations=30)
        problem = Problem.build(crowded_courses(), ROOMS, cfg)
        solver = GeneticSolver(problem, cfg, random.Random(4))
        best = solver.evolve()
        bests = [h["best_fitness"] for h in solver.history]
        self.assertEqual(len(bests), cfg.generations + 1)
        for prev, cur in zip(bests, bests[1:]):
            self.assertLessEqual(cur, prev)
        self.assertEqual(best.fitness, bests[-1])

    def test_crossover_variant_monotonic(self):
        cfg = small_config(variation="crossover", early_stop_soft_threshold=-1, stagnation_window=2)
        problem = Problem.build(crowded_courses(), ROOMS, cfg)
        solver = GeneticSolver(problem, cfg, random.Random(8))
        solver.evolve()
        bests = [h["best_fitness"] for h in solver.history]
        self.assertTrue(all(b <= a for a, b in zip(bests, bests[1:])))

    def test_early_stop_on_good_solution(self):
        cfg = small_config()
        problem = Problem.build(COURSES, ROOMS, cfg)
        solver = GeneticSolver(problem, cfg, random.Random(1))
        best = solver.evolve()
        self.assertEqual(best.hard_count, 0)
        self.assertLess(len(solver.history), cfg.generations)

    def test_cancellation_between_generations(self):
        cfg = small_config()
        problem = Problem.build(crowded_courses(), ROOMS, cfg)
        event = threading.Event()
        event.set()
        solver = GeneticSolver(problem, cfg, random.Random(1), Checkpoint(cancel_event=event))
        with self.assertRaises(OptimizationCancelled):
            solver.evolve()

    def test_elites_survive_unchanged(self):
        cfg = small_config(elite_count=5)
        problem = Problem.build(crowded_courses(), ROOMS, cfg)
        solver = GeneticSolver(problem, cfg, random.Random(6))
        population = build_initial_population(problem, cfg.population_size, random.Random(6))
        for ind in population:
            solver.evaluate(ind)
        population.sort(key=lambda s: s.fitness)

        new_pop = solver.next_generation(population)
        self.assertEqual(len(new_pop), cfg.population_size)
        for old, new in zip(population[: cfg.elite_count], new_pop[: cfg.elite_count]):
            self.assertIsNot(old, new)
            self.assertEqual([g.to_dict() for g in old.assignments], [g.to_dict() for g in new.assignments])
            self.assertEqual(old.fitness, new.fitness)

    def test_conflicted_child_gets_repeated_mutation(self):
        cfg = small_config(mutation_rate=1.0, conflict_mutation_repeats=3, tournament_pool=1)
        problem = Problem.build(crowded_courses(), ROOMS, cfg)
        solver = GeneticSolver(problem, cfg, random.Random(7))
        parent = Schedule([Gene(c.course_id, 0, "A101") for c in crowded_courses()])
        parent.fitness = 10.0

        with mock.patch("timetable_engine.ga.smart_mutation") as mutation:
            parent.hard_count = 2
            solver._reproduce_smart([parent])
            self.assertEqual(mutation.call_count, 3)

            mutation.reset_mock()
            parent.hard_count = 0
            solver._reproduce_smart([parent])
            self.assertEqual(mutation.call_count, 1)

    def test_progress_log_has_its_own_cadence(self):
        cfg = small_config(
            generations=10, early_stop_soft_threshold=-1, yield_every_generations=0, log_every_generations=5,
        )
        problem = Problem.build(crowded_courses(), ROOMS, cfg)
        solver = GeneticSolver(problem, cfg, random.Random(9))
        with self.assertLogs("timetable_engine.ga", level="DEBUG") as logs:
            solver.evolve()
        gens = [line for line in logs.output if "Gen " in line]
        # Generaciones 0 y 5 más la última
        self.assertEqual(len(gens), 3)
        self.assertIn("Gen 9:", gens[-1])


class TabuSearchTests(unittest.TestCase):
    def setUp(self):
        self.cfg = small_config(tabu_size=3, tabu_max_iters=40)
        self.courses = crowded_courses(6)
        self.problem = Problem.build(self.courses, ROOMS, self.cfg)
        self.initial = Schedule([Gene(c.course_id, 0, "A101") for c in self.courses])

    def test_best_never_worsens(self):
        tabu = TabuSearch(self.problem, self.cfg, random.Random(2))
        start = self.initial.copy()
        tabu._score(start)
        self.assertEqual(start.hard_count, 5)
        best = tabu.run(start)
        self.assertLessEqual(best.fitness, start.fitness)
        for prev, cur in zip(tabu.history, tabu.history[1:]):
            self.assertLessEqual(cur, prev)

    def test_does_not_mutate_input(self):
        tabu = TabuSearch(self.problem, self.cfg, random.Random(3))
        tabu.run(self.initial)
        self.assertTrue(all(g.slot == 0 for g in self.initial.assignments))

    def test_tabu_list_is_bounded(self):
        tabu = TabuSearch(self.problem, self.cfg, random.Random(4))
        tabu.run(self.initial)
        self.assertLessEqual(len(tabu.tabu_list), 3)
        for key in tabu.tabu_list:
            course_id, slot = key.rsplit("_", 1)
            self.assertIn(course_id, self.problem.courses_by_id)
            self.assertIn(int(slot), self.problem.slot_ids)

    def test_yields_on_cadence(self):
        calls = []
        cfg = small_config(tabu_max_iters=20, yield_every_iterations=5, tabu_stop_soft_threshold=-1)
        tabu = TabuSearch(self.problem, cfg, random.Random(5), Checkpoint(on_yield=lambda s, i: calls.append((s, i))))
        tabu.run(self.initial)
        self.assertEqual(calls, [("tabu", 0), ("tabu", 5), ("tabu", 10), ("tabu", 15)])

    def test_tabu_moves_are_never_generated(self):
        cfg = small_config(tabu_size=30, tabu_neighbors_per_target=400)
        tabu = TabuSearch(self.problem, cfg, random.Random(6))
        free_slot = 7
        tabu.tabu_list.extend(move_key("C0", s) for s in self.problem.slot_ids if s != free_slot)

        neighborhood = tabu._neighbors(self.initial, [0])
        self.assertTrue(neighborhood)
        for nb, key in neighborhood:
            self.assertEqual(nb.assignments[0].slot, free_slot)
            self.assertEqual(key, "C0_7")

    def test_accepts_worse_neighbor_but_keeps_best(self):
        cfg = small_config(tabu_max_iters=1, tabu_stop_soft_threshold=-1)
        tabu = TabuSearch(self.problem, cfg, random.Random(7))
        start = Schedule([Gene(c.course_id, i, "A101") for i, c in enumerate(self.courses)])
        tabu._score(start)
        self.assertEqual(start.hard_count, 0)
        worse = self.initial.copy()
        tabu._score(worse)
        self.assertGreater(worse.fitness, start.fitness)

        with mock.patch.object(tabu, "_neighbors", return_value=[(worse, "C0_0")]):
            best = tabu.run(start)

        self.assertEqual(tabu.current_history, [worse.fitness])
        self.assertEqual(tabu.history, [start.fitness])
        self.assertEqual(best.fitness, start.fitness)
        self.assertEqual([g.slot for g in best.assignments], list(range(len(self.courses))))
        self.assertEqual(list(tabu.tabu_list), ["C0_0"])


class OptimizerTests(unittest.TestCase):
    def test_two_course_scenario_is_feasible(self):
        result = optimize_schedule(ROOMS, TEACHERS, COURSES, small_config())
        self.assertEqual(result.hard_violations, 0)
        self.assertEqual(len(result.assignments), 2)
        self.assertNotEqual(result.assignments[0].slot, result.assignments[1].slot)
        self.assertEqual(result.fitness, result.hard_violations * 100000 + result.soft_score)
        self.assertEqual(len(result.runs), 2)

    def test_crossover_variant_scenario(self):
        result = optimize_schedule(ROOMS, TEACHERS, COURSES, small_config(variation="crossover"))
        self.assertEqual(result.hard_violations, 0)

    def test_impossible_capacity_keeps_violation(self):
        courses = [Course("C1", "Amphi", "T001", "G1", 100, "AMPHI")]
        result = optimize_schedule(ROOMS, TEACHERS, courses, small_config())
        self.assertGreater(result.hard_violations, 0)
        for run in result.runs:
            self.assertGreater(run.hard_violations, 0)
            self.assertFalse(run.clean)

    def test_single_course_room_slot(self):
        cfg = small_config(n_days=1, periods_per_day=1, day_names=["Lun"], period_labels=["08:00"])
        result = optimize_schedule([Room("R1", 40, "TD")], TEACHERS, [COURSES[0]], cfg)
        self.assertEqual(result.fitness, 0)
        self.assertEqual(result.assignments[0].to_dict(), {"course_id": "C1", "slot": 0, "room": "R1"})

    def test_same_seed_same_result(self):
        cfg = small_config(generations=10, early_stop_soft_threshold=-1)
        courses = crowded_courses(6)
        a = optimize_schedule(ROOMS, TEACHERS, courses, cfg)
        b = optimize_schedule(ROOMS, TEACHERS, courses, cfg)
        self.assertEqual(a.to_dict()["assignments"], b.to_dict()["assignments"])
        self.assertEqual(a.fitness, b.fitness)

    def test_parallel_runs_match_sequential(self):
        cfg = small_config(generations=10, early_stop_soft_threshold=-1)
        courses = crowded_courses(6)
        seq = optimize_schedule(ROOMS, TEACHERS, courses, cfg)
        par = optimize_schedule(ROOMS, TEACHERS, courses, small_config(generations=10, early_stop_soft_threshold=-1, n_jobs=2))
        self.assertEqual(seq.to_dict()["assignments"], par.to_dict()["assignments"])

    def test_missing_rooms_raise(self):
        with self.assertRaises(MissingInputData):
            optimize_schedule([], TEACHERS, COURSES, small_config())

    def test_empty_courses_give_trivial_result(self):
        result = optimize_schedule(ROOMS, TEACHERS, [], small_config())
        self.assertEqual(result.assignments, [])
        self.assertEqual(result.fitness, 0)
        result = optimize_schedule([], [], [], small_config())
        self.assertEqual(result.hard_violations, 0)

    def test_cancel_before_first_run(self):
        checkpoint = Checkpoint()
        checkpoint.cancel()
        with self.assertRaises(OptimizationCancelled):
            optimize_schedule(ROOMS, TEACHERS, COURSES, small_config(), checkpoint)

    def test_result_dict_shape(self):
        data = optimize_schedule(ROOMS, TEACHERS, COURSES, small_config()).to_dict()
        self.assertEqual(set(data), {"name", "assignments", "fitness", "hard_violations", "soft_score"})
        self.assertTrue(data["name"].startswith("Schedule (Optimized)"))

    def test_duplicate_course_ids_raise(self):
        courses = [COURSES[0], Course("C1", "Otra", "T001", "G2", 10, "TD")]
        with self.assertRaises(InvalidInputData):
            optimize_schedule(ROOMS, TEACHERS, courses, small_config())

    def test_cancel_while_parallel_runs_in_flight(self):
        cfg = small_config(generations=20000, early_stop_soft_threshold=-1, n_runs=2, n_jobs=2)
        checkpoint = Checkpoint()
        timer = threading.Timer(0.5, checkpoint.cancel)
        start = time.perf_counter()
        timer.start()
        try:
            with self.assertRaises(OptimizationCancelled):
                optimize_schedule(ROOMS, TEACHERS, crowded_courses(30), cfg, checkpoint)
        finally:
            timer.cancel()
        # Sin cancelación las dos corridas tardarían mucho más
        self.assertLess(time.perf_counter() - start, 20)


class ConfigTests(unittest.TestCase):
    def test_from_dict_ignores_unknown_keys(self):
        cfg = OptimizerConfig.from_dict({"population_size": 10, "elite_count": 2, "nope": 1})
        self.assertEqual(cfg.population_size, 10)
        self.assertEqual(cfg.n_slots, 24)

    def test_invalid_values_raise(self):
        with self.assertRaises(ValueError):
            OptimizerConfig(variation="annealing")
        with self.assertRaises(ValueError):
            OptimizerConfig(population_size=5, elite_count=10)
        with self.assertRaises(ValueError):
            OptimizerConfig(mutation_rate=1.5)

    def test_load_config_yaml(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("generations: 7\nvariation: crossover\n", encoding="utf-8")
            cfg = load_config(str(path))
            self.assertEqual(cfg.generations, 7)
            self.assertEqual(cfg.variation, "crossover")
            self.assertEqual(load_config(str(Path(tmp) / "missing.yaml")).generations, 120)
            path.write_text("- 1\n- 2\n", encoding="utf-8")
            with self.assertRaises(ValueError):
                load_config(str(path))


class DataAndExportTests(unittest.TestCase):
    def test_load_csv_and_export(self):
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            (base / "rooms.csv").write_text("room_id,capacity,type\nA101, 30,TD\nB201,50,AMPHI\n", encoding="utf-8")
            (base / "courses.csv").write_text(
                "course_id,subject,teacher_id,group_id,group_size,room_type_req\n"
                "C1,Analyse,T001,G1,25,TD\nC2,Algebre,T001,G2,25,TD\n",
                encoding="utf-8",
            )
            bundle = load_data(tmp)
            rooms = rooms_from_frame(bundle.rooms)
            courses = courses_from_frame(bundle.courses)
            self.assertEqual(rooms[0], Room("A101", 30, "TD"))
            self.assertEqual(courses[1].group_id, "G2")
            self.assertEqual(teachers_from_frame(bundle.teachers), [])

            cfg = small_config()
            result = optimize_schedule(rooms, [], courses, cfg)
            out = base / "out"
            self.assertTrue(export_result(result, courses, TimeGrid.from_config(cfg), str(out)))
            self.assertTrue((out / "schedule.json").exists())
            self.assertTrue((out / "schedule.csv").exists())
            self.assertTrue((out / "runs.csv").exists())

    def test_export_failure_is_not_fatal(self):
        with tempfile.TemporaryDirectory() as tmp:
            blocker = Path(tmp) / "file"
            blocker.write_text("x", encoding="utf-8")
            result = optimize_schedule(ROOMS, TEACHERS, COURSES, small_config())
            ok = export_result(result, COURSES, TimeGrid.from_config(small_config()), str(blocker))
            self.assertFalse(ok)
            self.assertEqual(result.hard_violations, 0)

    def test_schedule_table_carries_teacher_name(self):
        cfg = small_config()
        result = optimize_schedule(ROOMS, TEACHERS, COURSES, cfg)
        grid = TimeGrid.from_config(cfg)
        df = schedule_to_dataframe(result, COURSES, grid, TEACHERS)
        self.assertEqual(list(df["teacher_name"]), ["Ana", "Ana"])
        # Sin lista de docentes se usa el id
        self.assertEqual(list(schedule_to_dataframe(result, COURSES, grid)["teacher_name"]), ["T001", "T001"])


if __name__ == "__main__":
    unittest.main()
