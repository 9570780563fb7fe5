import argparse
import logging
import time

from timetable_engine.config import OptimizerConfig, load_config
from timetable_engine.data_loader import load_data, rooms_from_frame, teachers_from_frame, courses_from_frame
from timetable_engine.domains import TimeGrid
from timetable_engine.model import ScheduleResult
from timetable_engine.optimizer import optimize_schedule
from timetable_engine.persistence import export_result


def print_schedule(result: ScheduleResult, grid: TimeGrid, limit: int = 20):
    print("\n" + "=" * 60)
    print(f"{'Curso':<12} {'Aula':<10} {'Franja':<6} Etiqueta")
    print("=" * 60)
    for i, g in enumerate(result.assignments):
        if i >= limit:
            print(f"... ({len(result.assignments) - limit} más)")
            break
        print(f"{g.course_id:<12} {g.room:<10} {g.slot:<6} {grid.label(g.slot)}")
    print("=" * 60 + "\n")


def main():
    parser = argparse.ArgumentParser(description="Optimización de horarios (AG + búsqueda tabú)")
    parser.add_argument("--config", default="config.yaml", help="Ruta al archivo de configuración")
    parser.add_argument("--data_dir", default="data", help="Directorio con rooms.csv, teachers.csv y courses.csv")
    parser.add_argument("--out_dir", default="outputs", help="Directorio de salida")
    parser.add_argument("--runs", type=int, help="Número de corridas independientes")
    parser.add_argument("--seed", type=int, help="Semilla")
    parser.add_argument("--variation", choices=["smart_mutation", "crossover"], help="Operador de variación del AG")
    parser.add_argument("--jobs", type=int, help="Procesos para ejecutar corridas en paralelo")
    parser.add_argument("-v", "--verbose", action="store_true", help="Muestra el progreso por generación")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {
        "n_runs": args.runs,
        "seed": args.seed,
        "variation": args.variation,
        "n_jobs": args.jobs,
    }
    cfg = load_config(args.config)
    cfg = OptimizerConfig.from_dict({**cfg.to_dict(), **{k: v for k, v in overrides.items() if v is not None}})

    print("Cargando datos...")
    bundle = load_data(args.data_dir)
    rooms = rooms_from_frame(bundle.rooms)
    teachers = teachers_from_frame(bundle.teachers)
    courses = courses_from_frame(bundle.courses)
    print(f"Aulas: {len(rooms)} | Docentes: {len(teachers)} | Cursos: {len(courses)}")
    print(f"Generaciones: {cfg.generations} | Población: {cfg.population_size} | Corridas: {cfg.n_runs}")

    start = time.perf_counter()
    result = optimize_schedule(rooms, teachers, courses, cfg)
    elapsed = time.perf_counter() - start

    grid = TimeGrid.from_config(cfg)
    print("\n--- MEJOR SOLUCIÓN ---")
    print(
        f"Fitness: {result.fitness:.0f} | Duras: {result.hard_violations} | "
        f"Blandas: {result.soft_score:.0f} | Tiempo: {elapsed:.2f}s"
    )
    print_schedule(result, grid)

    if export_result(result, courses, grid, args.out_dir, teachers):
        print(f"Se guardaron resultados en {args.out_dir}/schedule.json y {args.out_dir}/schedule.csv")
    else:
        print("No se pudieron guardar los resultados; el horario calculado se muestra arriba.")


if __name__ == "__main__":
    main()
