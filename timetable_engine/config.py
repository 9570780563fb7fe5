"""
Configuración del optimizador de horarios (AG + búsqueda tabú).

Todos los parámetros ajustables viven en un único ``OptimizerConfig`` que se
pasa explícitamente al orquestador. Se puede cargar desde YAML para dejar las
corridas reproducibles.
"""
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List, Any

import yaml


DEFAULT_DAY_NAMES: List[str] = ["Lundi", "Mardi", "Mercredi", "Jeudi", "Vendredi", "Samedi"]
DEFAULT_PERIOD_LABELS: List[str] = ["08:30-10:15", "10:30-12:15", "14:30-16:15", "16:30-18:15"]

# Tipos de aula requeridos que aceptan una "mejora" a otros tipos (ej. TD en anfiteatro)
DEFAULT_ROOM_UPGRADES: Dict[str, List[str]] = {
    "cour": ["cour", "TD", "AMPHI"],
    "TD": ["cour", "TD", "AMPHI"],
}

VARIATIONS = ("smart_mutation", "crossover")


@dataclass
class OptimizerConfig:
    # Tiempo
    n_days: int = 6
    periods_per_day: int = 4
    day_names: List[str] = field(default_factory=lambda: list(DEFAULT_DAY_NAMES))
    period_labels: List[str] = field(default_factory=lambda: list(DEFAULT_PERIOD_LABELS))

    # Algoritmo genético
    population_size: int = 200
    elite_count: int = 20
    mutation_rate: float = 0.4
    generations: int = 120
    tournament_size: int = 3
    tournament_pool: int = 40
    slot_mutation_prob: float = 0.6
    conflict_mutation_repeats: int = 2
    variation: str = "smart_mutation"  # o "crossover"
    stagnation_window: int = 20

    # Corridas
    n_runs: int = 5
    n_jobs: int = 1
    seed: int = 42

    # Búsqueda tabú
    tabu_size: int = 40
    tabu_max_iters: int = 300
    tabu_conflict_targets: int = 10
    tabu_random_targets: int = 5
    tabu_neighbors_per_target: int = 5
    tabu_room_change_prob: float = 0.5

    # Pesos y fitness
    hard_weight: float = 100000
    gap_weight: float = 10
    balance_weight: float = 5
    max_daily_sessions: int = 3
    early_stop_soft_threshold: float = 50
    tabu_stop_soft_threshold: float = 0

    # Cesión cooperativa de control
    yield_every_generations: int = 10
    yield_every_iterations: int = 50

    # Registro de progreso del AG (0 = desactivado)
    log_every_generations: int = 5

    # Dominio
    room_upgrades: Dict[str, List[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_ROOM_UPGRADES.items()}
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizerConfig":
        merged = asdict(cls())
        for k, v in data.items():
            if k in merged:
                merged[k] = v
        return cls(**merged)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __post_init__(self):
        if self.n_days < 1 or self.periods_per_day < 1:
            raise ValueError("n_days y periods_per_day deben ser >= 1")
        if self.population_size < 1:
            raise ValueError("population_size debe ser >= 1")
        if not 0 <= self.elite_count <= self.population_size:
            raise ValueError("elite_count debe estar entre 0 y population_size")
        if self.tournament_size < 1 or self.tournament_pool < 1:
            raise ValueError("tournament_size y tournament_pool deben ser >= 1")
        if self.variation not in VARIATIONS:
            raise ValueError(f"variation desconocida: {self.variation!r} (opciones: {VARIATIONS})")
        for name in ("mutation_rate", "slot_mutation_prob", "tabu_room_change_prob"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} debe estar en [0, 1], no {value}")
        if self.n_runs < 1 or self.n_jobs < 1:
            raise ValueError("n_runs y n_jobs deben ser >= 1")
        if self.log_every_generations < 0:
            raise ValueError("log_every_generations debe ser >= 0")
        if self.tabu_size < 1:
            raise ValueError("tabu_size debe ser >= 1")

    @property
    def n_slots(self) -> int:
        return self.n_days * self.periods_per_day


def _load_yaml(path: Path) -> Any:
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    return yaml.safe_load(text) or {}


def load_config(path: str = "config.yaml") -> OptimizerConfig:
    cfg_path = Path(path)
    data = _load_yaml(cfg_path)
    if not isinstance(data, dict):
        raise ValueError(f"{path} debe contener un objeto mapeo")
    return OptimizerConfig.from_dict(data)
