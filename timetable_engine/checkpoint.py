"""
Puntos de control cooperativos.

El AG y la búsqueda tabú llaman a ``tick`` en cada frontera de generación,
iteración o corrida. Ahí se comprueba la cancelación y, cada ``every``
pasos, se cede el control al anfitrión mediante un callback opcional
(barra de progreso, bucle de eventos, etc.).
"""
import threading
from typing import Callable, Optional


class OptimizationCancelled(Exception):
    """El llamador abortó la optimización."""


YieldCallback = Callable[[str, int], None]


class Checkpoint:
    def __init__(self, on_yield: Optional[YieldCallback] = None, cancel_event: Optional[threading.Event] = None):
        self.on_yield = on_yield
        # Puede ser un Event de multiprocessing.Manager compartido entre procesos
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def tick(self, stage: str, index: int, every: int = 1) -> None:
        if self.cancel_event.is_set():
            raise OptimizationCancelled(f"Cancelado en {stage} {index}")
        if self.on_yield is not None and every > 0 and index % every == 0:
            self.on_yield(stage, index)
