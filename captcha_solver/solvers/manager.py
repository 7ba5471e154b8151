"""
Solver Manager

Owns every constructed solver, resolves requests to a solver (or to the whole
ensemble) and applies the fallback and selection policy.

The solver map is built once in ``__init__`` and only read afterwards, so a
single manager can serve concurrent requests without locking.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from PIL import Image

from ..config import Settings
from ..errors import BadRequest, CaptchaError, ModelLoadError, ModelNotFound, ProcessingError
from ..options import PreprocessOptions
from .base import CaptchaSolver, SolveResult
from .cnn import SequenceNetworkSolver
from .ocr import TextLineSolver


logger = logging.getLogger(__name__)

SolverFactory = Callable[[str], CaptchaSolver]

# Assumed accuracy ranking, best first
DEFAULT_PRIORITY = ("cnn", "ocr")


def default_factories(settings: Settings) -> Dict[str, SolverFactory]:
    """Enabled solver factories in construction order."""
    factories: Dict[str, SolverFactory] = {}
    if settings.models.ocr_enabled:
        factories["ocr"] = TextLineSolver.create
    if settings.models.cnn_enabled:
        factories["cnn"] = SequenceNetworkSolver.create
    return factories


@dataclass(frozen=True)
class BatchRequest:
    image: Image.Image
    model: Optional[str] = None
    options: Optional[PreprocessOptions] = None


@dataclass(frozen=True)
class BatchResult:
    index: int
    success: bool
    result: Optional[SolveResult] = None
    error: Optional[str] = None
    processing_time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "success": self.success,
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
            "processing_time_ms": self.processing_time_ms,
        }


class SolverManager:
    """Registry and dispatcher for captcha solvers."""

    def __init__(self, settings: Optional[Settings] = None,
                 factories: Optional[Mapping[str, SolverFactory]] = None):
        """Construct every enabled solver.

        A factory that raises is skipped with a warning; the solver is then
        absent, not present-but-unready.

        Args:
            settings: Service settings (models path, enabled solvers, limits)
            factories: Ordered ``name -> factory(models_path)`` mapping;
                defaults to the solvers enabled in ``settings``

        Raises:
            ModelLoadError: If no solver could be constructed
        """
        self.settings = settings or Settings()
        if factories is None:
            factories = default_factories(self.settings)

        models_path = self.settings.models.path
        self._solvers: Dict[str, CaptchaSolver] = {}

        for name, factory in factories.items():
            try:
                solver = factory(models_path)
            except Exception as e:
                logger.warning("Failed to initialize %s solver: %s", name, e)
                continue
            self._solvers[name] = solver
            logger.info("%s solver initialized", name.upper())

        self._default_solver = self._select_default()

    def _select_default(self) -> str:
        configured = self.settings.models.default_model
        if configured:
            if configured in self._solvers:
                return configured
            logger.warning("Configured default solver %s is not available", configured)

        for name in DEFAULT_PRIORITY:
            if name in self._solvers:
                return name
        if self._solvers:
            return next(iter(self._solvers))
        raise ModelLoadError("No solvers available")

    @property
    def default_solver(self) -> str:
        return self._default_solver

    def model_count(self) -> int:
        """Number of registered solvers, ready or not."""
        return len(self._solvers)

    def available_solvers(self) -> List[str]:
        return list(self._solvers)

    def get_solver(self, name: str) -> CaptchaSolver:
        try:
            return self._solvers[name]
        except KeyError:
            raise ModelNotFound(name) from None

    def solve(self, image: Image.Image, model_name: Optional[str] = None,
              options: Optional[PreprocessOptions] = None) -> SolveResult:
        """Solve with the named solver, or the default one.

        Raises:
            ModelNotFound: If ``model_name`` is not registered
            ModelLoadError: If the solver is not ready
        """
        solver_name = model_name or self._default_solver
        solver = self.get_solver(solver_name)

        if not solver.is_ready():
            raise ModelLoadError(f"Solver {solver_name} is not ready")

        return solver.solve(image, options)

    def solve_ensemble(self, image: Image.Image,
                       options: Optional[PreprocessOptions] = None) -> SolveResult:
        """Run every ready solver and return the most confident result.

        Unready solvers are skipped. A solver that raises is logged and left
        out. On equal confidence the solver registered first wins.

        Raises:
            ProcessingError: If no solver produced a result
        """
        best: Optional[SolveResult] = None

        for name, solver in self._solvers.items():
            if not solver.is_ready():
                continue
            try:
                result = solver.solve(image, options)
            except Exception as e:
                logger.warning("Solver %s failed: %s", name, e)
                continue
            if best is None or result.confidence > best.confidence:
                best = result

        if best is None:
            raise ProcessingError("All solvers failed")
        return best

    def solve_batch(self, requests: Sequence[BatchRequest]) -> List[BatchResult]:
        """Solve several images independently.

        Per-item failures are reported in the item's result instead of
        failing the batch.

        Raises:
            BadRequest: If more requests than ``processing.batch_size`` are given
        """
        batch_size = self.settings.processing.batch_size
        if len(requests) > batch_size:
            raise BadRequest(f"Batch size exceeds limit of {batch_size}")

        results: List[BatchResult] = []
        for index, request in enumerate(requests):
            start = time.perf_counter()
            try:
                result = self.solve(request.image, request.model, request.options)
            except CaptchaError as e:
                logger.info("Batch item %d failed: %s", index, e)
                results.append(BatchResult(
                    index=index,
                    success=False,
                    error=str(e),
                    processing_time_ms=(time.perf_counter() - start) * 1000.0,
                ))
                continue
            results.append(BatchResult(
                index=index,
                success=True,
                result=result,
                processing_time_ms=(time.perf_counter() - start) * 1000.0,
            ))
        return results

    def get_status(self) -> Dict[str, Any]:
        """Readiness summary for health reporting."""
        return {
            "default_solver": self._default_solver,
            "model_count": self.model_count(),
            "solvers": {name: solver.is_ready() for name, solver in self._solvers.items()},
            "ready": any(solver.is_ready() for solver in self._solvers.values()),
        }
