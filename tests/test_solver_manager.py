"""
Tests for the solver manager: registration, default selection, ensemble and batch.
"""

import itertools

import pytest
from PIL import Image

from captcha_solver.config import ModelsSettings, ProcessingSettings, Settings
from captcha_solver.errors import BadRequest, ModelLoadError, ModelNotFound, ProcessingError
from captcha_solver.solvers.base import CaptchaSolver
from captcha_solver.solvers.cnn import SequenceNetworkSolver
from captcha_solver.solvers.manager import BatchRequest, SolverManager, default_factories
from captcha_solver.solvers.ocr import TextLineSolver


class FixedSolver(CaptchaSolver):
    """Solver returning a fixed answer."""

    def __init__(self, name, text="ABC", confidence=0.5, ready=True, error=None):
        super().__init__()
        self._name = name
        self.text = text
        self.confidence = confidence
        self.error = error
        self.calls = 0
        if ready:
            self.mark_ready()

    @property
    def name(self):
        return self._name

    def recognize(self, image):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.text, self.confidence


def factory_for(solver):
    return lambda models_path: solver


def build_manager(*solvers, settings=None):
    factories = {solver.name: factory_for(solver) for solver in solvers}
    return SolverManager(settings=settings, factories=factories)


@pytest.fixture
def image():
    return Image.new("RGB", (60, 20), "white")


class TestRegistration:

    def test_no_solvers(self):
        with pytest.raises(ModelLoadError, match="No solvers available"):
            SolverManager(factories={})

    def test_failing_factory_is_skipped(self):
        def broken(models_path):
            raise RuntimeError("boom")

        manager = SolverManager(factories={"cnn": broken, "ocr": factory_for(FixedSolver("ocr"))})
        assert manager.available_solvers() == ["ocr"]
        assert manager.default_solver == "ocr"

    def test_all_factories_failing(self):
        def broken(models_path):
            raise RuntimeError("boom")

        with pytest.raises(ModelLoadError):
            SolverManager(factories={"ocr": broken})

    def test_factories_receive_models_path(self):
        seen = []

        def recording(models_path):
            seen.append(models_path)
            return FixedSolver("ocr")

        settings = Settings(models=ModelsSettings(path="/srv/models"))
        SolverManager(settings=settings, factories={"ocr": recording})
        assert seen == ["/srv/models"]

    def test_default_factories_follow_enabled_flags(self):
        both = default_factories(Settings())
        assert list(both) == ["ocr", "cnn"]
        assert both["ocr"] == TextLineSolver.create
        assert both["cnn"] == SequenceNetworkSolver.create

        only_ocr = default_factories(Settings(models=ModelsSettings(cnn_enabled=False)))
        assert list(only_ocr) == ["ocr"]

    def test_default_construction(self, tmp_path):
        settings = Settings(models=ModelsSettings(path=str(tmp_path)))
        manager = SolverManager(settings)

        assert manager.available_solvers() == ["ocr", "cnn"]
        assert manager.default_solver == "cnn"
        assert manager.model_count() == 2


class TestDefaultSolver:

    def test_cnn_preferred(self):
        manager = build_manager(FixedSolver("ocr"), FixedSolver("cnn"))
        assert manager.default_solver == "cnn"

    def test_single_solver_is_default(self):
        manager = build_manager(FixedSolver("ocr"))
        assert manager.default_solver == "ocr"

    def test_unknown_names_fall_back_to_first_registered(self):
        manager = build_manager(FixedSolver("alpha"), FixedSolver("beta"))
        assert manager.default_solver == "alpha"

    def test_configured_default(self):
        settings = Settings(models=ModelsSettings(default_model="ocr"))
        manager = build_manager(FixedSolver("ocr"), FixedSolver("cnn"), settings=settings)
        assert manager.default_solver == "ocr"

    def test_configured_default_missing_uses_priority(self):
        settings = Settings(models=ModelsSettings(default_model="rnn"))
        manager = build_manager(FixedSolver("ocr"), FixedSolver("cnn"), settings=settings)
        assert manager.default_solver == "cnn"

    def test_unready_solver_still_counts(self):
        manager = build_manager(FixedSolver("ocr"), FixedSolver("cnn", ready=False))
        assert manager.model_count() == 2
        assert manager.default_solver == "cnn"


class TestSolve:

    def test_default_solver_is_used(self, image):
        ocr = FixedSolver("ocr", text="OCR")
        cnn = FixedSolver("cnn", text="CNN")
        manager = build_manager(ocr, cnn)

        result = manager.solve(image)
        assert result.text == "CNN"
        assert result.solver_name == "cnn"

    def test_named_solver(self, image):
        manager = build_manager(FixedSolver("ocr", text="OCR"), FixedSolver("cnn"))
        assert manager.solve(image, "ocr").text == "OCR"

    def test_unknown_name(self, image):
        manager = build_manager(FixedSolver("ocr"))

        with pytest.raises(ModelNotFound, match="missing"):
            manager.solve(image, "missing")

    def test_unready_solver(self, image):
        manager = build_manager(FixedSolver("ocr", ready=False))

        with pytest.raises(ModelLoadError, match="Solver ocr is not ready"):
            manager.solve(image)

    def test_solver_error_propagates(self, image):
        manager = build_manager(FixedSolver("ocr", error=RuntimeError("bad")))

        with pytest.raises(ProcessingError):
            manager.solve(image)


class TestEnsemble:

    @pytest.mark.parametrize("order", list(itertools.permutations([0.4, 0.91, 0.7])))
    def test_highest_confidence_wins_in_any_order(self, image, order):
        solvers = [
            FixedSolver(f"s{i}", text=f"T{i}", confidence=confidence)
            for i, confidence in enumerate(order)
        ]
        manager = build_manager(*solvers)

        result = manager.solve_ensemble(image)
        assert result.confidence == pytest.approx(0.91)
        assert result.text == f"T{order.index(0.91)}"

    def test_tie_goes_to_first_registered(self, image):
        manager = build_manager(
            FixedSolver("ocr", text="FIRST", confidence=0.8),
            FixedSolver("cnn", text="SECOND", confidence=0.8),
        )
        assert manager.solve_ensemble(image).text == "FIRST"

    def test_unready_solvers_are_skipped(self, image):
        lazy = FixedSolver("cnn", confidence=0.99, ready=False)
        manager = build_manager(FixedSolver("ocr", text="OK", confidence=0.1), lazy)

        assert manager.solve_ensemble(image).text == "OK"
        assert lazy.calls == 0

    def test_failing_solver_is_left_out(self, image):
        manager = build_manager(
            FixedSolver("cnn", error=RuntimeError("bad")),
            FixedSolver("ocr", text="OK", confidence=0.3),
        )
        assert manager.solve_ensemble(image).text == "OK"

    def test_all_failing(self, image):
        manager = build_manager(
            FixedSolver("cnn", error=RuntimeError("bad")),
            FixedSolver("ocr", ready=False),
        )
        with pytest.raises(ProcessingError, match="All solvers failed"):
            manager.solve_ensemble(image)


class TestBatch:

    def test_items_are_solved_independently(self, image):
        manager = build_manager(FixedSolver("ocr", text="OCR"), FixedSolver("cnn", text="CNN"))
        requests = [
            BatchRequest(image),
            BatchRequest(image, model="ocr"),
            BatchRequest(image, model="missing"),
        ]

        results = manager.solve_batch(requests)
        assert [r.index for r in results] == [0, 1, 2]
        assert [r.success for r in results] == [True, True, False]
        assert results[0].result.text == "CNN"
        assert results[1].result.text == "OCR"
        assert results[2].result is None
        assert "Model not found" in results[2].error
        assert all(r.processing_time_ms >= 0 for r in results)

    def test_batch_limit(self, image):
        settings = Settings(processing=ProcessingSettings(batch_size=2))
        manager = build_manager(FixedSolver("ocr"), settings=settings)

        with pytest.raises(BadRequest, match="Batch size exceeds limit of 2"):
            manager.solve_batch([BatchRequest(image)] * 3)

    def test_batch_at_limit(self, image):
        settings = Settings(processing=ProcessingSettings(batch_size=2))
        manager = build_manager(FixedSolver("ocr"), settings=settings)

        assert len(manager.solve_batch([BatchRequest(image)] * 2)) == 2

    def test_batch_result_to_dict(self, image):
        manager = build_manager(FixedSolver("ocr", text="X", confidence=0.25))
        data = manager.solve_batch([BatchRequest(image)])[0].to_dict()

        assert data["success"] is True
        assert data["result"] == {"text": "X", "confidence": 0.25, "solver_name": "ocr"}
        assert data["error"] is None


class TestStatus:

    def test_get_status(self):
        manager = build_manager(FixedSolver("ocr"), FixedSolver("cnn", ready=False))

        assert manager.get_status() == {
            "default_solver": "cnn",
            "model_count": 2,
            "solvers": {"ocr": True, "cnn": False},
            "ready": True,
        }
