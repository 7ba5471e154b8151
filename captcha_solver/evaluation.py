"""
Evaluation Framework module.

This module measures recognition accuracy of a solver (or of the ensemble)
over a labelled captcha directory.

Data layout (same pairing rule as the training data):
    input_dir/inputNN.jpg   (any of .jpg .jpeg .png .bmp .gif)
    labels_dir/outputNN.txt (first line = ground truth text)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging
import time

from .errors import CaptchaError
from .ingestion import load_image_file
from .options import PreprocessOptions
from .solvers.manager import SolverManager


logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp", ".gif")


def char_accuracy(prediction: str, ground_truth: str) -> float:
    """Fraction of ground-truth positions predicted correctly."""
    if not ground_truth:
        return 1.0 if not prediction else 0.0
    correct = sum(1 for p, t in zip(prediction, ground_truth) if p == t)
    return correct / len(ground_truth)


class EvaluationFramework:
    """Score a solver manager against labelled captchas."""

    def __init__(self, manager: SolverManager):
        """Initialize the evaluation framework.

        Args:
            manager: Solver manager to evaluate
        """
        self.manager = manager

    def find_samples(self, input_dir: str | Path, labels_dir: str | Path) -> List[Dict[str, Any]]:
        """Pair every ``inputNN`` image with its ``outputNN.txt`` label.

        Images without a label file are skipped with a warning.

        Raises:
            ValueError: If either directory does not exist
        """
        input_path = Path(input_dir)
        labels_path = Path(labels_dir)
        for path, name in [(input_path, "input"), (labels_path, "labels")]:
            if not path.exists():
                raise ValueError(f"{name} directory does not exist: {path}")

        samples = []
        for image_file in sorted(input_path.iterdir()):
            if image_file.suffix.lower() not in IMAGE_EXTENSIONS:
                continue
            if not image_file.stem.startswith("input"):
                continue
            captcha_num = image_file.stem[len("input"):]
            label_file = labels_path / f"output{captcha_num}.txt"
            if not label_file.exists():
                logger.warning("No label file found for %s", image_file.name)
                continue
            with open(label_file, "r", encoding="utf-8") as f:
                ground_truth = f.read().strip().split("\n")[0].strip()
            samples.append({
                "captcha_name": image_file.name,
                "image_path": image_file,
                "ground_truth": ground_truth,
            })
        return samples

    def evaluate_sample(self, sample: Dict[str, Any], model: Optional[str] = None,
                        ensemble: bool = False,
                        options: Optional[PreprocessOptions] = None) -> Dict[str, Any]:
        """Solve one labelled captcha and score the prediction."""
        ground_truth = sample["ground_truth"]
        record: Dict[str, Any] = {
            "captcha_name": sample["captcha_name"],
            "ground_truth": ground_truth,
        }

        start = time.perf_counter()
        try:
            image = load_image_file(
                sample["image_path"],
                max_bytes=self.manager.settings.processing.max_image_bytes,
            )
            if ensemble:
                result = self.manager.solve_ensemble(image, options)
            else:
                result = self.manager.solve(image, model, options)
        except CaptchaError as e:
            record.update({
                "error": str(e),
                "correct": False,
                "char_accuracy": 0.0,
                "processing_time_ms": (time.perf_counter() - start) * 1000.0,
            })
            return record

        record.update({
            "prediction": result.text,
            "solver_name": result.solver_name,
            "confidence": result.confidence,
            "correct": result.text == ground_truth,
            "char_accuracy": char_accuracy(result.text, ground_truth),
            "processing_time_ms": (time.perf_counter() - start) * 1000.0,
        })
        return record

    def evaluate_directory(self, input_dir: str | Path, labels_dir: str | Path,
                           results_dir: Optional[str | Path] = None,
                           model: Optional[str] = None, ensemble: bool = False,
                           options: Optional[PreprocessOptions] = None) -> Dict[str, Any]:
        """Evaluate every labelled captcha in a directory.

        Args:
            input_dir: Directory with ``inputNN`` images
            labels_dir: Directory with ``outputNN.txt`` labels
            results_dir: If given, ``evaluation_results.json`` is written here
            model: Solver name; None uses the default solver
            ensemble: Use the ensemble instead of a single solver
            options: Preprocessing overrides

        Returns:
            Dictionary with per-sample records and a summary
        """
        samples = self.find_samples(input_dir, labels_dir)
        logger.info("Evaluating %d captchas", len(samples))

        records = [self.evaluate_sample(s, model, ensemble, options) for s in samples]
        results = {
            "solver": "ensemble" if ensemble else (model or self.manager.default_solver),
            "total_captchas": len(records),
            "samples": records,
            "summary": self._compute_summary(records),
        }

        if results_dir is not None:
            output_path = Path(results_dir)
            output_path.mkdir(parents=True, exist_ok=True)
            results_file = output_path / "evaluation_results.json"
            with open(results_file, "w", encoding="utf-8") as f:
                json.dump(results, f, indent=2)
            logger.info("Evaluation results saved to %s", results_file)

        return results

    def _compute_summary(self, records: List[Dict[str, Any]]) -> Dict[str, Any]:
        total = len(records)
        if total == 0:
            return {
                "overall_accuracy": 0.0,
                "mean_char_accuracy": 0.0,
                "mean_confidence": 0.0,
                "failures": 0,
                "mean_processing_time_ms": 0.0,
            }

        solved = [r for r in records if "error" not in r]
        return {
            "overall_accuracy": sum(1 for r in records if r["correct"]) / total,
            "mean_char_accuracy": sum(r["char_accuracy"] for r in records) / total,
            "mean_confidence": (
                sum(r["confidence"] for r in solved) / len(solved) if solved else 0.0
            ),
            "failures": total - len(solved),
            "mean_processing_time_ms": sum(r["processing_time_ms"] for r in records) / total,
        }
