"""
Command line interface for the captcha solver.

This CLI supports:
- Solve one or more image files with a named solver, the default one or the ensemble
- List registered solvers and their readiness
- Evaluate accuracy over a labelled directory
"""

import argparse
import json
import sys

from .config import load_settings
from .errors import CaptchaError
from .evaluation import EvaluationFramework
from .ingestion import load_image_file
from .logger import setup_logging
from .options import PreprocessOptions
from .solvers.manager import SolverManager


def parse_size(value):
    """Parse ``WIDTHxHEIGHT`` into a tuple of positive ints."""
    try:
        width, height = (int(part) for part in value.lower().split("x"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {value!r}") from None
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError(f"Size must be positive, got {value!r}")
    return width, height


def build_options(args):
    resize = args.resize or (None, None)
    return PreprocessOptions(
        grayscale=args.grayscale,
        threshold=args.threshold,
        denoise=args.denoise,
        resize_width=resize[0],
        resize_height=resize[1],
    )


def add_preprocess_arguments(parser):
    parser.add_argument("--grayscale", dest="grayscale", action="store_true", default=None,
                        help="Force grayscale conversion")
    parser.add_argument("--no-grayscale", dest="grayscale", action="store_false",
                        help="Keep colour channels")
    parser.add_argument("--threshold", type=int, default=None, help="Binary threshold 0-255")
    parser.add_argument("--denoise", dest="denoise", action="store_true", default=None,
                        help="Apply Gaussian denoise")
    parser.add_argument("--no-denoise", dest="denoise", action="store_false",
                        help="Skip denoise even where the solver enables it")
    parser.add_argument("--resize", type=parse_size, default=None, help="Exact resize, e.g. 200x50")


def build_parser():
    parser = argparse.ArgumentParser(
        description="Captcha Solver - recognize text in captcha images"
    )
    parser.add_argument("--config", "-c", help="JSON settings file")
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    parser.add_argument("--log-file", help="Optional rotating log file")

    sub = parser.add_subparsers(dest="command", required=True)

    # solve
    p_solve = sub.add_parser("solve", help="Solve captcha image files")
    p_solve.add_argument("images", nargs="+", help="Image file paths")
    group = p_solve.add_mutually_exclusive_group()
    group.add_argument("--model", "-m", help="Solver name (default: best available)")
    group.add_argument("--ensemble", action="store_true", help="Use the most confident of all solvers")
    add_preprocess_arguments(p_solve)

    # solvers
    sub.add_parser("solvers", help="List registered solvers")

    # evaluate
    p_eval = sub.add_parser("evaluate", help="Evaluate accuracy on a labelled directory")
    p_eval.add_argument("--input-dir", "-i", required=True, help="Directory with inputNN images")
    p_eval.add_argument("--labels-dir", "-l", required=True, help="Directory with outputNN.txt labels")
    p_eval.add_argument("--results-dir", "-r", help="Directory for evaluation_results.json")
    group = p_eval.add_mutually_exclusive_group()
    group.add_argument("--model", "-m", help="Solver name (default: best available)")
    group.add_argument("--ensemble", action="store_true", help="Evaluate the ensemble")
    add_preprocess_arguments(p_eval)

    return parser


def main(argv=None):
    """Main entry point for captcha solving."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        setup_logging(args.log_level, args.log_file)
        settings = load_settings(args.config)
        manager = SolverManager(settings)

        if args.command == "solve":
            options = build_options(args)
            max_bytes = settings.processing.max_image_bytes
            exit_code = 0
            for path in args.images:
                try:
                    image = load_image_file(path, max_bytes=max_bytes)
                    if args.ensemble:
                        result = manager.solve_ensemble(image, options)
                    else:
                        result = manager.solve(image, args.model, options)
                except (CaptchaError, FileNotFoundError) as e:
                    print(json.dumps({"image": path, "error": str(e)}))
                    exit_code = 1
                    continue
                print(json.dumps({"image": path, **result.to_dict()}))
            return exit_code

        elif args.command == "solvers":
            print(json.dumps(manager.get_status(), indent=2))

        elif args.command == "evaluate":
            evaluator = EvaluationFramework(manager)
            results = evaluator.evaluate_directory(
                args.input_dir,
                args.labels_dir,
                results_dir=args.results_dir,
                model=args.model,
                ensemble=args.ensemble,
                options=build_options(args),
            )
            print(json.dumps(results["summary"], indent=2))

    except (CaptchaError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
