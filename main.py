# main.py
import sys
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List

from src.LoggingSetup import setup_logging
from src.SignificanceFilter import SignificanceFilter
from src.classification.ModelManager import ModelManager
from src.config_loader import load_config
from src.modes import parse_mode
from src.types import DetectedEvent


def resolve_paths(script_path: Path) -> Dict[str, Path]:
    """
    Resolves application paths relative to the entry script.

    Layout:
        project/
        ├── main.py
        ├── src/
        ├── config/     # CONFIG_DIR
        ├── models/     # MODELS_DIR
        └── logs/       # LOGS_DIR

    Args:
        script_path: Path to main script

    Returns:
        Dictionary with resolved paths
    """
    project_dir = script_path.resolve().parent
    return {
        "APP_DIR": project_dir,
        "MODELS_DIR": project_dir / "models",
        "CONFIG_DIR": project_dir / "config",
        "LOGS_DIR": project_dir / "logs",
    }


class ConsoleEventPrinter:
    """Prints detected events to stdout."""

    def on_event(self, event: DetectedEvent) -> None:
        stamp = datetime.fromtimestamp(event.timestamp).strftime('%H:%M:%S')
        others = ", ".join(f"{name} {score:.2f}" for name, score in list(event.predictions.items())[1:])
        print(f"[{stamp}] {event.class_name} ({event.score:.2f})  {others}", flush=True)


def parse_args(argv: List[str]) -> Dict[str, object]:
    """Parse -v, --download, --mode=, --input-file=, --config=, --threshold=."""
    args: Dict[str, object] = {
        "verbose": "-v" in argv,
        "download": "--download" in argv,
        "mode": None,
        "input_file": None,
        "config": None,
        "threshold": None,
    }
    for arg in argv:
        if arg.startswith("--mode="):
            args["mode"] = parse_mode(arg.split("=", 1)[1])
        elif arg.startswith("--input-file="):
            args["input_file"] = arg.split("=", 1)[1]
        elif arg.startswith("--config="):
            args["config"] = Path(arg.split("=", 1)[1])
        elif arg.startswith("--threshold="):
            args["threshold"] = float(arg.split("=", 1)[1])
    return args


def main(argv: List[str]) -> int:
    paths = resolve_paths(Path(__file__))
    args = parse_args(argv)
    is_frozen = getattr(sys, 'frozen', False)

    setup_logging(paths["LOGS_DIR"], verbose=bool(args["verbose"]), is_frozen=is_frozen)

    config_path = args["config"] or paths["CONFIG_DIR"] / "listener_config.json"
    config = load_config(config_path)
    if args["mode"] is not None:
        config['classification']['mode'] = args["mode"].value
    if args["threshold"] is not None:
        config['events']['threshold'] = args["threshold"]

    models_dir = paths["MODELS_DIR"]
    models_dir.mkdir(parents=True, exist_ok=True)
    missing_models = ModelManager.get_missing_models(config, models_dir)
    if missing_models:
        if not args["download"]:
            logging.error(f"Missing model files: {missing_models}. Run with --download to fetch them.")
            return 1
        if not ModelManager.download_models(config, models_dir):
            logging.error("Model download failed. Exiting.")
            return 1

    # Import pipeline only after models are confirmed present
    from src.pipeline import ClassificationPipeline

    pipeline = ClassificationPipeline(
        config=config,
        models_dir=models_dir,
        input_file=args["input_file"],
        verbose=bool(args["verbose"]),
    )
    pipeline.add_subscriber(SignificanceFilter(config, subscribers=[ConsoleEventPrinter()]))
    return pipeline.run()


if __name__ == "__main__":
    try:
        sys.exit(main(sys.argv[1:]))
    except KeyboardInterrupt:
        logging.info("Interrupted by user.")
        sys.exit(0)
    except Exception as e:
        logging.exception(f"ERROR: {type(e).__name__}: {e}")
        sys.exit(1)
