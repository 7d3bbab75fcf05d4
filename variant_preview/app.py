# variant_preview/app.py
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from PyQt5.QtWidgets import QApplication

from .main_window import MainWindow
from .persistence import load_config, resolve_config_path

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="variant_preview", description="Preview and adjust video variants.")
    p.add_argument("run_folder", nargs="?", default=None, help="Analysis run folder to open")
    p.add_argument("--config", default=None, help="Path to config.json")
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    return p


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_app(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    cfg = load_config(args.config)
    configure_logging(args.log_level or cfg.log_level)
    logger.info("Using config %s", resolve_config_path(args.config))

    app = QApplication(sys.argv[:1])

    win = MainWindow(cfg=cfg, run_folder=args.run_folder)
    win.show()

    return app.exec_()
