# ------------------------------------------------------------------------------
#  BikeReplay
#  Copyright (c) 2025 Fabio Oddi
#
#  This file is part of BikeReplay, released under the BSD 3-Clause License.
#  You may use, modify, and redistribute this file according to the terms of the
#  license. Attribution is required if this code is used in other works.
# ------------------------------------------------------------------------------

import sys, getopt, logging
from pathlib import Path
from config import Config
from application import Application
from errors import DataFetchError, MalformedChunkError
from eventbus import Events
from plugin_registry import get_renderer, load_plugins_from_config
from logging_utils import configure_logging

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

def print_usage(errcode=None):
    """Print usage."""
    print("Usage: python main.py -c <config_file_path> [--headless] [--max-ticks N]")
    sys.exit(errcode)

def run_headless(app: Application, max_ticks=None) -> int:
    """Replay without a window, logging the clock once per loaded chunk."""
    app.on(Events.LOADED_CHUNK, lambda chunk: logging.info("Loaded chunk %s (clock %s)", chunk.file_name, app.time_converter(app.counter)))
    app.on(Events.LOAD_FAILED, lambda error: logging.error("Chunk skipped: %s", error))
    app.load_data()
    ticks = app.run_headless(max_ticks=max_ticks)
    logging.info("Replay finished after %d ticks with %d bikes", ticks, len(app.entity_manager))
    app.close()
    return 0

def run_viewer(config: Config) -> int:
    """Replay inside the Qt viewer."""
    from PySide6.QtWidgets import QApplication
    from gui import QtTimerService, run_gui
    qt_app = QApplication(sys.argv[:1])
    renderer_settings = dict(config.parse_replay().as_dict(), gui=config.gui)
    app = Application.from_config(config, renderer=get_renderer("2d", renderer_settings), timer_service=QtTimerService())
    return run_gui(config.gui, app, qt_app)

def main(argv):
    """Parse arguments and start the replay."""
    configfile = ""
    headless = False
    max_ticks = None
    try:
        opts, args = getopt.getopt(argv, "hc:", ["help", "config=", "headless", "max-ticks="])
    except getopt.GetoptError:
        logging.fatal("Error in parsing command line arguments")
        print_usage(1)
    for opt, arg in opts:
        if opt in ("-h", "--help"):
            print_usage()
        elif opt in ("-c", "--config"):
            configfile = arg
        elif opt == "--headless":
            headless = True
        elif opt == "--max-ticks":
            try:
                max_ticks = int(arg)
            except ValueError:
                logging.fatal("--max-ticks expects an integer")
                print_usage(1)
    if not configfile:
        logging.fatal("No configuration file provided")
        print_usage(1)
    config_path_resolved = Path(configfile).expanduser().resolve()
    try:
        my_config = Config(config_path=configfile)
        configure_logging(
            my_config.logging,
            config_path=config_path_resolved,
            project_root=ROOT_DIR,
        )
        # Load any external plugins declared in the config (optional).
        load_plugins_from_config(my_config)
        if my_config.gui and not headless:
            code = run_viewer(my_config)
        else:
            code = run_headless(Application.from_config(my_config), max_ticks=max_ticks)
    except (OSError, ValueError, DataFetchError, MalformedChunkError) as e:
        logging.fatal(f"Failed to run replay: {e}")
        sys.exit(1)
    sys.exit(code)

def main_entry():
    """Console script entry point."""
    main(sys.argv[1:])

if __name__ == "__main__":
    main(sys.argv[1:])
