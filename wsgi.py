"""WSGI entry point for production deployment."""
import sys
import os
import atexit
import logging
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).parent))

from config import load_config
from utils.logger import setup_logging
from monitor.telemetry import create_telemetry_source
from monitor.engine import AnalyticsEngine
from web.app import create_app

logger = logging.getLogger("perfwatch.wsgi")

config = load_config(os.environ.get("PERFWATCH_CONFIG"))
setup_logging(config["logging"]["level"], config["logging"].get("file"))

source = create_telemetry_source(config)
engine = AnalyticsEngine(source, config)
app = create_app(config, engine)

engine.start()
atexit.register(engine.shutdown)
logger.info("perfwatch engine started under WSGI")
