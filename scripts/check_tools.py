#!/usr/bin/env python3
"""
Tool sanity check.
Runs both tools once against the live services and writes
artifacts/tool_check.json.

Checks:
  - Forecast: Open-Meteo lookup for Berlin (3 days, default variables)
  - Python: hello world, a timeout, and a missing interpreter
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.core.config import get_settings
from src.tools.sandbox import PythonSandbox, execute_python_for_agent
from src.tools.weather import get_forecast_for_agent

logging.basicConfig(
    level=get_settings().log_level, format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ARTIFACTS_DIR = Path("artifacts")


def run_checks() -> dict:
    results = {"timestamp": datetime.now().isoformat(), "checks": {}}

    logger.info("Checking forecast tool...")
    forecast = get_forecast_for_agent(latitude=52.52, longitude=13.41, forecast_days=3)
    results["checks"]["forecast"] = {
        "passed": "error" not in forecast and len(forecast.get("forecast", [])) == 3,
        "result": forecast,
    }

    logger.info("Checking Python tool...")
    hello = execute_python_for_agent('print("hello")')
    results["checks"]["python_hello"] = {
        "passed": hello == {"stdout": "hello\n", "stderr": "", "exitCode": 0},
        "result": hello,
    }

    timed_out = PythonSandbox(timeout=1).execute("import time; time.sleep(5)").to_dict()
    results["checks"]["python_timeout"] = {
        "passed": timed_out["exitCode"] == 124,
        "result": timed_out,
    }

    missing = PythonSandbox(python_executable="python3-does-not-exist").execute("print(1)").to_dict()
    results["checks"]["python_missing_interpreter"] = {
        "passed": missing["exitCode"] == 127,
        "result": missing,
    }

    return results


def main():
    results = run_checks()

    ARTIFACTS_DIR.mkdir(exist_ok=True)
    output_path = ARTIFACTS_DIR / "tool_check.json"
    output_path.write_text(json.dumps(results, indent=2))

    failed = [name for name, check in results["checks"].items() if not check["passed"]]
    for name, check in results["checks"].items():
        logger.info(f"{'PASS' if check['passed'] else 'FAIL'}  {name}")
    logger.info(f"Wrote {output_path}")

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    main()
