# telemetry.py
import os, sys, logging, warnings

APP_LOGGER = "contractguard"


def go_quiet(default_level="WARNING"):
    """
    Silence 3rd-party log spam while keeping:
      - the contractguard.* loggers (pipeline trace, verdicts, timings)
      - real warnings/errors
    Call as the FIRST thing in your app, before importing big libs.
    """
    os.environ.setdefault("PYTHONUTF8", "1")
    os.environ.setdefault("PYTHONIOENCODING", "utf-8")
    os.environ.setdefault("TQDM_DISABLE", "1")
    os.environ.setdefault("OPENAI_LOG", "error")

    # --- Force global logging config ---
    # Keep root at WARNING by default (tunable via CG_LOG_LEVEL)
    lvl_name = os.getenv("CG_LOG_LEVEL", default_level).upper()
    lvl = getattr(logging, lvl_name, logging.WARNING)
    logging.basicConfig(
        level=lvl,
        format="%(levelname)s %(name)s: %(message)s",
        force=True,  # override prior handlers from libs
    )

    # --- Silence noisy third-party loggers hard ---
    noisy = [
        # networking / http
        "urllib3", "urllib3.connectionpool", "httpx", "httpcore", "requests",
        # retry
        "tenacity",
        # database
        "sqlalchemy", "sqlalchemy.engine",
        # web servers
        "uvicorn", "uvicorn.error", "uvicorn.access", "multipart",
    ]
    for name in noisy:
        lg = logging.getLogger(name)
        lg.setLevel(logging.CRITICAL)
        lg.propagate = False

    logging.captureWarnings(True)
    warnings.simplefilter("ignore")

    # The app logger stays chatty: one line per stage and per policy verdict.
    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(getattr(logging, os.getenv("CG_APP_LOG_LEVEL", "INFO").upper(), logging.INFO))
    app_logger.propagate = False
    if not app_logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        app_logger.addHandler(h)
    return app_logger
