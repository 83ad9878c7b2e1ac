# app/core/logging.py
import logging
import sys


# Configure standard Python logging
def setup_logging(level: str = "INFO") -> logging.Logger:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)  # Print logs to console
        ]
    )
    return logging.getLogger("student_api")
