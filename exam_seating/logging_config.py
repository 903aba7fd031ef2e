import logging
import logging.config
from typing import Any, Dict


class ExamContextFilter(logging.Filter):
    def filter(self, record):
        if not hasattr(record, "exam_id"):
            record.exam_id = "-"
        return True


LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "exam_context": {
            "()": ExamContextFilter,
        },
    },
    "formatters": {
        "default": {
            "()": "uvicorn.logging.DefaultFormatter",
            "fmt": "%(levelprefix)s %(asctime)s [%(name)s] [exam=%(exam_id)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": '%(levelprefix)s %(asctime)s %(client_addr)s - "%(request_line)s" %(status_code)s',
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "detailed": {
            "format": "%(levelname)s %(asctime)s [%(name)s] [%(module)s:%(lineno)d] - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "default": {
            "formatter": "default",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "filters": ["exam_context"],
        },
        "access": {
            "formatter": "access",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
        },
        "error": {
            "formatter": "detailed",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
            "level": "ERROR",
            "filters": ["exam_context"],
        },
    },
    "loggers": {
        "": {
            "handlers": ["default", "error"],
            "level": "INFO",
        },
        "uvicorn.access": {
            "handlers": ["access"],
            "level": "INFO",
            "propagate": False,
        },
        "exam_seating": {
            "handlers": ["default", "error"],
            "level": "INFO",
            "propagate": False,
        },
    },
}


def setup_logging(level="INFO"):
    config = dict(LOGGING_CONFIG)
    config["loggers"] = dict(LOGGING_CONFIG["loggers"])
    config["loggers"]["exam_seating"] = dict(config["loggers"]["exam_seating"], level=level.upper())
    logging.config.dictConfig(config)
