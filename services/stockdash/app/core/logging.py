import logging
import sys
import json


def setup_logging(level: str = "INFO"):
    class JSONFormatter(logging.Formatter):
        def format(self, record):
            log = {
                "level": record.levelname,
                "message": record.getMessage(),
                "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
                "logger": record.name,
            }
            if record.exc_info:
                log["exc_info"] = self.formatException(record.exc_info)
            return json.dumps(log)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    # force=True: sostituisce gli handler già installati sul root logger (es. da pytest)
    logging.basicConfig(level=level.upper(), handlers=[handler], force=True)
