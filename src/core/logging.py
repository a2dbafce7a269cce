import logging
from collections import deque
from datetime import datetime, timezone

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


class DiagnosticBuffer(logging.Handler):
    """최근 로그 레코드 링 버퍼. 진단 엔드포인트에서 조회."""

    def __init__(self, limit: int = 500) -> None:
        super().__init__(level=logging.DEBUG)
        self._records: deque[dict] = deque(maxlen=max(1, limit))

    @property
    def limit(self) -> int:
        return self._records.maxlen or 0

    def set_limit(self, limit: int) -> None:
        self._records = deque(self._records, maxlen=max(1, limit))

    def emit(self, record: logging.LogRecord) -> None:
        self._records.append(
            {
                "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
                "level": record.levelname.lower(),
                "logger": record.name,
                "msg": record.getMessage(),
            }
        )

    def entries(self) -> list[dict]:
        return list(self._records)

    def clear(self) -> None:
        self._records.clear()


diagnostic_buffer = DiagnosticBuffer()


def setup_logging(level: str = "INFO", buffer_limit: int = 500):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    diagnostic_buffer.set_limit(buffer_limit)
    root = logging.getLogger()
    if diagnostic_buffer not in root.handlers:
        root.addHandler(diagnostic_buffer)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
