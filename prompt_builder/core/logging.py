import logging
import sys


class ContextFormatter(logging.Formatter):
    """Formatter that fills in optional generation_id and stage fields."""
    def format(self, record):
        if not hasattr(record, 'generation_id'):
            record.generation_id = '-'
        if not hasattr(record, 'stage'):
            record.stage = '-'
        return super().format(record)


def configure_logging(level: int = logging.INFO) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(
        "%(asctime)s %(levelname)s %(name)s [generation_id=%(generation_id)s stage=%(stage)s] - %(message)s"
    ))
    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def ctx(generation_id: str | None = None, stage: str | None = None) -> dict:
    """Build the ``extra`` mapping understood by ContextFormatter."""
    return {"generation_id": generation_id or "-", "stage": stage or "-"}
