from .save_map import SaveMapWorker

__all__ = [
    "SaveMapWorker",
]
