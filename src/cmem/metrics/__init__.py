from .prom import LAT, PATHS, REQS, mark, mark_path

__all__ = ["LAT", "PATHS", "REQS", "mark", "mark_path"]
