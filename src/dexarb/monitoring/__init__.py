from .reporter import Reporter, short_id

__all__ = ["Reporter", "short_id"]
