from . import completions, images, workflow

__all__ = ["completions", "images", "workflow"]
