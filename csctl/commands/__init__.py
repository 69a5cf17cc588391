from . import init, update, generate

__all__ = ['init', 'update', 'generate']
