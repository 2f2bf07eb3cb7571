"""cksctl subcommands: create, reset and destroy."""
from . import create, reset, destroy

__all__ = ['create', 'reset', 'destroy']
