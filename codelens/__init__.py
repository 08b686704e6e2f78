"""CodeLens - resilient inference layer for AI code analysis"""

__version__ = "0.1.0"
