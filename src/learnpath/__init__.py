"""learnpath - lesson progress, sequencing and certification exam engine."""

__version__ = "0.1.0"
