"""LQA Batch - concurrent localization QA analysis with deterministic grading."""

__version__ = "0.1.0"
