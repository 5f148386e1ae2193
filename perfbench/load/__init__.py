"""Concurrent HTTP load generation."""

from perfbench.load.generator import (
    LoadGenerator,
    LoadGeneratorConfig,
    LoadWorker,
    PhaseTracer,
    WorkerResult,
)

__all__ = [
    'LoadGenerator',
    'LoadGeneratorConfig',
    'LoadWorker',
    'PhaseTracer',
    'WorkerResult',
]
