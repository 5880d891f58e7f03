"""Water depth at field observations from gauge readings and topobathymetry."""

from . import config
from .pipeline import DepthPipeline, PipelineResult, PipelineSummary

__version__ = "0.1.0"
__all__ = [
    'config',
    'DepthPipeline',
    'PipelineResult',
    'PipelineSummary'
]
