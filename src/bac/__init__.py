"""BAC (Batch Audio Converter)

Core package for batch-converting audio files with an external encoder
(ffmpeg) across a bounded worker pool.
"""

__all__ = [
    "__version__",
]

# Keep in sync with pyproject.toml
__version__ = "0.1.0"
