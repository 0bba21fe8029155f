"""MatrixGen — batch image/video generation across interchangeable providers."""

__version__ = "1.0.0"
