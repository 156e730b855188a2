"""Cumulative GPS track heatmaps and heatmap videos."""

__version__ = "0.3.0"
