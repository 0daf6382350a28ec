"""Artifact retrieval models and implementations."""

from .base import Fetcher, StagingArea
from .http import HttpFetcher

__all__ = ["Fetcher", "HttpFetcher", "StagingArea"]
