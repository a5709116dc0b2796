"""Reporting utilities for fixednets."""

from .artifacts import write_manifest
from .events import Event, EventRecorder
from .metrics import CsvSink, JsonlSink
from .summary import write_summary

__all__ = ["write_manifest", "Event", "EventRecorder", "CsvSink", "JsonlSink", "write_summary"]
