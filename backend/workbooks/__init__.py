"""Workbook storage and sharing service."""
