"""Monitoring pipeline for AI capability breakthrough signals."""
