"""VISITA church profile staging service."""
