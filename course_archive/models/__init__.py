"""Models module exports"""
from .database import Course, Resource, Interaction

__all__ = ["Course", "Resource", "Interaction"]
