"""Skill-gap driven learning resource recommendations."""
