"""Spec builder, execution engine and failure routing."""
